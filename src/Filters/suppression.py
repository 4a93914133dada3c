# src/Filters/suppression.py
# Non-maximum suppression: a pixel keeps its magnitude only if neither of its two
# neighbours along the gradient direction is strictly larger.

from typing import Any, Dict, Tuple

import numpy as np

from Filters.gradient import Direction, GradientField
from Utils.envelope import open_envelope, close_envelope
from Utils.grid import freeze

_OFFSETS = {
    Direction.VERTICAL: ((-1, 0), (1, 0)),
    Direction.HORIZONTAL: ((0, -1), (0, 1)),
    Direction.DIAG_LEFT_UP: ((-1, -1), (1, 1)),
    Direction.DIAG_RIGHT_UP: ((-1, 1), (1, -1)),
}


def neighbor_offsets(direction: Direction) -> Tuple[Tuple[int, int], Tuple[int, int]]:
    return _OFFSETS[Direction(direction)]


def neighbors(direction: Direction, i: int, j: int):
    """The two pixels compared against (i, j); they may fall outside the grid."""
    (di1, dj1), (di2, dj2) = neighbor_offsets(direction)
    return (i + di1, j + dj1), (i + di2, j + dj2)


def is_suppressed(mag: np.ndarray, direction: Direction, i: int, j: int) -> bool:
    rows, cols = mag.shape
    for ni, nj in neighbors(direction, i, j):
        if 0 <= ni < rows and 0 <= nj < cols and mag[ni, nj] > mag[i, j]:
            return True
    return False


def suppress(mag: Any, direction: Any) -> np.ndarray:
    """
    Return a new magnitude grid with every non-maximum set to 0.

    All pixels are judged against the input grid, never against partially
    suppressed values, so the result does not depend on scan order.
    """
    mag = np.asarray(mag)
    direction = np.asarray(direction)
    if mag.shape != direction.shape:
        raise ValueError(f"magnitude {mag.shape} and direction {direction.shape} differ in shape")

    rows, cols = mag.shape
    # -1 border: out-of-bounds neighbours never beat a magnitude >= 0
    padded = np.pad(mag.astype(np.int64), 1, mode="constant", constant_values=-1)
    drop = np.zeros(mag.shape, dtype=bool)

    for d, ((di1, dj1), (di2, dj2)) in _OFFSETS.items():
        n1 = padded[1 + di1:1 + di1 + rows, 1 + dj1:1 + dj1 + cols]
        n2 = padded[1 + di2:1 + di2 + rows, 1 + dj2:1 + dj2 + cols]
        drop |= (direction == d) & ((n1 > mag) | (n2 > mag))

    out = np.where(drop, 0, mag).astype(mag.dtype)
    return freeze(out)


class SuppressionFilter:
    """
    Envelope in: payload = GradientField
    Envelope out: payload = GradientField with the suppressed magnitude
    """
    stage_name = "suppression"

    def process(self, envelope: Any) -> Dict:
        env = open_envelope(envelope)
        field = env["payload"]
        if not isinstance(field, GradientField):
            raise ValueError("SuppressionFilter expects envelope.payload to be a GradientField")
        thinned = GradientField(gx=field.gx, gy=field.gy,
                                magnitude=suppress(field.magnitude, field.direction),
                                direction=field.direction)
        return close_envelope(env, thinned)
