# src/Filters/gradient.py
# Image gradient: convolve the smoothed grid with an x/y kernel pair, then derive
# per-pixel magnitude (L1 or L2) and a direction quantised to four sectors.

import math
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Any, Dict, Union

import numpy as np

from Filters.convolution import convolve
from Utils.envelope import open_envelope, close_envelope
from Utils.grid import GRID_DTYPE, MAX_INTENSITY, freeze

UP = math.pi / 2.0
UP_TILT = math.pi * 77.5 / 180.0
FLAT_TILT = math.pi * 22.5 / 180.0


class Direction(IntEnum):
    VERTICAL = 0
    HORIZONTAL = 1
    DIAG_LEFT_UP = 2
    DIAG_RIGHT_UP = 3


class Norm(Enum):
    L1 = "L1"
    L2 = "L2"


class GradientOperator(Enum):
    """Derivative kernel pairs. Each member carries its (x, y) kernels."""
    SOBEL = "sobel"
    PREWITT = "prewitt"

    @property
    def x_kernel(self) -> np.ndarray:
        return _KERNEL_PAIRS[self][0]

    @property
    def y_kernel(self) -> np.ndarray:
        return _KERNEL_PAIRS[self][1]

    @property
    def shape(self):
        return self.x_kernel.shape


_KERNEL_PAIRS = {
    GradientOperator.SOBEL: (
        freeze(np.array([[-1, 0, 1],
                         [-2, 0, 2],
                         [-1, 0, 1]], dtype=np.float64)),
        freeze(np.array([[1, 2, 1],
                         [0, 0, 0],
                         [-1, -2, -1]], dtype=np.float64)),
    ),
    GradientOperator.PREWITT: (
        freeze(np.array([[-1, 0, 1],
                         [-1, 0, 1],
                         [-1, 0, 1]], dtype=np.float64)),
        freeze(np.array([[1, 1, 1],
                         [0, 0, 0],
                         [-1, -1, -1]], dtype=np.float64)),
    ),
}


@dataclass(frozen=True, eq=False)
class GradientField:
    gx: np.ndarray
    gy: np.ndarray
    magnitude: np.ndarray
    direction: np.ndarray  # Direction values, int8

    @property
    def shape(self):
        return self.magnitude.shape


def _sector(radians: float) -> Direction:
    r = abs(radians)
    if UP_TILT <= r <= UP:
        return Direction.VERTICAL
    if r <= FLAT_TILT:
        return Direction.HORIZONTAL
    if FLAT_TILT <= radians <= UP_TILT:
        return Direction.DIAG_RIGHT_UP
    return Direction.DIAG_LEFT_UP


def quantize_direction(gx: float, gy: float) -> Direction:
    """Edge direction for a single pixel."""
    if gx != 0:
        return _sector(math.atan(gy / gx))
    return Direction.HORIZONTAL if gy == 0 else Direction.VERTICAL


def direction_grid(gx: np.ndarray, gy: np.ndarray) -> np.ndarray:
    """Vectorised quantize_direction over whole grids."""
    gx = np.asarray(gx, dtype=np.float64)
    gy = np.asarray(gy, dtype=np.float64)
    nonzero = gx != 0
    theta = np.arctan(np.divide(gy, gx, out=np.zeros_like(gy), where=nonzero))
    abs_t = np.abs(theta)

    out = np.full(gx.shape, Direction.DIAG_LEFT_UP, dtype=np.int8)
    out[(theta >= FLAT_TILT) & (theta <= UP_TILT)] = Direction.DIAG_RIGHT_UP
    out[abs_t <= FLAT_TILT] = Direction.HORIZONTAL
    out[(abs_t >= UP_TILT) & (abs_t <= UP)] = Direction.VERTICAL

    # gx == 0: flat if there is no gradient at all, vertical otherwise
    out[~nonzero] = np.where(gy[~nonzero] == 0, Direction.HORIZONTAL, Direction.VERTICAL)
    return freeze(out)


def magnitude(gx: np.ndarray, gy: np.ndarray, norm: Norm = Norm.L2) -> np.ndarray:
    norm = Norm(norm)
    gx = np.asarray(gx, dtype=np.float64)
    gy = np.asarray(gy, dtype=np.float64)
    if norm is Norm.L1:
        mag = np.abs(gx) + np.abs(gy)
    else:
        mag = np.rint(np.sqrt(gx * gx + gy * gy))
    return freeze(np.clip(mag, 0, MAX_INTENSITY).astype(GRID_DTYPE))


def compute_gradient(smoothed: Any,
                     operator: GradientOperator = GradientOperator.SOBEL,
                     norm: Norm = Norm.L2,
                     signed: bool = False) -> GradientField:
    """
    Derivative grids come from the same clipping convolution as smoothing, so
    with signed=False negative derivatives read as 0 before the direction is
    quantised. signed=True convolves without clipping.
    """
    operator = GradientOperator(operator)
    gx = convolve(smoothed, operator.x_kernel, clip=not signed)
    gy = convolve(smoothed, operator.y_kernel, clip=not signed)
    return GradientField(gx=gx, gy=gy,
                         magnitude=magnitude(gx, gy, norm),
                         direction=direction_grid(gx, gy))


class GradientFilter:
    """
    Envelope in: payload = smoothed grid
    Envelope out: payload = GradientField
    """
    stage_name = "gradient"

    def __init__(self, operator: GradientOperator = GradientOperator.SOBEL,
                 norm: Union[Norm, str] = Norm.L2, signed: bool = False):
        self.operator = GradientOperator(operator)
        self.norm = Norm(norm)
        self.signed = bool(signed)

    def process(self, envelope: Any) -> Dict:
        env = open_envelope(envelope)
        smoothed = env["payload"]
        if smoothed is None:
            raise ValueError("GradientFilter: payload is None")
        field = compute_gradient(smoothed, self.operator, self.norm, self.signed)
        return close_envelope(env, field)
