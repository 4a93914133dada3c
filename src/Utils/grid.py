import numpy as np
from typing import Any

from Utils.errors import GridError

GRID_DTYPE = np.int32
MIN_INTENSITY = 0
MAX_INTENSITY = 255


def freeze(arr: np.ndarray) -> np.ndarray:
    """Mark a stage output read-only so later stages cannot mutate it."""
    arr.setflags(write=False)
    return arr


def as_array(data: Any, check_range: bool = True) -> np.ndarray:
    """
    Validate `data` (nested lists or ndarray) as a 2-D grid of integral values
    without narrowing its dtype.

    Float input is accepted only when every value is integral. With
    check_range=True every value must lie in [0, 255].
    """
    try:
        arr = np.array(data)
    except (TypeError, ValueError) as e:
        raise GridError(f"cannot interpret input as a grid: {e}") from e

    if arr.ndim != 2:
        raise GridError(f"grid must be 2-D, got shape {arr.shape}")
    if arr.shape[0] == 0 or arr.shape[1] == 0:
        raise GridError(f"grid must not be empty, got shape {arr.shape}")

    if arr.dtype == np.bool_:
        arr = arr.astype(GRID_DTYPE)
    elif np.issubdtype(arr.dtype, np.floating):
        if not np.all(np.isfinite(arr)) or not np.array_equal(arr, np.trunc(arr)):
            raise GridError("grid values must be integers")
    elif not np.issubdtype(arr.dtype, np.integer):
        raise GridError(f"unsupported grid dtype: {arr.dtype}")

    if check_range and arr.size:
        lo, hi = arr.min(), arr.max()
        if lo < MIN_INTENSITY or hi > MAX_INTENSITY:
            raise GridError(
                f"intensities must lie in [{MIN_INTENSITY}, {MAX_INTENSITY}], got [{lo}, {hi}]"
            )

    return arr


def as_grid(data: Any, check_range: bool = True) -> np.ndarray:
    """Read-only int32 copy of `data`, validated by as_array."""
    return freeze(as_array(data, check_range).astype(GRID_DTYPE, copy=True))


def as_kernel(data: Any) -> np.ndarray:
    """Kernels are real-valued 2-D arrays with at least one cell."""
    try:
        k = np.array(data, dtype=np.float64)
    except (TypeError, ValueError) as e:
        raise GridError(f"cannot interpret kernel: {e}") from e
    if k.ndim != 2 or k.shape[0] == 0 or k.shape[1] == 0:
        raise GridError(f"kernel must be a non-empty 2-D array, got shape {k.shape}")
    if not np.all(np.isfinite(k)):
        raise GridError("kernel weights must be finite")
    return freeze(k)
