# src/Filters/convolution.py
# Valid-mode 2-D convolution (correlation, kernel is not flipped) of an integer
# grid with a real kernel. Output is clipped to [0, 255] and truncated to int.

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view
from typing import Any, Dict

from Utils.envelope import open_envelope, close_envelope
from Utils.errors import GridSizeError
from Utils.grid import GRID_DTYPE, MIN_INTENSITY, MAX_INTENSITY, as_array, as_kernel, freeze

# Gaussian smoothing kernel, sigma = 1.4, size 5
GAUSSIAN_KERNEL = freeze(np.array([
    [2, 4, 5, 4, 2],
    [4, 9, 12, 9, 4],
    [5, 12, 15, 12, 5],
    [4, 9, 12, 9, 4],
    [2, 4, 5, 4, 2],
], dtype=np.float64) / 159.0)

IDENTITY_KERNEL = freeze(np.ones((1, 1), dtype=np.float64))


def averaging_kernel(rows: int, cols: int) -> np.ndarray:
    """Box filter whose weights sum to 1."""
    if rows < 1 or cols < 1:
        raise ValueError(f"averaging kernel needs positive size, got {rows}x{cols}")
    return freeze(np.full((rows, cols), 1.0 / (rows * cols), dtype=np.float64))


def output_shape(grid_shape, kernel_shape):
    """(R - m + 1, C - n + 1); raises GridSizeError if the kernel does not fit."""
    R, C = grid_shape
    m, n = kernel_shape
    if m > R or n > C:
        raise GridSizeError(grid_shape, kernel_shape)
    return R - m + 1, C - n + 1


def convolve(grid: Any, kernel: Any, clip: bool = True) -> np.ndarray:
    """
    Slide `kernel` over `grid` and return the weighted sums of every window.

    With clip=True (the default) each sum is clipped to [0, 255] before
    truncation, so the result is again a valid intensity grid. clip=False keeps
    the sign of the sums and only truncates toward zero.
    """
    # float64 throughout so values beyond int32 clip instead of wrapping
    g = as_array(grid, check_range=False).astype(np.float64)
    k = as_kernel(kernel)
    output_shape(g.shape, k.shape)

    windows = sliding_window_view(g, k.shape)
    sums = np.einsum("ijkl,kl->ij", windows, k)
    if clip:
        sums = np.clip(sums, MIN_INTENSITY, MAX_INTENSITY)
    return freeze(np.trunc(sums).astype(GRID_DTYPE))


class ConvolutionFilter:
    """
    Envelope in: payload = integer grid
    Envelope out: payload = convolved grid (smaller by kernel size - 1 per axis)
    """
    stage_name = "convolution"

    def __init__(self, kernel: Any = GAUSSIAN_KERNEL, clip: bool = True):
        self.kernel = as_kernel(kernel)
        self.clip = bool(clip)

    def process(self, envelope: Any) -> Dict:
        env = open_envelope(envelope)
        grid = env["payload"]
        if grid is None:
            raise ValueError("ConvolutionFilter: payload is None")
        return close_envelope(env, convolve(grid, self.kernel, clip=self.clip))
