import numpy as np
import pytest

from Filters.convolution import (GAUSSIAN_KERNEL, IDENTITY_KERNEL, ConvolutionFilter,
                                 averaging_kernel, convolve, output_shape)
from Utils.errors import GridSizeError


@pytest.mark.parametrize("grid_shape,kernel_shape", [
    ((10, 10), (5, 5)),
    ((7, 12), (3, 3)),
    ((4, 9), (1, 4)),
    ((6, 6), (6, 6)),
])
def test_output_dimensions_and_range(grid_shape, kernel_shape):
    rng = np.random.default_rng(0)
    grid = rng.integers(0, 256, size=grid_shape)
    kernel = rng.normal(0, 2, size=kernel_shape)
    out = convolve(grid, kernel)
    R, C = grid_shape
    m, n = kernel_shape
    assert out.shape == (R - m + 1, C - n + 1)
    assert out.min() >= 0 and out.max() <= 255


def test_identity_kernel_returns_clipped_grid():
    grid = [[-10, 5], [300, 255]]
    assert convolve(grid, IDENTITY_KERNEL).tolist() == [[0, 5], [255, 255]]


def test_averaging_kernel_window_means():
    grid = [[1, 2, 3], [4, 5, 6], [7, 8, 9]]
    assert convolve(grid, averaging_kernel(2, 2)).tolist() == [[3, 4], [6, 7]]


def test_kernel_is_not_flipped():
    # correlation: the top-left weight meets the top-left pixel of each window
    grid = [[10, 0], [0, 0]]
    kernel = [[1, 0], [0, 0]]
    assert convolve(grid, kernel).tolist() == [[10]]


def test_results_truncate_toward_zero():
    assert convolve([[3]], [[0.5]]).tolist() == [[1]]
    assert convolve([[3]], [[-1]]).tolist() == [[0]]


def test_unclipped_convolution_keeps_sign():
    assert convolve([[3]], [[-1]], clip=False).tolist() == [[-3]]
    assert convolve([[3]], [[-0.5]], clip=False).tolist() == [[-1]]
    assert convolve([[200]], [[2]], clip=False).tolist() == [[400]]


@pytest.mark.parametrize("grid_shape,kernel_shape", [
    ((2, 2), (3, 3)),
    ((5, 2), (1, 3)),
    ((2, 5), (3, 1)),
])
def test_kernel_larger_than_grid_is_rejected(grid_shape, kernel_shape):
    with pytest.raises(GridSizeError):
        convolve(np.zeros(grid_shape, dtype=int), np.ones(kernel_shape))
    with pytest.raises(GridSizeError):
        output_shape(grid_shape, kernel_shape)


def test_gaussian_kernel_is_normalised():
    assert GAUSSIAN_KERNEL.shape == (5, 5)
    assert GAUSSIAN_KERNEL.sum() == pytest.approx(1.0)


def test_output_is_read_only_and_input_untouched():
    grid = np.arange(36, dtype=np.int32).reshape(6, 6)
    before = grid.copy()
    out = convolve(grid, GAUSSIAN_KERNEL)
    assert not out.flags.writeable
    assert np.array_equal(grid, before)


def test_averaging_kernel_rejects_empty_size():
    with pytest.raises(ValueError):
        averaging_kernel(0, 3)


def test_convolution_filter_envelope():
    env = {"id": "x", "payload": np.full((6, 6), 100), "meta": {"stage": 2}}
    out = ConvolutionFilter(GAUSSIAN_KERNEL).process(env)
    assert out["payload"].shape == (2, 2)
    assert out["meta"]["stage"] == 3
    # the incoming envelope is left alone
    assert env["meta"]["stage"] == 2


def test_convolution_filter_accepts_bare_payload():
    out = ConvolutionFilter(IDENTITY_KERNEL).process([[1, 2], [3, 4]])
    assert out["payload"].tolist() == [[1, 2], [3, 4]]
    assert out["meta"]["stage"] == 1


def test_values_beyond_int32_clip_instead_of_wrapping():
    grid = np.array([[2**40, 3_000_000_000, -(2**35)]], dtype=np.int64)
    assert convolve(grid, IDENTITY_KERNEL).tolist() == [[255, 255, 0]]
