class EdgeDetectionError(ValueError):
    """Base class for every error raised by the edge detection stages."""


class ConfigurationError(EdgeDetectionError):
    """
    Invalid detector configuration. Raised when the configuration record is
    built, before any image is touched.
    """
    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")


class GridError(EdgeDetectionError):
    """Input grid is not a 2-D array of intensities in [0, 255]."""


class GridSizeError(GridError):
    """Grid is smaller than the kernel applied to it."""
    def __init__(self, grid_shape, kernel_shape):
        self.grid_shape = tuple(grid_shape)
        self.kernel_shape = tuple(kernel_shape)
        super().__init__(
            f"kernel {self.kernel_shape[0]}x{self.kernel_shape[1]} does not fit "
            f"grid {self.grid_shape[0]}x{self.grid_shape[1]}"
        )


class ThresholdSelectionError(EdgeDetectionError):
    """Automatic threshold selection could not produce two thresholds."""
