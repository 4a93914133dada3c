# src/Pipelines/canny.py
# Canny edge detector: smoothing -> gradient -> non-maximum suppression ->
# threshold selection -> edge tracing, run as a fixed chain of filters.

import numbers
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import numpy as np

from Filters.convolution import GAUSSIAN_KERNEL, ConvolutionFilter
from Filters.gradient import GradientFilter, GradientOperator, Norm
from Filters.suppression import SuppressionFilter
from Filters.threshold import Clusterer, KMeansClusterer, ThresholdFilter, Thresholds
from Filters.tracer import EdgeTrace, TracerFilter
from Utils.envelope import open_envelope, close_envelope
from Utils.errors import ConfigurationError, GridError, GridSizeError
from Utils.grid import as_grid, as_kernel
from Utils.log import setup_logger

logger = setup_logger("canny")


@dataclass(frozen=True, eq=False)
class CannyConfig:
    """
    Validated detector configuration. Construction raises ConfigurationError
    for anything the pipeline could not run with.

    thresholds=None selects automatic thresholds (clustering of magnitudes);
    otherwise pass Thresholds or a (low, high) pair with 0 <= low <= high <= 255.
    smoothing_kernel=None means GAUSSIAN_KERNEL. `seed` configures the default
    k-means clusterer and cannot be combined with an explicit `clusterer`.
    """
    norm: Any = Norm.L2
    thresholds: Optional[Any] = None
    min_edge_size: int = 0
    operator: Any = GradientOperator.SOBEL
    smoothing_kernel: Optional[Any] = field(default=None, repr=False)
    signed_gradient: bool = False
    seed: Optional[int] = None
    clusterer: Optional[Clusterer] = field(default=None, repr=False)

    def __post_init__(self):
        def set_(name, value):
            object.__setattr__(self, name, value)

        try:
            set_("norm", Norm(self.norm.upper() if isinstance(self.norm, str) else self.norm))
        except ValueError:
            raise ConfigurationError("norm", f"expected one of L1, L2, got {self.norm!r}") from None

        try:
            op = self.operator.lower() if isinstance(self.operator, str) else self.operator
            set_("operator", GradientOperator(op))
        except ValueError:
            names = ", ".join(o.value for o in GradientOperator)
            raise ConfigurationError("operator", f"expected one of {names}, got {self.operator!r}") from None

        if self.thresholds is not None:
            set_("thresholds", Thresholds.of(self.thresholds))

        m = self.min_edge_size
        if isinstance(m, bool) or not isinstance(m, numbers.Integral) or m < 0:
            raise ConfigurationError("min_edge_size", f"must be a non-negative integer, got {m!r}")
        set_("min_edge_size", int(m))

        try:
            kernel = GAUSSIAN_KERNEL if self.smoothing_kernel is None else self.smoothing_kernel
            set_("smoothing_kernel", as_kernel(kernel))
        except GridError as e:
            raise ConfigurationError("smoothing_kernel", str(e)) from None

        if self.seed is not None and (isinstance(self.seed, bool) or not isinstance(self.seed, numbers.Integral)):
            raise ConfigurationError("seed", f"must be an integer, got {self.seed!r}")
        if self.seed is not None and self.clusterer is not None:
            raise ConfigurationError("seed", "seed only applies to the default clusterer, not to an explicit clusterer")
        set_("signed_gradient", bool(self.signed_gradient))

    @property
    def automatic(self) -> bool:
        return self.thresholds is None

    @property
    def min_shape(self):
        """Smallest input grid that still yields a 1x1 output."""
        (m, n), (gm, gn) = self.smoothing_kernel.shape, self.operator.shape
        return m + gm - 1, n + gn - 1

    @property
    def contraction(self):
        r, c = self.min_shape
        return r - 1, c - 1


@dataclass(frozen=True, eq=False)
class CannyResult:
    edges: np.ndarray
    strong: np.ndarray
    weak: np.ndarray
    thresholds: Thresholds
    thresholds_computed: bool
    kept_components: int = 0
    dropped_components: int = 0

    @property
    def shape(self):
        return self.edges.shape

    @property
    def rows(self) -> int:
        return self.edges.shape[0]

    @property
    def columns(self) -> int:
        return self.edges.shape[1]

    @property
    def num_edge_pixels(self) -> int:
        return int(self.edges.sum())

    @property
    def num_strong_pixels(self) -> int:
        return int(self.strong.sum())

    @property
    def num_weak_pixels(self) -> int:
        return int(self.weak.sum())

    def summary(self) -> Dict:
        return {
            "rows": self.rows,
            "columns": self.columns,
            "low_threshold": self.thresholds.low,
            "high_threshold": self.thresholds.high,
            "thresholds_computed": self.thresholds_computed,
            "edge_pixels": self.num_edge_pixels,
            "strong_pixels": self.num_strong_pixels,
            "weak_pixels": self.num_weak_pixels,
            "kept_components": self.kept_components,
            "dropped_components": self.dropped_components,
        }


class CannyPipeline:
    def __init__(self, config: Optional[CannyConfig] = None, **options):
        if config is not None and options:
            raise ConfigurationError("config", "pass either a CannyConfig or keyword options, not both")
        self.config = config if config is not None else CannyConfig(**options)

    def _make_stages(self) -> List:
        cfg = self.config
        clusterer = cfg.clusterer
        if cfg.automatic and clusterer is None:
            clusterer = KMeansClusterer(random_state=cfg.seed)
        return [
            ConvolutionFilter(cfg.smoothing_kernel),
            GradientFilter(cfg.operator, cfg.norm, signed=cfg.signed_gradient),
            SuppressionFilter(),
            ThresholdFilter(cfg.thresholds, clusterer),
            TracerFilter(cfg.min_edge_size),
        ]

    def check_size(self, shape):
        min_rows, min_cols = self.config.min_shape
        if shape[0] < min_rows or shape[1] < min_cols:
            raise GridSizeError(shape, (min_rows, min_cols))

    def run(self, grid: Any) -> CannyResult:
        """Detect edges in a grayscale grid. Every call starts from fresh state."""
        g = as_grid(grid)
        self.check_size(g.shape)

        env = {"id": None, "payload": g, "meta": {"shape": g.shape}}
        for stage in self._make_stages():
            start = time.time()
            env = stage.process(env)
            logger.debug(f"{stage.stage_name} done in {time.time() - start:.4f}s")

        trace: EdgeTrace = env["payload"]
        thresholds: Thresholds = env["meta"]["thresholds"]
        result = CannyResult(
            edges=trace.edges,
            strong=trace.strong,
            weak=trace.weak,
            thresholds=thresholds,
            thresholds_computed=env["meta"]["thresholds_computed"],
            kept_components=trace.kept_components,
            dropped_components=trace.dropped_components,
        )
        logger.info(
            f"thresholds low={thresholds.low} high={thresholds.high} "
            f"({'computed' if result.thresholds_computed else 'supplied'}), "
            f"edges={result.num_edge_pixels} strong={result.num_strong_pixels} weak={result.num_weak_pixels}"
        )
        return result


def detect_edges(grid: Any, **options) -> CannyResult:
    """One-shot helper: detect_edges(grid, norm="L1", thresholds=(20, 60), min_edge_size=5)."""
    return CannyPipeline(CannyConfig(**options)).run(grid)


class CannyStage:
    """
    Envelope in: payload = grayscale grid
    Envelope out: payload = CannyResult
    """
    stage_name = "canny"

    def __init__(self, config: Optional[CannyConfig] = None):
        self.pipeline = CannyPipeline(config)

    def process(self, envelope: Any) -> Dict:
        env = open_envelope(envelope)
        grid = env["payload"]
        if grid is None:
            raise ValueError("CannyStage: payload is None")
        result = self.pipeline.run(grid)
        env["meta"]["thresholds"] = result.thresholds
        return close_envelope(env, result)
