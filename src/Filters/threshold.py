# src/Filters/threshold.py
# Hysteresis thresholds: supplied by the caller, or derived by clustering the
# suppressed gradient magnitudes into three groups.

import numbers
from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol, Sequence

import numpy as np

from Filters.gradient import GradientField
from Utils.envelope import open_envelope, close_envelope
from Utils.errors import ConfigurationError, ThresholdSelectionError
from Utils.grid import MIN_INTENSITY, MAX_INTENSITY
from Utils.log import setup_logger

logger = setup_logger("threshold")

# clustering parameters for automatic thresholds
NUM_CLUSTERS = 3
MAX_ITERATIONS = 10
EPSILON = 0.01


@dataclass(frozen=True)
class Thresholds:
    low: int
    high: int

    def __post_init__(self):
        for name in ("low", "high"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, numbers.Integral):
                raise ConfigurationError("thresholds", f"{name} must be an integer, got {value!r}")
            if not MIN_INTENSITY <= value <= MAX_INTENSITY:
                raise ConfigurationError(
                    "thresholds", f"{name}={value} outside [{MIN_INTENSITY}, {MAX_INTENSITY}]")
            object.__setattr__(self, name, int(value))
        if self.low > self.high:
            raise ConfigurationError("thresholds", f"low={self.low} is greater than high={self.high}")

    @classmethod
    def of(cls, value: Any) -> "Thresholds":
        """Accept a Thresholds, a (low, high) pair or a {"low", "high"} mapping."""
        if isinstance(value, cls):
            return value
        if isinstance(value, dict):
            return cls(value.get("low"), value.get("high"))
        try:
            low, high = value
        except (TypeError, ValueError):
            raise ConfigurationError("thresholds", f"expected (low, high), got {value!r}") from None
        return cls(low, high)


class Clusterer(Protocol):
    def cluster(self, points: Sequence[float], k: int, max_iterations: int,
                epsilon: float, seeded: bool) -> Sequence[float]:
        ...


class KMeansClusterer:
    """
    1-D k-means through scikit-learn. `seeded` selects k-means++ initialisation,
    otherwise random initial centroids. scikit-learn treats `epsilon` as a
    tolerance relative to the variance of the points.
    """
    def __init__(self, random_state: Optional[int] = None):
        self.random_state = random_state

    def cluster(self, points, k, max_iterations, epsilon, seeded):
        from sklearn.cluster import KMeans

        X = np.asarray(points, dtype=np.float64).reshape(-1, 1)
        km = KMeans(
            n_clusters=int(k),
            init="k-means++" if seeded else "random",
            n_init=1,
            max_iter=int(max_iterations),
            tol=float(epsilon),
            random_state=self.random_state,
        ).fit(X)
        return [float(c) for c in km.cluster_centers_[:, 0]]


def automatic_thresholds(magnitude: Any, clusterer: Clusterer,
                         k: int = NUM_CLUSTERS,
                         max_iterations: int = MAX_ITERATIONS,
                         epsilon: float = EPSILON,
                         seeded: bool = True) -> Thresholds:
    """
    Cluster the magnitudes into k groups and build thresholds from the
    centroids at positions 0 and 1 of the result: low is the smaller, high the
    larger. Any further centroids are ignored.
    """
    points = np.asarray(magnitude, dtype=np.float64).ravel()
    distinct = np.unique(points).size
    if distinct < k:
        raise ThresholdSelectionError(
            f"need at least {k} distinct magnitudes to cluster, got {distinct}")

    centroids = list(clusterer.cluster(points, k, max_iterations, epsilon, seeded))
    logger.debug(f"centroids: {centroids}")
    if len(centroids) < 2:
        raise ThresholdSelectionError(f"clusterer returned {len(centroids)} centroid(s), need 2")

    first, second = float(centroids[0]), float(centroids[1])
    if not (np.isfinite(first) and np.isfinite(second)):
        raise ThresholdSelectionError(f"clusterer returned non-finite centroids: {centroids[:2]}")

    def _to_level(c):
        return int(min(max(c, MIN_INTENSITY), MAX_INTENSITY))

    return Thresholds(_to_level(min(first, second)), _to_level(max(first, second)))


def select_thresholds(magnitude: Any,
                      thresholds: Optional[Any] = None,
                      clusterer: Optional[Clusterer] = None) -> Thresholds:
    """Manual thresholds are returned as given; None means compute them."""
    if thresholds is not None:
        return Thresholds.of(thresholds)
    return automatic_thresholds(magnitude, clusterer or KMeansClusterer())


class ThresholdFilter:
    """
    Envelope in: payload = GradientField (suppressed)
    Envelope out: same payload, meta["thresholds"] = Thresholds
    """
    stage_name = "threshold"

    def __init__(self, thresholds: Optional[Any] = None, clusterer: Optional[Clusterer] = None):
        self.thresholds = None if thresholds is None else Thresholds.of(thresholds)
        self.clusterer = clusterer

    def process(self, envelope: Any) -> Dict:
        env = open_envelope(envelope)
        field = env["payload"]
        mag = field.magnitude if isinstance(field, GradientField) else field
        if mag is None:
            raise ValueError("ThresholdFilter: payload is None")
        env["meta"]["thresholds"] = select_thresholds(mag, self.thresholds, self.clusterer)
        env["meta"]["thresholds_computed"] = self.thresholds is None
        return close_envelope(env, field)
