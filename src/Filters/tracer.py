# src/Filters/tracer.py
# Edge tracing: every 8-connected group of strong/weak pixels that contains at
# least one strong pixel becomes an edge, if it is large enough.

import numbers
from dataclasses import dataclass
from typing import Any, Dict, List, Tuple

import numpy as np

from Filters.gradient import GradientField
from Filters.threshold import Thresholds
from Utils.envelope import open_envelope, close_envelope
from Utils.errors import ConfigurationError
from Utils.grid import freeze

NEIGHBOURS_8 = (
    (-1, -1), (-1, 0), (-1, 1),
    (0, -1),           (0, 1),
    (1, -1),  (1, 0),  (1, 1),
)


@dataclass(frozen=True, eq=False)
class EdgeTrace:
    edges: np.ndarray
    strong: np.ndarray
    weak: np.ndarray
    kept_components: int = 0
    dropped_components: int = 0

    @property
    def num_edge_pixels(self) -> int:
        return int(self.edges.sum())

    @property
    def num_strong_pixels(self) -> int:
        return int(self.strong.sum())

    @property
    def num_weak_pixels(self) -> int:
        return int(self.weak.sum())


def classify(magnitude: Any, thresholds: Thresholds) -> Tuple[np.ndarray, np.ndarray]:
    """strong: magnitude >= high. weak: low <= magnitude < high."""
    mag = np.asarray(magnitude)
    strong = mag >= thresholds.high
    weak = (mag >= thresholds.low) & ~strong
    return freeze(strong), freeze(weak)


def collect_component(candidate: np.ndarray, visited: np.ndarray, seed: Tuple[int, int]) -> List[Tuple[int, int]]:
    """
    Iterative depth-first search from `seed` over 8-connected candidate pixels.
    Marks every reached candidate in `visited`.
    """
    rows, cols = candidate.shape
    component = []
    stack = [seed]
    visited[seed] = True
    while stack:
        r, c = stack.pop()
        component.append((r, c))
        for dr, dc in NEIGHBOURS_8:
            nr, nc = r + dr, c + dc
            if 0 <= nr < rows and 0 <= nc < cols and candidate[nr, nc] and not visited[nr, nc]:
                visited[nr, nc] = True
                stack.append((nr, nc))
    return component


def trace_edges(magnitude: Any, thresholds: Thresholds, min_edge_size: int = 0) -> EdgeTrace:
    """
    Seeds are the strong pixels in row-major order. A pixel reached from one
    seed is never revisited from another, so each component is built once.
    """
    if isinstance(min_edge_size, bool) or not isinstance(min_edge_size, numbers.Integral) or min_edge_size < 0:
        raise ConfigurationError("min_edge_size", f"must be a non-negative integer, got {min_edge_size!r}")

    strong, weak = classify(magnitude, thresholds)
    candidate = strong | weak
    visited = np.zeros(candidate.shape, dtype=bool)
    edges = np.zeros(candidate.shape, dtype=bool)
    kept = dropped = 0

    for seed in zip(*np.nonzero(strong)):
        seed = (int(seed[0]), int(seed[1]))
        if visited[seed]:
            continue
        component = collect_component(candidate, visited, seed)
        if len(component) >= min_edge_size:
            rs, cs = zip(*component)
            edges[list(rs), list(cs)] = True
            kept += 1
        else:
            dropped += 1

    return EdgeTrace(edges=freeze(edges), strong=strong, weak=weak,
                     kept_components=kept, dropped_components=dropped)


class TracerFilter:
    """
    Envelope in: payload = GradientField (suppressed), meta["thresholds"] set
    Envelope out: payload = EdgeTrace
    """
    stage_name = "tracer"

    def __init__(self, min_edge_size: int = 0):
        self.min_edge_size = min_edge_size

    def process(self, envelope: Any) -> Dict:
        env = open_envelope(envelope)
        field = env["payload"]
        thresholds = env["meta"].get("thresholds")
        if thresholds is None:
            raise ValueError("TracerFilter: meta.thresholds missing, run ThresholdFilter first")
        mag = field.magnitude if isinstance(field, GradientField) else field
        return close_envelope(env, trace_edges(mag, thresholds, self.min_edge_size))
