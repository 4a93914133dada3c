import threading
from typing import Any, Dict, List, Optional, Sequence


class MetricsCollector:
    """
    Thread-safe per-stage counters: processed items, errors, total latency.
    Workers call record_success / record_error.
    """
    def __init__(self, stage_names: Sequence[str]):
        self._lock = threading.Lock()
        self.stage_names = list(stage_names)
        n = len(self.stage_names)
        self._counts = [0] * n
        self._errors = [0] * n
        self._total_time = [0.0] * n

    def _valid(self, stage_idx: int) -> bool:
        return 0 <= stage_idx < len(self.stage_names)

    def record_success(self, stage_idx: int, elapsed: float):
        if not self._valid(stage_idx):
            return
        with self._lock:
            self._counts[stage_idx] += 1
            self._total_time[stage_idx] += float(elapsed)

    def record_error(self, stage_idx: int):
        if not self._valid(stage_idx):
            return
        with self._lock:
            self._errors[stage_idx] += 1

    def snapshot(self) -> List[Dict[str, Any]]:
        with self._lock:
            out = []
            for i, name in enumerate(self.stage_names):
                count = self._counts[i]
                total = self._total_time[i]
                avg = (total / count) if count else 0.0
                out.append({"stage": i, "name": name, "processed": count,
                            "errors": self._errors[i], "avg_latency": avg, "total_time": total})
            return out

    def totals(self, stage_idx: Optional[int] = None) -> Dict[str, int]:
        """Processed/error totals for one stage, or summed over all stages."""
        with self._lock:
            idx = range(len(self.stage_names)) if stage_idx is None else [stage_idx]
            return {"processed": sum(self._counts[i] for i in idx),
                    "errors": sum(self._errors[i] for i in idx)}
