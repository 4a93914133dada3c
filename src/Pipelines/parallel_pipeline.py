import os
import time
import threading
import traceback
from queue import Queue
from typing import Any, Callable, Dict, List, Optional

from Filters.converter import GrayscaleReader, MAX_PIXELS
from Filters.output_filter import EdgeMapWriter
from Pipelines.canny import CannyConfig, CannyStage
from Utils.constants import SENTINEL
from Utils.dlq import write_dlq
from Utils.image_loader import ImageLoader
from Utils.log import setup_logger
from Utils.metrics import MetricsCollector

logger = setup_logger("pipeline")


class ParallelPipeline:
    """
    Batch edge detection over a directory:
    loader -> reader -> canny -> writer, each stage on its own worker threads,
    connected by bounded queues. A failing item goes to the dead-letter
    directory and the rest of the batch continues.
    """
    def __init__(self, input_dir: str, output_dir: str, config: Optional[CannyConfig] = None,
                 n_workers: int = 2, queue_size: int = 8, dlq_dir: Optional[str] = None,
                 max_pixels: int = MAX_PIXELS):
        self.input_dir = input_dir
        self.output_dir = output_dir
        self.config = config or CannyConfig()
        self.n_workers = max(1, int(n_workers))
        self.queue_size = max(1, int(queue_size))
        self.dlq_dir = dlq_dir

        self.loader = ImageLoader(self.input_dir, downstream_workers=self.n_workers)
        # stage 0 is the loader; worker stages start at 1
        self.stage_factories: List[Callable] = [
            lambda: GrayscaleReader(max_pixels=max_pixels),
            lambda: CannyStage(self.config),
            lambda: EdgeMapWriter(self.output_dir),
        ]
        self.stage_names = ["loader", "reader", "canny", "writer"]
        self.num_stages = len(self.stage_names)
        # queues[i] feeds stage i; the last stage appends to self.results
        self.queues = [Queue(maxsize=self.queue_size) for _ in range(self.num_stages)]
        self.metrics = MetricsCollector(self.stage_names)
        self.results: List[Dict] = []
        self._results_lock = threading.Lock()
        self.threads: List[threading.Thread] = []
        self._stop_event = threading.Event()
        self.enqueued = 0

    def _producer(self):
        start = time.time()
        self.enqueued = self.loader.process(None, self.queues[1])
        self.metrics.record_success(0, time.time() - start)
        logger.info(f"enqueued {self.enqueued} image(s) from {self.input_dir}")

    def _emit(self, out_q: Optional[Queue], item: Any):
        if out_q is not None:
            out_q.put(item)
        elif item is not SENTINEL:
            with self._results_lock:
                self.results.append(item)

    def _stage_worker(self, stage_idx: int, filter_obj: Any):
        """
        stage_idx: 1 .. num_stages-1, consumes queues[stage_idx] and writes to
        queues[stage_idx + 1] (or to self.results for the last stage).
        """
        in_q = self.queues[stage_idx]
        out_q = self.queues[stage_idx + 1] if (stage_idx + 1) < self.num_stages else None
        stage_name = self.stage_names[stage_idx]

        while True:
            item = in_q.get()
            try:
                if item is SENTINEL:
                    self._emit(out_q, SENTINEL)
                    break
                if self._stop_event.is_set():
                    continue

                start = time.time()
                try:
                    result_env = filter_obj.process(item)
                except Exception as e:
                    self.metrics.record_error(stage_idx)
                    item_id = item.get("id") if isinstance(item, dict) else None
                    logger.exception(f"[{stage_name}] error processing item id={item_id}: {e}")
                    try:
                        write_dlq(item, str(e), exc_trace=traceback.format_exc(),
                                  dlq_dir=self.dlq_dir, stage=stage_name)
                    except OSError as dlq_e:
                        logger.error(f"failed to write DLQ entry: {dlq_e}")
                    continue
                self.metrics.record_success(stage_idx, time.time() - start)
                self._emit(out_q, result_env)
            finally:
                in_q.task_done()

    def start(self):
        if not os.path.isdir(self.input_dir):
            raise FileNotFoundError(f"Input directory not found: {self.input_dir}")
        # build every filter first so a failing constructor raises before any thread runs
        workers = [(stage_idx, w, self.stage_factories[stage_idx - 1]())
                   for stage_idx in range(1, self.num_stages)
                   for w in range(self.n_workers)]
        for stage_idx, w, filter_obj in workers:
            t = threading.Thread(target=self._stage_worker, args=(stage_idx, filter_obj),
                                 name=f"{self.stage_names[stage_idx]}-{w}", daemon=True)
            t.start()
            self.threads.append(t)
        for stage_idx in range(1, self.num_stages):
            logger.info(f"started stage {stage_idx} ({self.stage_names[stage_idx]}) with {self.n_workers} worker(s)")

        t = threading.Thread(target=self._producer, name="loader", daemon=True)
        t.start()
        self.threads.append(t)

    def stop(self, timeout: float = 5.0):
        """Drop remaining items; workers still forward sentinels and exit."""
        self._stop_event.set()
        deadline = time.time() + timeout
        for t in self.threads:
            t.join(max(0.0, deadline - time.time()))

    def wait_for_completion(self, timeout: Optional[float] = None) -> bool:
        """Block until every worker has exited. Returns False on timeout."""
        deadline = None if timeout is None else time.time() + timeout
        for t in self.threads:
            remaining = None if deadline is None else max(0.0, deadline - time.time())
            t.join(remaining)
        return not any(t.is_alive() for t in self.threads)

    def run(self) -> List[Dict]:
        start = time.time()
        self.start()
        self.wait_for_completion()
        logger.info(f"processed {len(self.results)}/{self.enqueued} image(s) in {time.time() - start:.4f}s")
        return list(self.results)

    def log_metrics(self):
        for entry in self.metrics.snapshot():
            idx = entry["stage"]
            qsize = self.queues[idx].qsize() if idx > 0 else 0
            logger.info(f"Stage {idx} ({entry['name']}): processed={entry['processed']}, "
                        f"errors={entry['errors']}, avg_latency={entry['avg_latency']:.4f}s, queue_size={qsize}")
