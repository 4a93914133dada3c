"""
Demo controller - runs a batch ParallelPipeline and reports per-stage metrics
while it works.
"""

import time
from typing import Dict, List, Optional

from Pipelines.canny import CannyConfig
from Pipelines.parallel_pipeline import ParallelPipeline


class DemoController:
    """
    Start the batch pipeline and log metrics every `report_every` seconds
    until all workers have exited.
    """
    def __init__(self, input_dir="data/input", output_dir="data/output", workers=2,
                 queue_size=8, config: Optional[CannyConfig] = None, report_every: float = 1.0):
        self.pipeline = ParallelPipeline(input_dir=input_dir, output_dir=output_dir,
                                         config=config, n_workers=workers, queue_size=queue_size)
        self.report_every = report_every

    def run_blocking(self) -> List[Dict]:
        self.pipeline.start()
        try:
            while not self.pipeline.wait_for_completion(timeout=self.report_every):
                self.pipeline.log_metrics()
        except KeyboardInterrupt:
            self.pipeline.stop()
        finally:
            self.pipeline.log_metrics()
        return list(self.pipeline.results)
