# src/Utils/image_loader.py
# Source stage: scan the input directory and push one envelope per image path.
# When the directory is exhausted emit one SENTINEL per downstream worker.

import os
import glob
import uuid
from typing import Iterable, List, Optional
from queue import Queue

from Utils.constants import SENTINEL, IMAGE_PATTERNS


class ImageLoader:
    """
    Source: pushes envelope with payload=path into output_queue, then emits
    SENTINEL equal to downstream_workers so all downstream workers exit cleanly.
    """
    stage_name = "loader"

    def __init__(self, input_dir: str = "data/input",
                 patterns: Optional[Iterable[str]] = None,
                 downstream_workers: int = 1):
        self.input_dir = input_dir
        self.patterns = list(patterns) if patterns else list(IMAGE_PATTERNS)
        self.downstream_workers = max(1, int(downstream_workers))

    def list_paths(self) -> List[str]:
        """Sorted, de-duplicated so each image is processed once and in a stable order."""
        found = set()
        for pat in self.patterns:
            found.update(glob.glob(os.path.join(self.input_dir, pat)))
        return sorted(found)

    def process(self, input_queue: Optional[Queue], output_queue: Queue) -> int:
        count = 0
        for fp in self.list_paths():
            env = {
                "id": str(uuid.uuid4()),
                "payload": fp,
                "meta": {"stage": 0, "orig_path": fp}
            }
            output_queue.put(env)
            count += 1
        for _ in range(self.downstream_workers):
            output_queue.put(SENTINEL)
        return count
