import os
import cv2
import uuid
import numpy as np
from typing import Any, Dict

from Utils.envelope import open_envelope, close_envelope

WHITE = (255, 255, 255)
# BGR
GREEN = (0, 255, 0)
BLUE = (255, 0, 0)


def edges_to_image(mask: np.ndarray, invert: bool = True) -> np.ndarray:
    """Boolean grid -> uint8 image. invert=True draws edges black on white."""
    mask = np.asarray(mask, dtype=bool)
    if invert:
        return np.where(mask, 0, 255).astype(np.uint8)
    return np.where(mask, 255, 0).astype(np.uint8)


def strong_weak_overlay(strong: np.ndarray, weak: np.ndarray) -> np.ndarray:
    """Strong pixels green, weak pixels blue, everything else white (BGR)."""
    h, w = strong.shape
    img = np.full((h, w, 3), WHITE, dtype=np.uint8)
    img[np.asarray(weak, dtype=bool)] = BLUE
    img[np.asarray(strong, dtype=bool)] = GREEN
    return img


class EdgeMapWriter:
    """
    Save a CannyResult as PNG files. Returns envelope with payload = dict of
    written paths keyed by "edges", "strong", "weak", "overlay".
    """
    stage_name = "writer"

    def __init__(self, output_dir: str):
        self.output_dir = os.path.abspath(output_dir)
        os.makedirs(self.output_dir, exist_ok=True)

    def _base_name(self, env: Dict) -> str:
        meta = env.get("meta", {})
        orig = meta.get("orig_path") or meta.get("filename")
        if isinstance(orig, str):
            return os.path.splitext(os.path.basename(orig))[0]
        return f"output_{uuid.uuid4().hex[:8]}"

    def _write(self, path: str, img: np.ndarray):
        ok = cv2.imwrite(path, img)
        if not ok:
            raise IOError(f"EdgeMapWriter: failed to write {path}")

    def process(self, envelope: Any) -> Dict:
        env = open_envelope(envelope)
        result = env.get("payload")
        if result is None:
            raise ValueError("EdgeMapWriter: payload is None")

        base = self._base_name(env)
        images = {
            "edges": edges_to_image(result.edges),
            "strong": edges_to_image(result.strong),
            "weak": edges_to_image(result.weak),
            "overlay": strong_weak_overlay(result.strong, result.weak),
        }
        written = {}
        for kind, img in images.items():
            out_path = os.path.join(self.output_dir, f"{base}_{kind}.png")
            self._write(out_path, img)
            written[kind] = out_path

        env["meta"]["summary"] = result.summary()
        env["meta"]["filename"] = f"{base}_edges.png"
        return close_envelope(env, written)
