import os
import cv2
import hashlib
import numpy as np
from typing import Any, Dict

from PIL import Image, ImageOps, UnidentifiedImageError

from Utils.envelope import open_envelope, close_envelope
from Utils.grid import as_grid

# refuse images that would not fit comfortably in memory
MAX_PIXELS = 50_000_000


def _make_id_for_path(path: str) -> str:
    try:
        stat = os.stat(path)
        s = f"{path}|{stat.st_size}|{int(stat.st_mtime)}"
    except OSError:
        s = f"{path}|{os.path.basename(path)}"
    return hashlib.sha1(s.encode()).hexdigest()


def read_grayscale(path: str, max_pixels: int = MAX_PIXELS) -> np.ndarray:
    """
    Read an image file as a grayscale grid. Pillow first (honours EXIF
    orientation), OpenCV for formats Pillow cannot open.
    """
    gray = None
    try:
        with Image.open(path) as pil:
            if pil.width * pil.height > max_pixels:
                raise ValueError(f"image too large: {pil.width}x{pil.height} > {max_pixels} pixels")
            gray = np.asarray(ImageOps.exif_transpose(pil).convert("L"), dtype=np.uint8)
    except (UnidentifiedImageError, OSError):
        gray = None

    if gray is None:
        gray = cv2.imread(path, cv2.IMREAD_GRAYSCALE)
        if gray is None:
            raise ValueError(f"cannot read image: {path}")
        if gray.size > max_pixels:
            raise ValueError(f"image too large: {gray.shape[1]}x{gray.shape[0]} > {max_pixels} pixels")
    return as_grid(gray)


class GrayscaleReader:
    """
    Input: envelope with payload = path (str)
    Output: envelope with payload = grayscale grid and id/meta updated.
    """
    stage_name = "reader"

    def __init__(self, max_pixels: int = MAX_PIXELS):
        self.max_pixels = int(max_pixels)

    def process(self, envelope: Any) -> Dict:
        env = open_envelope(envelope)
        path = env.get("payload")
        if not isinstance(path, str):
            raise ValueError("GrayscaleReader expects envelope.payload to be a file path string")

        grid = read_grayscale(path, self.max_pixels)
        if env.get("id") is None:
            env["id"] = _make_id_for_path(path)
        env["meta"]["orig_path"] = env["meta"].get("orig_path", path)
        env["meta"]["shape"] = grid.shape
        return close_envelope(env, grid)
