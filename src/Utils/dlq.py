import os
import json
import uuid
import time
from typing import Any, Dict, Optional

from Utils.log import setup_logger

logger = setup_logger("dlq")


def _default_dlq_dir() -> str:
    # project root = two levels up from src/Utils
    root = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))
    return os.path.join(root, "data", "dlq")


def _payload_info(payload: Any) -> Dict:
    """Describe the payload without dumping pixel data."""
    if isinstance(payload, str):
        return {"type": "path", "payload": payload}
    info = {"type": type(payload).__name__}
    shape = getattr(payload, "shape", None)
    if shape is not None:
        info["shape"] = list(shape)
    return info


def write_dlq(envelope: Any, error: str, exc_trace: Optional[str] = None,
              dlq_dir: Optional[str] = None, stage: Optional[str] = None) -> str:
    """
    Write a dead-letter entry as a JSON file and return its path.

    Stored fields: id, meta, stage, error, trace, ts, uuid, payload_info.
    """
    dlq_dir = dlq_dir or _default_dlq_dir()
    os.makedirs(dlq_dir, exist_ok=True)
    entry = {
        "id": None,
        "meta": None,
        "stage": stage,
        "error": error,
        "trace": exc_trace,
        "ts": time.time(),
        "uuid": uuid.uuid4().hex,
        "payload_info": None,
    }
    if isinstance(envelope, dict):
        entry["id"] = envelope.get("id")
        entry["meta"] = envelope.get("meta")
        entry["payload_info"] = _payload_info(envelope.get("payload"))
    else:
        entry["payload_info"] = _payload_info(envelope)

    fname = f"dlq_{int(entry['ts'])}_{entry['uuid']}.json"
    out_path = os.path.join(dlq_dir, fname)
    with open(out_path, "w", encoding="utf-8") as fh:
        json.dump(entry, fh, indent=2, default=str)
    logger.info(f"wrote dead letter id={entry['id']} -> {out_path}")
    return out_path
