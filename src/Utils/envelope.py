from typing import Any, Dict


def open_envelope(envelope: Any) -> Dict:
    """
    Accept either an envelope dict or a bare payload. Returns a shallow copy so
    a stage never mutates the envelope it was handed.
    """
    if isinstance(envelope, dict) and "payload" in envelope:
        env = dict(envelope)
        env["meta"] = dict(env.get("meta") or {})
        return env
    return {"id": None, "payload": envelope, "meta": {}}


def close_envelope(env: Dict, payload: Any) -> Dict:
    env["payload"] = payload
    env.setdefault("meta", {})
    env["meta"]["stage"] = env["meta"].get("stage", 0) + 1
    return env
