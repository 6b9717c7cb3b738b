"""Structured event logging.

Each event is one JSON object on a named stdlib logger, so log pipelines can
filter on ``event``. Set ``OBS_LOG_JSON=false`` for plain ``event {fields}``
lines during local development.

Never pass tokens, passwords or OTP codes as fields.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict


def _log_json_enabled() -> bool:
    return os.getenv("OBS_LOG_JSON", "true").strip().lower() != "false"


def _iso_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _safe_default(o: Any) -> str:
    try:
        return str(o)
    except Exception:
        return repr(o)


def _safe_json_dumps(obj: Dict[str, Any]) -> str:
    return json.dumps(obj, ensure_ascii=False, separators=(",", ":"), default=_safe_default)


def log_event(logger: logging.Logger, event: str, *, level: str = "info", **fields: Any) -> None:
    """Write a structured event log.

    - level: info|warning|error|debug
    - event: stable identifier (e.g., share_profile_resolved)
    """
    payload: Dict[str, Any] = {
        "ts": _iso_now(),
        "event": event,
        **fields,
    }
    msg = _safe_json_dumps(payload) if _log_json_enabled() else f"{event} {payload}"
    fn = getattr(logger, level, logger.info)
    fn(msg)
