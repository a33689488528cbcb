from __future__ import annotations

import json
import time
from typing import Any


def _now_iso_utc() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())


def lvl_rank(level: str) -> int:
    lv = str(level or "").strip().lower()
    if lv in ("", "info"):
        return 20
    if lv in ("warn", "warning"):
        return 30
    if lv in ("debug",):
        return 10
    if lv in ("trace",):
        return 0
    if lv in ("quiet", "off", "none"):
        return 100
    return 20


def log_json(*, level: str, want: str, event: str, **fields: Any) -> None:
    """
    Emit a single JSON log line to stdout when `want` clears the configured `level`.
    """
    if lvl_rank(level) > lvl_rank(want):
        return
    rec = {
        "ts": _now_iso_utc(),
        "level": str(want),
        "event": str(event),
        "fields": {str(k): v for k, v in fields.items()},
    }
    print(json.dumps(rec, sort_keys=True, separators=(",", ":")), flush=True)
