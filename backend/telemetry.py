"""Ledger telemetry: JSONL event log and windowed summary reader."""

import json
import os
from collections import deque
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

from config import telemetry_enabled

_BACKEND_DIR = Path(__file__).resolve().parent

LEDGER_TELEMETRY_PATH = _BACKEND_DIR / (
    os.getenv("LEDGER_TELEMETRY_LOG", "ledger_telemetry.log") or "ledger_telemetry.log"
)


def append_ledger_telemetry(event: str, payload: Optional[dict] = None) -> None:
    if not telemetry_enabled():
        return
    data = {
        "ts": datetime.now(timezone.utc).isoformat(),
        "event": " ".join((event or "event").split()),
        "payload": payload or {},
    }
    try:
        LEDGER_TELEMETRY_PATH.parent.mkdir(parents=True, exist_ok=True)
        with open(LEDGER_TELEMETRY_PATH, "a", encoding="utf-8") as f:
            f.write(json.dumps(data, ensure_ascii=False, default=str) + "\n")
    except OSError:
        # Telemetry must never break a scan or a write.
        pass


def _parse_iso_utc(ts_raw: str) -> Optional[datetime]:
    try:
        return datetime.fromisoformat(str(ts_raw).replace("Z", "+00:00"))
    except ValueError:
        return None


def read_ledger_telemetry_summary(hours: int = 24, limit: int = 6) -> dict:
    h = max(1, min(168, int(hours or 24)))
    n = max(1, min(25, int(limit or 6)))
    now_utc = datetime.now(timezone.utc)
    cutoff = now_utc - timedelta(hours=h)

    counts: dict[str, int] = {}
    recent: deque = deque(maxlen=n)
    parse_errors = 0
    unrecognized_total = 0
    file_exists = LEDGER_TELEMETRY_PATH.exists()

    if file_exists:
        with open(LEDGER_TELEMETRY_PATH, "r", encoding="utf-8") as f:
            for line in f:
                raw = (line or "").strip()
                if not raw:
                    continue
                try:
                    item = json.loads(raw)
                except ValueError:
                    parse_errors += 1
                    continue
                ts = _parse_iso_utc(str(item.get("ts") or ""))
                if not ts or ts < cutoff:
                    continue
                event = str(item.get("event") or "event")
                counts[event] = counts.get(event, 0) + 1
                payload = item.get("payload") if isinstance(item.get("payload"), dict) else {}
                if event == "scan_complete":
                    unrecognized_total += int(payload.get("unrecognized") or 0)
                recent.append({"ts": ts.isoformat(), "event": event, "payload": payload})

    scans = counts.get("scan_complete", 0)
    degraded = counts.get("scan_degraded", 0)
    return {
        "status": "ok",
        "now_utc": now_utc.isoformat(),
        "window_hours": h,
        "telemetry_enabled": telemetry_enabled(),
        "file_exists": file_exists,
        "file_path": str(LEDGER_TELEMETRY_PATH.name),
        "counts": counts,
        "degraded_scan_percent": round((degraded / scans) * 100.0, 2) if scans > 0 else 0.0,
        "rate_limited_count": counts.get("rate_limited", 0),
        "write_rejected_count": counts.get("write_rejected", 0),
        "unrecognized_accounts": unrecognized_total,
        "recent": list(recent),
        "parse_errors": parse_errors,
    }
