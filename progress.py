from __future__ import annotations

import json
import logging
import os
import time
import threading
from pathlib import Path
from typing import Any, Dict, Optional

# ------------------------------
# Thread-safe global progress state
# ------------------------------

PROGRESS_LOCK = threading.Lock()


def _state_file_path() -> Path:
    configured = os.environ.get("PROGRESS_STATE_FILE")
    if configured:
        return Path(configured)
    return Path(__file__).resolve().parent / "logs" / "progress_state.json"


STATE_FILE = _state_file_path()
STATE_FILE_TMP = STATE_FILE.with_name(STATE_FILE.name + ".tmp")
_LAST_STATE_MTIME: float = 0.0


def _init_logger() -> logging.Logger:
    logger = logging.getLogger("packer.attempt_log")
    if logger.handlers:
        return logger

    log_path = Path(__file__).resolve().parent / "logs" / "packer_runs.log"
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(log_path, encoding="utf-8")
        formatter = logging.Formatter(
            "%(asctime)s [%(levelname)s] %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)
        logger.propagate = False
    except OSError:
        # No log file is not a reason to stop solving.
        logger.handlers.clear()
    return logger


ATTEMPT_LOGGER = _init_logger()


def _log_enabled() -> bool:
    return bool(ATTEMPT_LOGGER.handlers)


def _fmt_seconds(seconds: Optional[float]) -> Optional[str]:
    if seconds is None:
        return None
    try:
        return f"{float(seconds):.2f}s"
    except (TypeError, ValueError):
        return None


def _emit_log(event: str, **fields: Any) -> None:
    if not _log_enabled():
        return
    extras = [
        f"{key}={value}"
        for key, value in fields.items()
        if value is not None and value != ""
    ]
    try:
        if extras:
            ATTEMPT_LOGGER.info("%s | %s", event, " ".join(extras))
        else:
            ATTEMPT_LOGGER.info("%s", event)
    except Exception:
        # Logging failures must never bubble back to callers.
        pass


def log_attempt_detail(event: str, **fields: Any) -> None:
    """Append a free-form ``event | key=value`` line to the run log."""
    _emit_log(event, **fields)


LOG_STATE: Dict[str, Any] = {
    "run_start": None,
    "current": "",
    "current_start": None,
}

# Single source of truth for the UI
PROGRESS: Dict[str, Any] = {
    "status": "Idle",          # Idle | Solving | Solved | Error
    "regions_total": 0,        # regions in the puzzle
    "regions_done": 0,         # regions with a known result
    "solvable": 0,             # regions proven solvable so far
    "unknown": 0,              # regions that ran out of budget
    "current": "",             # e.g. "region 3 (12x5)"
    "percent": 0.0,            # 0..100 float
    "elapsed_start": None,     # t0 (float) when solving started
    "elapsed": 0.0,            # seconds snapshot
    "message": "",             # optional note
    "done": False,             # run completed
    "ok": None,                # success flag if known
    "run_id": 0,               # monotonically increasing identifier
}


def _persist_locked() -> None:
    global _LAST_STATE_MTIME
    try:
        STATE_FILE.parent.mkdir(parents=True, exist_ok=True)
        with STATE_FILE_TMP.open("w", encoding="utf-8") as fh:
            json.dump(PROGRESS, fh, ensure_ascii=False, separators=(",", ":"))
        STATE_FILE_TMP.replace(STATE_FILE)
        try:
            _LAST_STATE_MTIME = STATE_FILE.stat().st_mtime
        except OSError:
            _LAST_STATE_MTIME = time.time()
    except OSError:
        # Persistence must never break progress updates.
        pass


def _load_persisted_locked(force: bool = False) -> None:
    global _LAST_STATE_MTIME
    try:
        stat = STATE_FILE.stat()
    except OSError:
        return
    if not force and stat.st_mtime <= _LAST_STATE_MTIME:
        return
    try:
        with STATE_FILE.open("r", encoding="utf-8") as fh:
            data = json.load(fh)
    except (OSError, ValueError):
        return
    if not isinstance(data, dict):
        return
    for key in PROGRESS.keys():
        if key in data:
            PROGRESS[key] = data[key]
    _LAST_STATE_MTIME = stat.st_mtime


def _finalize_current_locked(now: Optional[float] = None, *, reason: Optional[str] = None) -> None:
    current = LOG_STATE.get("current")
    if not current:
        return
    if now is None:
        now = _now()
    start = LOG_STATE.get("current_start")
    duration = None
    if isinstance(start, (int, float)):
        duration = max(0.0, float(now) - float(start))
    _emit_log(
        "Region finished",
        region=current,
        duration=_fmt_seconds(duration),
        reason=reason,
    )
    LOG_STATE["current"] = ""
    LOG_STATE["current_start"] = None


def _log_current_transition_locked(new_current: str) -> None:
    prev = LOG_STATE.get("current") or ""
    if new_current == prev:
        return
    now = _now()
    if prev:
        _finalize_current_locked(now, reason="switch")
    LOG_STATE["current"] = new_current
    if new_current:
        LOG_STATE["current_start"] = now
        _emit_log("Region started", region=new_current)
    else:
        LOG_STATE["current_start"] = None

# ------------------------------
# Helpers
# ------------------------------

def _now() -> float:
    return time.time()

def _fmt_elapsed(seconds: float) -> str:
    seconds = max(0.0, float(seconds))
    if seconds < 60:
        return f"{int(seconds)}s"
    m, s = divmod(int(seconds), 60)
    if m < 60:
        return f"{m}m {s}s"
    h, m = divmod(m, 60)
    return f"{h}h {m}m"

def _as_int(v: Any) -> int:
    try:
        return max(0, int(v))
    except (TypeError, ValueError):
        return 0

def _recompute_percent_locked() -> None:
    total = PROGRESS.get("regions_total") or 0
    done = PROGRESS.get("regions_done") or 0
    PROGRESS["percent"] = (100.0 * done / total) if total else 0.0

def reset() -> None:
    with PROGRESS_LOCK:
        now = _now()
        _finalize_current_locked(now, reason="reset")
        try:
            current_run_id = int(PROGRESS.get("run_id", 0))
        except (TypeError, ValueError):
            current_run_id = 0
        PROGRESS.update({
            "status": "Idle",
            "regions_total": 0,
            "regions_done": 0,
            "solvable": 0,
            "unknown": 0,
            "current": "",
            "percent": 0.0,
            "elapsed_start": None,
            "elapsed": 0.0,
            "message": "",
            "done": False,
            "ok": None,
            "run_id": current_run_id + 1,
        })
        LOG_STATE.update({
            "run_start": None,
            "current": "",
            "current_start": None,
        })
        _emit_log("Progress reset")
        _persist_locked()

def start_timer() -> None:
    with PROGRESS_LOCK:
        now = _now()
        PROGRESS["elapsed_start"] = now
        PROGRESS["elapsed"] = 0.0
        LOG_STATE["run_start"] = now
        _emit_log("Run timer started")
        _persist_locked()

def _touch_elapsed_locked() -> None:
    t0 = PROGRESS.get("elapsed_start")
    if t0 is not None:
        PROGRESS["elapsed"] = _now() - float(t0)

# ------------------------------
# Setters (tolerant)
# ------------------------------

def set_status(v: Any) -> None:
    with PROGRESS_LOCK:
        PROGRESS["status"] = str(v)
        _persist_locked()

def set_regions_total(n: Any) -> None:
    with PROGRESS_LOCK:
        PROGRESS["regions_total"] = _as_int(n)
        _recompute_percent_locked()
        _emit_log("Regions queued", total=PROGRESS["regions_total"])
        _persist_locked()

def set_current(v: Any) -> None:
    with PROGRESS_LOCK:
        current = "" if v is None else str(v)
        PROGRESS["current"] = current
        _log_current_transition_locked(current)
        _persist_locked()

def record_region(outcome: Any, *, region: Any = None, reason: Any = None, nodes: Any = None) -> None:
    """Count one finished region and log its outcome."""
    outcome_str = str(getattr(outcome, "value", outcome) or "")
    with PROGRESS_LOCK:
        PROGRESS["regions_done"] = _as_int(PROGRESS.get("regions_done")) + 1
        if outcome_str == "solved":
            PROGRESS["solvable"] = _as_int(PROGRESS.get("solvable")) + 1
        elif outcome_str == "unknown":
            PROGRESS["unknown"] = _as_int(PROGRESS.get("unknown")) + 1
        _recompute_percent_locked()
        _touch_elapsed_locked()
        _emit_log(
            "Region result",
            region=region,
            outcome=outcome_str,
            reason=reason,
            nodes=nodes,
        )
        _persist_locked()

def set_elapsed(seconds: Any) -> None:
    try:
        f = float(seconds)
    except (TypeError, ValueError):
        f = 0.0
    with PROGRESS_LOCK:
        PROGRESS["elapsed"] = max(0.0, f)
        _persist_locked()

def set_done(ok: Any = None, *, reason: Any = None, message: Any = None) -> None:
    """Mark the run complete.

    A boolean ``ok`` decides the final status (``Solved``/``Error``); without
    it the status is left alone unless it is still idle, in which case the run
    counts as solved.  ``reason`` or ``message`` ends up in the ``message``
    field.
    """

    final_status: Optional[str] = None
    ok_flag: Optional[bool] = None
    if ok is not None:
        ok_flag = bool(ok)
        final_status = "Solved" if ok_flag else "Error"

    final_message = message if message is not None else reason

    with PROGRESS_LOCK:
        _touch_elapsed_locked()
        now = _now()
        if final_status is not None:
            PROGRESS["status"] = final_status
        elif PROGRESS.get("status") in ("", "Idle", None):
            PROGRESS["status"] = "Solved"
            ok_flag = True
        PROGRESS["percent"] = 100.0
        if final_message is not None:
            PROGRESS["message"] = str(final_message)
        PROGRESS["done"] = True
        if ok_flag is not None:
            PROGRESS["ok"] = ok_flag
        _finalize_current_locked(now, reason="run_complete")
        run_start = LOG_STATE.get("run_start")
        if isinstance(run_start, (int, float)):
            total = max(0.0, now - float(run_start))
        else:
            total = None
        LOG_STATE["run_start"] = None
        _emit_log(
            "Run finished",
            status=PROGRESS.get("status"),
            ok=PROGRESS.get("ok"),
            duration=_fmt_seconds(total),
            regions=PROGRESS.get("regions_total"),
            solvable=PROGRESS.get("solvable"),
            unknown=PROGRESS.get("unknown"),
            message=PROGRESS.get("message"),
        )
        _persist_locked()

# ------------------------------
# Snapshots for the UI
# ------------------------------

def snapshot() -> Dict[str, Any]:
    with PROGRESS_LOCK:
        _load_persisted_locked()
        if not PROGRESS.get("done"):
            _touch_elapsed_locked()
        return {
            "status": PROGRESS["status"],
            "regions_total": PROGRESS["regions_total"],
            "regions_done": PROGRESS["regions_done"],
            "solvable": PROGRESS["solvable"],
            "unknown": PROGRESS["unknown"],
            "current": PROGRESS["current"],
            "percent": PROGRESS["percent"],
            "elapsed": PROGRESS["elapsed"],
            "elapsed_str": _fmt_elapsed(PROGRESS["elapsed"]),
            "message": PROGRESS["message"],
            "done": PROGRESS["done"],
            "ok": PROGRESS["ok"],
            "run_id": PROGRESS["run_id"],
        }

def as_json() -> Dict[str, Any]:
    # Alias used by /progress3
    return snapshot()


with PROGRESS_LOCK:
    _load_persisted_locked(force=True)
