from __future__ import annotations

import json
import logging
import os
import sys
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

_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"
_LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


def _init_logger() -> logging.Logger:
    logger = logging.getLogger("enumerator.run_log")
    if logger.handlers:
        return logger

    log_path = Path(__file__).resolve().parent / "logs" / "enumerator.log"
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(log_path, encoding="utf-8")
        handler.setFormatter(logging.Formatter(_LOG_FORMAT, datefmt=_LOG_DATEFMT))
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)
        logger.propagate = False
    except Exception:
        # If the logger cannot be initialised we silently continue; progress
        # tracking should not break the search.
        logger.handlers.clear()
    return logger


RUN_LOGGER = _init_logger()


def enable_console(stream=None) -> None:
    """Mirror run log lines to the console (used by the CLI)."""

    target = stream if stream is not None else sys.stdout
    for h in RUN_LOGGER.handlers:
        if isinstance(h, logging.StreamHandler) and getattr(h, "stream", None) is target:
            return
    handler = logging.StreamHandler(target)
    handler.setFormatter(logging.Formatter(_LOG_FORMAT, datefmt=_LOG_DATEFMT))
    RUN_LOGGER.addHandler(handler)
    RUN_LOGGER.setLevel(logging.INFO)
    RUN_LOGGER.propagate = False


def _log_enabled() -> bool:
    return bool(RUN_LOGGER.handlers)


def _fmt_seconds(seconds: Optional[float]) -> Optional[str]:
    if seconds is None:
        return None
    try:
        return f"{float(seconds):.2f}s"
    except Exception:
        return None


def _emit_log(event: str, level: int = logging.INFO, **fields: Any) -> None:
    if not _log_enabled():
        return
    extras = [
        f"{key}={value}"
        for key, value in fields.items()
        if value is not None and value != ""
    ]
    try:
        if extras:
            RUN_LOGGER.log(level, "%s | %s", event, " ".join(extras))
        else:
            RUN_LOGGER.log(level, "%s", event)
    except Exception:
        # Logging failures must never bubble back to callers.
        pass


def log_event(event: str, **fields: Any) -> None:
    _emit_log(event, **fields)


def log_error(event: str, **fields: Any) -> None:
    _emit_log(event, level=logging.ERROR, **fields)


LOG_STATE: Dict[str, Any] = {
    "run_start": None,
    "phase": "",
    "phase_start": None,
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
    except Exception:
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
    except Exception:
        return
    if not isinstance(data, dict):
        return
    for key in PROGRESS.keys():
        if key in data:
            PROGRESS[key] = data[key]
    _LAST_STATE_MTIME = stat.st_mtime


def _log_phase_transition_locked(new_phase: str) -> None:
    prev_phase = LOG_STATE.get("phase") or ""
    if new_phase == prev_phase:
        return
    now = _now()
    if prev_phase and LOG_STATE.get("phase_start"):
        duration = max(0.0, now - float(LOG_STATE["phase_start"]))
        _emit_log("Phase finished", phase=prev_phase, duration=_fmt_seconds(duration))
    LOG_STATE["phase"] = new_phase
    LOG_STATE["phase_start"] = now
    if new_phase:
        _emit_log("Phase started", phase=new_phase)


# Single source of truth for /progress
PROGRESS: Dict[str, Any] = {
    "status": "Idle",          # Idle | Running | Done | Error
    "phase": "",               # alphabet | search | census
    "counts": "",              # e.g. "A=3,B=3"
    "width": 0,                # row width cap
    "alphabet_size": 0,        # canonical rows generated
    "tables_found": 0,         # tables written so far
    "tables_failed": 0,        # tables skipped after a write failure
    "elapsed_start": None,     # t0 (float) when the run started
    "elapsed": 0.0,            # seconds snapshot
    "message": "",             # optional note
    "output_path": "",         # destination file
    "done": False,             # run completed
    "ok": None,                # success flag if known
    "run_id": 0,               # monotonically increasing identifier
}

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

def reset() -> None:
    with PROGRESS_LOCK:
        try:
            current_run_id = int(PROGRESS.get("run_id", 0))
        except Exception:
            current_run_id = 0
        PROGRESS.update({
            "status": "Idle",
            "phase": "",
            "counts": "",
            "width": 0,
            "alphabet_size": 0,
            "tables_found": 0,
            "tables_failed": 0,
            "elapsed_start": None,
            "elapsed": 0.0,
            "message": "",
            "output_path": "",
            "done": False,
            "ok": None,
            "run_id": current_run_id + 1,
        })
        LOG_STATE.update({"phase": "", "phase_start": None, "run_start": None})
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

def _to_count(n: Any) -> int:
    try:
        return max(0, int(n))
    except Exception:
        return 0

def set_status(v: Any) -> None:
    with PROGRESS_LOCK:
        PROGRESS["status"] = str(v)
        _persist_locked()

def set_phase(v: Any) -> None:
    with PROGRESS_LOCK:
        phase_str = "" if v is None else str(v)
        PROGRESS["phase"] = phase_str
        _log_phase_transition_locked(phase_str)
        _persist_locked()

def set_run_config(counts: Any, width: Any, output_path: Any) -> None:
    with PROGRESS_LOCK:
        PROGRESS["counts"] = "" if counts is None else str(counts)
        PROGRESS["width"] = _to_count(width)
        PROGRESS["output_path"] = "" if output_path is None else str(output_path)
        _persist_locked()

def set_alphabet_size(n: Any) -> None:
    with PROGRESS_LOCK:
        PROGRESS["alphabet_size"] = _to_count(n)
        _persist_locked()

def set_tables_found(n: Any, failed: Any = None) -> None:
    with PROGRESS_LOCK:
        PROGRESS["tables_found"] = _to_count(n)
        if failed is not None:
            PROGRESS["tables_failed"] = _to_count(failed)
        _touch_elapsed_locked()
        _persist_locked()

def set_done(ok: Any = None, *, reason: Any = None) -> None:
    """Mark the run complete.

    ``ok`` picks the final status (``"Done"`` or ``"Error"``); when omitted the
    run counts as successful.  ``reason`` is surfaced via the ``message`` field.
    """

    ok_flag = True if ok is None else bool(ok)

    with PROGRESS_LOCK:
        _touch_elapsed_locked()
        now = _now()
        PROGRESS["status"] = "Done" if ok_flag else "Error"
        PROGRESS["ok"] = ok_flag
        PROGRESS["done"] = True
        if reason is not None:
            PROGRESS["message"] = str(reason)
        _log_phase_transition_locked("")
        run_start = LOG_STATE.get("run_start")
        total = max(0.0, now - float(run_start)) if isinstance(run_start, (int, float)) else None
        LOG_STATE["run_start"] = None
        _emit_log(
            "Run finished",
            level=logging.INFO if ok_flag else logging.ERROR,
            status=PROGRESS.get("status"),
            tables=PROGRESS.get("tables_found"),
            failed=PROGRESS.get("tables_failed") or None,
            duration=_fmt_seconds(total),
            output=PROGRESS.get("output_path"),
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
        snap = {k: v for k, v in PROGRESS.items() if k != "elapsed_start"}
        snap["elapsed_str"] = _fmt_elapsed(PROGRESS["elapsed"])
        return snap

def as_json() -> Dict[str, Any]:
    # Alias used by /progress
    return snapshot()


with PROGRESS_LOCK:
    _load_persisted_locked(force=True)
