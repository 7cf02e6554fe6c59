# app.py: run enumerations over HTTP; progress no-cache
from __future__ import annotations
import os
from typing import Any, Dict, Optional, Tuple

from flask import Flask, request, send_from_directory, jsonify

from config import CFG
from demand_parser import parse_counts, fmt_counts
from solver.orchestrator import run_enumeration

from progress import (
    as_json as progress_json,
    log_event, set_status, set_done,
)

BASE_DIR = os.path.dirname(os.path.abspath(__file__))

_OPTION_KEYS = ("width", "out", "log_every", "on_write_error", "empty_policy", "verify")

LAST_RESULT: Dict[str, Any] = {
    "ok": False,
    "tables": 0,
    "failed": 0,
    "alphabet_size": 0,
    "elapsed_str": "0s",
    "output_path": "",
    "reason": "no run yet",
    "census_tables": None,
}

app = Flask(__name__)


@app.after_request
def _no_cache_progress(resp):
    if request.path == "/progress":
        resp.headers["Cache-Control"] = "no-store, max-age=0"
        resp.headers["Pragma"] = "no-cache"
        resp.headers["Expires"] = "0"
    return resp


@app.route("/")
def index():
    return jsonify({
        "counts": CFG.SYMBOL_COUNTS,
        "width": CFG.ROW_WIDTH,
        "log_every": CFG.LOG_EVERY_N_TABLES,
        "on_write_error": CFG.ON_WRITE_ERROR,
        "empty_policy": CFG.EMPTY_POLICY,
        "last_result": LAST_RESULT,
    })


def _merge_like_mapping() -> Dict[str, Any]:
    merged: Dict[str, Any] = {}
    payload = request.get_json(silent=True)
    if isinstance(payload, dict):
        merged.update(payload)

    for k, v in request.form.to_dict(flat=True).items():
        merged.setdefault(k, v)
    for k, v in request.args.to_dict(flat=True).items():
        merged.setdefault(k, v)
    return merged


def _split_options(like: Dict[str, Any]) -> Tuple[Any, Dict[str, Any]]:
    """Separate run options from the symbol counts in a merged payload."""

    opts = {k: like.pop(k) for k in _OPTION_KEYS if k in like}
    counts_payload: Any = like.pop("counts") if "counts" in like else like
    return counts_payload, opts


def _as_bool(v: Any) -> Optional[bool]:
    if v is None:
        return None
    if isinstance(v, bool):
        return v
    return str(v).strip().lower() in ("1", "true", "yes", "on")


def _bad_request(reason: str):
    set_status("Error")
    set_done(False, reason=reason)
    LAST_RESULT.update({"ok": False, "reason": reason, "tables": 0, "failed": 0})
    return jsonify(LAST_RESULT), 400


@app.route("/solve", methods=["POST"])
def solve():
    like = _merge_like_mapping()
    counts_payload, opts = _split_options(like)
    ok, counts, err = parse_counts(counts_payload)
    if not ok:
        seen_keys = ", ".join(list(like.keys())[:8]) or "none"
        return _bad_request(f"Bad counts: {err} (saw keys: {seen_keys})")

    try:
        width = int(opts["width"]) if opts.get("width") not in (None, "") else None
        log_every = int(opts["log_every"]) if opts.get("log_every") not in (None, "") else None
    except (TypeError, ValueError):
        return _bad_request("Bad options: width and log_every must be integers")

    # output always lands under BASE_DIR (CFG.OUTPUT_FILE or the name derived from the counts)
    if opts.get("out"):
        log_event("Ignoring client output path", out=opts["out"])

    try:
        result = run_enumeration(
            counts,
            width,
            None,
            log_every=log_every,
            on_write_error=opts.get("on_write_error") or None,
            empty_policy=opts.get("empty_policy") or None,
            verify=_as_bool(opts.get("verify")),
            base_dir=BASE_DIR,
        )
    except ValueError as e:
        return _bad_request(f"Bad input for {fmt_counts(counts)}: {e}")

    LAST_RESULT.clear()
    LAST_RESULT.update(result.summary())
    return jsonify(LAST_RESULT), (200 if result.ok else 500)


@app.route("/download/tables")
def download_tables():
    path = LAST_RESULT.get("output_path") or ""
    if not path or not os.path.exists(path):
        return jsonify({"ok": False, "reason": "no output written yet"}), 404
    return send_from_directory(os.path.dirname(path), os.path.basename(path), as_attachment=True)


@app.route("/progress")
def progress():
    return jsonify(progress_json())


if __name__ == "__main__":
    app.run(debug=False)
