# app.py - puzzle upload + progress polling
from __future__ import annotations
import os
import time
from typing import Any, Dict, Optional

from flask import Flask, request, jsonify

from solver.orchestrator import solve_puzzle
from puzzle_parser import PuzzleFormatError, parse_puzzle
from io_files import write_summary
from progress import as_json as progress_json, reset as progress_reset, set_done

BASE_DIR = os.path.dirname(os.path.abspath(__file__))

LAST_RESULT: Dict[str, Any] = {
    "ok": False,
    "solvable": 0,
    "regions": 0,
    "results": [],
    "elapsed_str": "0s",
}

app = Flask(__name__)


@app.after_request
def _no_cache_progress(resp):
    if request.path == "/progress3":
        resp.headers["Cache-Control"] = "no-store, max-age=0"
        resp.headers["Pragma"] = "no-cache"
        resp.headers["Expires"] = "0"
    return resp


@app.route("/")
def index():
    return jsonify({
        "solve": "POST /solve with the puzzle text (raw body, form field 'puzzle' or JSON {'puzzle': ...})",
        "progress": "GET /progress3",
        "latest": "GET /result/latest",
    })


@app.route("/result/latest")
def result_latest():
    return jsonify(LAST_RESULT)


def _fmt_elapsed(seconds: float) -> str:
    if seconds < 1:
        return "0s"
    m, s = divmod(int(seconds), 60)
    if m == 0:
        return f"{s}s"
    h, m = divmod(m, 60)
    if h == 0:
        return f"{m}m {s}s"
    return f"{h}h {m}m {s}s"


def _puzzle_text_from_request() -> Optional[str]:
    payload = request.get_json(silent=True)
    if isinstance(payload, dict) and isinstance(payload.get("puzzle"), str):
        return payload["puzzle"]
    if "puzzle" in request.form:
        return request.form["puzzle"]
    upload = request.files.get("puzzle")
    if upload is not None:
        return upload.read().decode("utf-8", errors="replace")
    raw = request.get_data(as_text=True)
    return raw or None


def _bad_request(reason: str, t0: float):
    progress_reset()
    set_done(False, reason=reason)
    LAST_RESULT.update({
        "ok": False,
        "error": reason,
        "solvable": 0,
        "regions": 0,
        "results": [],
        "elapsed_str": _fmt_elapsed(time.time() - t0),
    })
    return jsonify({"ok": False, "error": reason}), 400


@app.route("/solve", methods=["POST"])
def solve():
    t0 = time.time()
    text = _puzzle_text_from_request()
    if not text:
        return _bad_request("Bad puzzle: empty request", t0)

    try:
        puzzle = parse_puzzle(text)
    except PuzzleFormatError as e:
        return _bad_request(f"Bad puzzle: {e}", t0)
    if not puzzle.regions:
        return _bad_request("Bad puzzle: no regions found", t0)

    solvable, results = solve_puzzle(puzzle)

    body = {
        "ok": True,
        "solvable": solvable,
        "regions": len(results),
        "results": [r.to_dict() for r in results],
        "elapsed_str": _fmt_elapsed(time.time() - t0),
    }
    try:
        write_summary(results, solvable, BASE_DIR)
    except OSError:
        app.logger.warning("could not write summary file", exc_info=True)

    LAST_RESULT.clear()
    LAST_RESULT.update(body)
    return jsonify(body)


@app.route("/progress3")
def progress3():
    return jsonify(progress_json())


if __name__ == "__main__":
    app.run(debug=False)
