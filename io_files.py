"""Helpers for reading puzzle files and writing run summaries to disk."""

from __future__ import annotations

import json
import os
from typing import Sequence

from config import CFG
from models import RegionOutcome, RegionResult
from puzzle_parser import PuzzleInput, parse_puzzle


def _resolve_output_path(base_dir: str, configured_name: str, fallback: str) -> str:
    """Return the absolute path where an output artifact should be written."""

    name = (configured_name or "").strip() or fallback
    if os.path.isabs(name):
        return name
    return os.path.join(base_dir, name)


def load_puzzle(path: str) -> PuzzleInput:
    """Read and parse a puzzle text file."""

    with open(path, "r", encoding="utf-8") as fh:
        return parse_puzzle(fh.read())


def write_summary(results: Sequence[RegionResult], solvable: int, base_dir: str) -> str:
    """Write per-region outcomes and the solvable count to the configured JSON file."""

    path = _resolve_output_path(base_dir, CFG.SUMMARY_OUT, "summary.json")
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)

    payload = {
        "solvable": int(solvable),
        "regions": len(results),
        "unknown": sum(1 for r in results if r.outcome is RegionOutcome.UNKNOWN),
        "results": [r.to_dict() for r in results],
    }
    with open(path, "w", encoding="utf-8") as fh:
        json.dump(payload, fh, indent=2)
        fh.write("\n")
    return path


__all__ = ["load_puzzle", "write_summary"]
