# Orchestrator: runs a parsed puzzle through the evaluator with progress + logging
from __future__ import annotations

import logging
import time
from typing import List, Optional, Tuple

from config import CFG
from models import RegionOutcome, RegionResult
from progress import (
    log_attempt_detail,
    record_region,
    reset as progress_reset,
    set_current,
    set_done,
    set_elapsed,
    set_regions_total,
    set_status,
    start_timer,
)
from puzzle_parser import PuzzleInput
from solver.evaluator import evaluate_regions

LOGGER = logging.getLogger(__name__)


def _resolve_workers(workers: Optional[int]) -> int:
    if workers is None:
        workers = getattr(CFG, "WORKERS", 1)
    try:
        return max(1, int(workers))
    except (TypeError, ValueError):
        return 1


def solve_puzzle(puzzle: PuzzleInput, *, workers: Optional[int] = None) -> Tuple[int, List[RegionResult]]:
    """
    Evaluate every region of ``puzzle``.
    Returns: (solvable_count, results in region order)
    """
    t0 = time.time()
    workers = _resolve_workers(workers)

    progress_reset()
    start_timer()
    set_status("Solving")
    set_regions_total(len(puzzle.regions))
    log_attempt_detail(
        "Run setup",
        shapes=len(puzzle.catalog),
        regions=len(puzzle.regions),
        workers=workers,
        node_limit=CFG.NODE_LIMIT,
        time_limit=CFG.REGION_TIME_LIMIT or None,
        cp_sat_rescue=1 if CFG.CP_SAT_RESCUE else 0,
    )

    def _on_result(res: RegionResult) -> None:
        set_current(f"region {res.index} ({res.label})")
        record_region(res.outcome, region=res.label, reason=res.reason, nodes=res.nodes)
        if res.outcome is RegionOutcome.UNKNOWN:
            LOGGER.warning("region %d (%s) undecided: %s", res.index, res.label, res.reason)
        else:
            LOGGER.info("region %d (%s): %s (%s)", res.index, res.label, res.outcome.value, res.reason)

    try:
        results = evaluate_regions(puzzle.regions, puzzle.catalog, workers=workers, on_result=_on_result)
    except Exception as exc:
        reason = f"evaluator exception: {type(exc).__name__}: {exc}"
        set_done(False, reason=reason)
        raise

    solvable = sum(1 for r in results if r.solved)
    unknown = sum(1 for r in results if r.outcome is RegionOutcome.UNKNOWN)
    set_elapsed(time.time() - t0)
    note = f"{solvable} of {len(results)} regions solvable"
    if unknown:
        note += f", {unknown} undecided"
    set_done(True, reason=note)
    return solvable, results
