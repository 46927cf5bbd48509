# solver/evaluator.py
from __future__ import annotations

import logging
import multiprocessing as mp
import time
from concurrent.futures import ProcessPoolExecutor, as_completed
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from config import CFG
from models import RegionOutcome, RegionResult, RegionSpec, ShapeCatalog, ShapeInstance
from solver.backtrack import PackingSolver, SearchBudgetExceeded
from solver.grid import OccupancyGrid
from solver.variants import variant_table

LOGGER = logging.getLogger(__name__)

ResultCallback = Callable[[RegionResult], None]

# CFG fields a worker process must see as the parent has them.
_WORKER_SETTINGS = (
    "NODE_LIMIT",
    "REGION_TIME_LIMIT",
    "SYMMETRY_BREAK",
    "CP_SAT_RESCUE",
    "CP_SAT_SECONDS",
    "MAX_MEMORY_MB",
)


def _merge_requirements(region: RegionSpec) -> List[Tuple[int, int]]:
    """Sum counts per shape id, keeping the order of first appearance."""
    merged: Dict[int, int] = {}
    for sid, count in region.requirements:
        count = int(count)
        if count <= 0:
            continue
        merged[int(sid)] = merged.get(int(sid), 0) + count
    return list(merged.items())


def expand_instances(region: RegionSpec, catalog: ShapeCatalog) -> Tuple[Optional[List[ShapeInstance]], Optional[int]]:
    """Expand ``region`` into shape instances.

    Returns ``(instances, None)``, or ``(None, shape_id)`` naming the first
    required shape that the catalog does not define.
    """
    wanted = _merge_requirements(region)
    for sid, _ in wanted:
        if sid not in catalog:
            return None, sid
    table = variant_table((sid for sid, _ in wanted), catalog)
    instances: List[ShapeInstance] = []
    for sid, count in wanted:
        mask = catalog[sid]
        inst = ShapeInstance(sid, mask, mask.area, table[sid])
        instances.extend([inst] * count)
    return instances, None


def order_instances(instances: Sequence[ShapeInstance]) -> List[ShapeInstance]:
    # Larger pieces first; sorted() is stable, so copies of one shape stay together.
    return sorted(instances, key=lambda inst: -inst.area)


def _rescue(region: RegionSpec, instances: Sequence[ShapeInstance]) -> Tuple[RegionOutcome, str]:
    from solver.cp_sat import REASON_INFEASIBLE, try_pack_cp_sat  # ortools only loaded when needed

    ok, reason = try_pack_cp_sat(
        region.width,
        region.height,
        instances,
        max_seconds=float(getattr(CFG, "CP_SAT_SECONDS", 30.0)),
    )
    if ok:
        return RegionOutcome.SOLVED, "cp-sat"
    if reason == REASON_INFEASIBLE:
        return RegionOutcome.INFEASIBLE, "cp-sat: " + reason
    return RegionOutcome.UNKNOWN, "cp-sat: " + reason


def evaluate_region_outcome(
    region: RegionSpec,
    catalog: ShapeCatalog,
    *,
    index: int = 0,
    solver: Optional[PackingSolver] = None,
    cp_sat_rescue: Optional[bool] = None,
) -> RegionResult:
    """Decide one region and say how the answer was reached."""
    t0 = time.time()
    label = region.describe()

    def _result(outcome: RegionOutcome, reason: str, nodes: int = 0) -> RegionResult:
        return RegionResult(index, outcome, reason, nodes, time.time() - t0, label)

    if region.width <= 0 or region.height <= 0:
        return _result(RegionOutcome.INFEASIBLE, "bad dimensions")

    instances, missing = expand_instances(region, catalog)
    if instances is None:
        return _result(RegionOutcome.INFEASIBLE, f"missing shape {missing}")
    if not instances:
        return _result(RegionOutcome.SOLVED, "nothing to place")

    required = sum(inst.area for inst in instances)
    if required > region.capacity:
        return _result(RegionOutcome.INFEASIBLE, "area exceeds capacity")

    ordered = order_instances(instances)
    grid = OccupancyGrid(region.width, region.height)
    solver = solver or PackingSolver()
    try:
        ok = solver.solve(grid, ordered, 0)
    except SearchBudgetExceeded as exc:
        nodes = int(exc.stats.get("nodes") or 0)
        if cp_sat_rescue is None:
            cp_sat_rescue = bool(getattr(CFG, "CP_SAT_RESCUE", False))
        if not cp_sat_rescue:
            return _result(RegionOutcome.UNKNOWN, exc.reason, nodes)
        LOGGER.info("region %s: backtracking stopped (%s), trying cp-sat", label, exc.reason)
        outcome, reason = _rescue(region, ordered)
        return _result(outcome, reason, nodes)

    nodes = int(solver.stats.get("nodes") or 0)
    if ok:
        if LOGGER.isEnabledFor(logging.DEBUG):
            LOGGER.debug("region %s solved after %d nodes\n%s", label, nodes, grid.render())
        return _result(RegionOutcome.SOLVED, "backtracking", nodes)
    return _result(RegionOutcome.INFEASIBLE, "search exhausted", nodes)


def evaluate_region(region: RegionSpec, catalog: ShapeCatalog) -> bool:
    return evaluate_region_outcome(region, catalog).solved


def _worker_settings() -> Dict[str, Any]:
    settings = {name: getattr(CFG, name) for name in _WORKER_SETTINGS}
    # One CP-SAT search thread per worker process.
    settings["WORKERS"] = 1
    return settings


def _init_worker(settings: Dict[str, Any]) -> None:
    for name, value in settings.items():
        setattr(CFG, name, value)


def _evaluate_indexed(args: Tuple[int, RegionSpec, ShapeCatalog]) -> RegionResult:
    index, region, catalog = args
    return evaluate_region_outcome(region, catalog, index=index)


def evaluate_regions(
    regions: Sequence[RegionSpec],
    catalog: ShapeCatalog,
    *,
    workers: int = 1,
    on_result: Optional[ResultCallback] = None,
) -> List[RegionResult]:
    """Evaluate every region, in worker processes when ``workers > 1``.

    ``on_result`` sees each result as soon as it is known; the returned list
    is in region order.
    """
    results: List[RegionResult] = []
    tasks = [(i, region, catalog) for i, region in enumerate(regions)]

    if workers > 1 and len(tasks) > 1:
        with ProcessPoolExecutor(
            max_workers=workers,
            mp_context=mp.get_context("spawn"),
            initializer=_init_worker,
            initargs=(_worker_settings(),),
        ) as executor:
            futures = [executor.submit(_evaluate_indexed, task) for task in tasks]
            for fut in as_completed(futures):
                res = fut.result()
                results.append(res)
                if on_result is not None:
                    on_result(res)
    else:
        for task in tasks:
            res = _evaluate_indexed(task)
            results.append(res)
            if on_result is not None:
                on_result(res)

    results.sort(key=lambda r: r.index)
    return results


def count_solvable(
    regions: Sequence[RegionSpec],
    catalog: ShapeCatalog,
    *,
    workers: int = 1,
    on_result: Optional[ResultCallback] = None,
) -> int:
    return sum(1 for res in evaluate_regions(regions, catalog, workers=workers, on_result=on_result) if res.solved)
