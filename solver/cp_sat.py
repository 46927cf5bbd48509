import logging
import time
from collections import defaultdict
from typing import Dict, List, Sequence, Tuple

from ortools.sat.python import cp_model as _cp

from config import CFG
from models import ShapeInstance, ShapeMask

LOGGER = logging.getLogger(__name__)

REASON_INFEASIBLE = "Proven infeasible"
REASON_TIMEBOX = "Stopped before solution (timebox)"
REASON_INVALID = "Model invalid (configuration error)"


def _group_instances(instances: Sequence[ShapeInstance]) -> Dict[int, Tuple[int, Tuple[ShapeMask, ...]]]:
    groups: Dict[int, Tuple[int, Tuple[ShapeMask, ...]]] = {}
    for inst in instances:
        count, _ = groups.get(inst.shape_id, (0, inst.variants))
        groups[inst.shape_id] = (count + 1, inst.variants)
    return groups


def build_options(W: int, H: int, variants: Sequence[ShapeMask]) -> List[Tuple[int, int, int]]:
    """All ``(variant index, x, y)`` placements of ``variants`` inside an empty W x H board."""
    out: List[Tuple[int, int, int]] = []
    for vi, variant in enumerate(variants):
        for y in range(H - variant.height + 1):
            for x in range(W - variant.width + 1):
                out.append((vi, x, y))
    return out


def try_pack_cp_sat(
    W: int,
    H: int,
    instances: Sequence[ShapeInstance],
    max_seconds: float = 30.0,
) -> Tuple[bool, str]:
    """Decide the packing with CP-SAT.

    One Boolean per (shape id, variant, position); every cell is covered at
    most once and each shape id is placed exactly as many times as it has
    instances.  Returns ``(ok, reason)``; ``reason`` is empty on success.
    """
    t0 = time.time()
    if W <= 0 or H <= 0:
        return False, "Bad grid: W/H must be positive"
    if not instances:
        return True, ""

    m = _cp.CpModel()
    cell_to_vars: Dict[int, List[_cp.IntVar]] = defaultdict(list)

    for sid, (count, variants) in _group_instances(instances).items():
        options = build_options(W, H, variants)
        if not options:
            return False, REASON_INFEASIBLE
        group_vars = []
        for vi, x, y in options:
            b = m.NewBoolVar(f"p_{sid}_{vi}_{x}_{y}")
            group_vars.append(b)
            for dx, dy in variants[vi].cells:
                cell_to_vars[(y + dy) * W + x + dx].append(b)
        m.Add(sum(group_vars) == count)

    for vars_here in cell_to_vars.values():
        if len(vars_here) > 1:
            m.AddAtMostOne(vars_here)

    solver = _cp.CpSolver()
    solver.parameters.max_time_in_seconds = float(max_seconds)
    solver.parameters.max_memory_in_mb = int(getattr(CFG, "MAX_MEMORY_MB", 2048))
    solver.parameters.num_search_workers = max(1, int(getattr(CFG, "WORKERS", 1)))
    solver.parameters.log_search_progress = False

    res = solver.Solve(m)
    LOGGER.debug(
        "cp-sat %dx%d with %d instances: %s in %.2fs",
        W, H, len(instances), solver.StatusName(res), time.time() - t0,
    )

    if res in (_cp.OPTIMAL, _cp.FEASIBLE):
        return True, ""
    if res == _cp.INFEASIBLE:
        return False, REASON_INFEASIBLE
    if res == _cp.MODEL_INVALID:
        return False, REASON_INVALID
    return False, REASON_TIMEBOX
