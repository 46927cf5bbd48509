# solver/backtrack.py
from __future__ import annotations

import logging
import time
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

from config import CFG
from models import ShapeInstance, ShapeMask
from solver.grid import OccupancyGrid

LOGGER = logging.getLogger(__name__)

# How many placements to try between wall-clock checks.
_CLOCK_EVERY = 256

Candidate = Tuple[int, ShapeMask, int, int]  # (variant index, variant, x, y)


class SearchBudgetExceeded(Exception):
    """Raised when a search runs out of nodes or time before reaching an answer."""

    def __init__(self, reason: str, stats: Dict[str, object]):
        super().__init__(reason)
        self.reason = reason
        self.stats = stats


class _Frame:
    __slots__ = ("index", "candidates", "placed")

    def __init__(self, index: int, candidates: Iterator[Candidate]):
        self.index = index
        self.candidates = candidates
        self.placed: Optional[Candidate] = None


def _candidates(
    grid: OccupancyGrid,
    variants: Sequence[ShapeMask],
    floor: Tuple[int, int, int] = (0, 0, 0),
) -> Iterator[Candidate]:
    """Yield fitting placements in variant, then row, then column order.

    ``fits`` is evaluated lazily against the grid as it is when the caller asks
    for the next candidate.  Keys ``(variant, y, x)`` below ``floor`` are
    skipped.
    """
    W = grid.width
    H = grid.height
    fv, fy, fx = floor
    for vi in range(fv, len(variants)):
        variant = variants[vi]
        y0 = fy if vi == fv else 0
        for y in range(y0, H - variant.height + 1):
            x0 = fx if (vi == fv and y == fy) else 0
            for x in range(x0, W - variant.width + 1):
                if grid.fits(variant, x, y):
                    yield vi, variant, x, y


class PackingSolver:
    """Existence-only backtracking search over a list of shape instances.

    Instances are placed in list order; the grid at depth ``i`` holds
    instances ``0..i-1``.  A depth fails straight away when the area still
    to be placed exceeds the free cells.  The search keeps its own stack of
    frames, so deep instance lists do not depend on the interpreter's
    recursion limit.
    """

    def __init__(
        self,
        node_limit: Optional[int] = None,
        time_limit: Optional[float] = None,
        symmetry_break: Optional[bool] = None,
    ):
        if node_limit is None:
            node_limit = CFG.NODE_LIMIT
        if time_limit is None:
            time_limit = CFG.REGION_TIME_LIMIT
        if symmetry_break is None:
            symmetry_break = CFG.SYMMETRY_BREAK
        self.node_limit = max(1, int(node_limit))
        self.time_limit = float(time_limit) if time_limit and time_limit > 0 else None
        self.symmetry_break = bool(symmetry_break)
        self.stats: Dict[str, object] = {}

    def _reset_stats(self, grid: OccupancyGrid, count: int) -> None:
        self.stats = {
            "board": (grid.width, grid.height),
            "instances": count,
            "node_limit": self.node_limit,
            "time_limit": self.time_limit,
            "nodes": 0,
            "pruned": 0,
            "symmetry_floors": 0,
            "limit_hit": False,
            "timed_out": False,
            "result": None,
            "reason": None,
        }

    def solve(self, grid: OccupancyGrid, instances: Sequence[ShapeInstance], start: int = 0) -> bool:
        n = len(instances)
        self._reset_stats(grid, n)
        if start >= n:
            self.stats["result"] = "solved"
            return True

        # remaining[i] = area of instances[i:]
        remaining = [0] * (n + 1)
        for i in range(n - 1, -1, -1):
            remaining[i] = remaining[i + 1] + instances[i].area

        if remaining[start] > grid.count_free():
            self.stats["pruned"] = 1
            self.stats.update({"result": "infeasible", "reason": "area"})
            return False

        deadline = (time.monotonic() + self.time_limit) if self.time_limit else None
        nodes = 0
        pruned = 0
        stack: List[_Frame] = [_Frame(start, _candidates(grid, instances[start].variants))]

        try:
            while stack:
                frame = stack[-1]
                if frame.placed is not None:
                    _, variant, x, y = frame.placed
                    grid.unplace(variant, x, y)
                    frame.placed = None

                cand = next(frame.candidates, None)
                if cand is None:
                    stack.pop()
                    continue

                nodes += 1
                if nodes > self.node_limit:
                    self.stats["limit_hit"] = True
                    raise SearchBudgetExceeded("node limit", self.stats)
                if deadline is not None and nodes % _CLOCK_EVERY == 0 and time.monotonic() >= deadline:
                    self.stats["timed_out"] = True
                    raise SearchBudgetExceeded("time limit", self.stats)

                _, variant, x, y = cand
                grid.place(variant, x, y, frame.index)
                frame.placed = cand

                nxt = frame.index + 1
                if nxt == n:
                    self.stats["result"] = "solved"
                    return True
                if remaining[nxt] > grid.count_free():
                    pruned += 1
                    continue

                floor = (0, 0, 0)
                if self.symmetry_break and instances[nxt].shape_id == instances[frame.index].shape_id:
                    floor = (cand[0], y, x)
                    self.stats["symmetry_floors"] = int(self.stats["symmetry_floors"]) + 1
                stack.append(_Frame(nxt, _candidates(grid, instances[nxt].variants, floor)))

            self.stats.update({"result": "infeasible", "reason": "exhausted"})
            return False
        except SearchBudgetExceeded as exc:
            self.stats.update({"result": "unknown", "reason": exc.reason})
            LOGGER.debug("search stopped after %d nodes: %s", nodes, exc.reason)
            raise
        finally:
            self.stats["nodes"] = min(nodes, self.node_limit)
            self.stats["pruned"] = pruned
