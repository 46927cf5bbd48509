from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, Optional, Sequence, Tuple

FILLED = "#"
EMPTY = "."


@dataclass(frozen=True)
class ShapeMask:
    """Immutable grid of filled/empty cells; equal masks are the same variant."""

    rows: Tuple[Tuple[bool, ...], ...]
    cells: Tuple[Tuple[int, int], ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        rows = tuple(tuple(bool(v) for v in row) for row in self.rows)
        if not rows or not rows[0]:
            raise ValueError("shape mask must have at least one row and column")
        width = len(rows[0])
        if any(len(row) != width for row in rows):
            raise ValueError("shape mask rows must all have the same length")
        object.__setattr__(self, "rows", rows)
        object.__setattr__(
            self,
            "cells",
            tuple((x, y) for y, row in enumerate(rows) for x, v in enumerate(row) if v),
        )

    @classmethod
    def from_rows(cls, lines: Iterable[str]) -> "ShapeMask":
        return cls(tuple(tuple(ch == FILLED for ch in line) for line in lines))

    @property
    def height(self) -> int:
        return len(self.rows)

    @property
    def width(self) -> int:
        return len(self.rows[0])

    @property
    def area(self) -> int:
        return len(self.cells)

    def rotate90(self) -> "ShapeMask":
        # (x, y) -> (height - 1 - y, x); four turns are the identity.
        h = self.height
        return ShapeMask(
            tuple(
                tuple(self.rows[h - 1 - c][r] for c in range(h))
                for r in range(self.width)
            )
        )

    def flip_horizontal(self) -> "ShapeMask":
        return ShapeMask(tuple(tuple(reversed(row)) for row in self.rows))

    def flip_vertical(self) -> "ShapeMask":
        return ShapeMask(tuple(reversed(self.rows)))

    def to_lines(self) -> Tuple[str, ...]:
        return tuple("".join(FILLED if v else EMPTY for v in row) for row in self.rows)


ShapeCatalog = Dict[int, ShapeMask]


@dataclass(frozen=True)
class RegionSpec:
    width: int
    height: int
    requirements: Tuple[Tuple[int, int], ...] = ()
    label: str = ""

    @classmethod
    def from_counts(cls, width: int, height: int, counts: Sequence[int], label: str = "") -> "RegionSpec":
        """Build a region from positional counts (index ``i`` is shape id ``i``)."""
        return cls(int(width), int(height), tuple((i, int(c)) for i, c in enumerate(counts)), label)

    @property
    def capacity(self) -> int:
        return max(0, self.width) * max(0, self.height)

    def describe(self) -> str:
        return self.label or f"{self.width}x{self.height}"


@dataclass(frozen=True)
class ShapeInstance:
    shape_id: int
    mask: ShapeMask
    area: int
    variants: Tuple[ShapeMask, ...]


class RegionOutcome(str, Enum):
    SOLVED = "solved"
    INFEASIBLE = "infeasible"
    UNKNOWN = "unknown"


@dataclass
class RegionResult:
    index: int
    outcome: RegionOutcome
    reason: str = ""
    nodes: int = 0
    elapsed: float = 0.0
    label: Optional[str] = None

    @property
    def solved(self) -> bool:
        return self.outcome is RegionOutcome.SOLVED

    def to_dict(self):
        return {
            "index": self.index,
            "region": self.label,
            "outcome": self.outcome.value,
            "reason": self.reason,
            "nodes": self.nodes,
            "elapsed": round(self.elapsed, 6),
        }
