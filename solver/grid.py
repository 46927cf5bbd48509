# solver/grid.py
from typing import List, Tuple

from models import ShapeMask

FREE = -1


class OccupancyGrid:
    """Row-major occupancy buffer for one region.

    ``cells[y * width + x]`` is ``FREE`` or the tag of the instance covering
    that cell.  ``place``/``unplace`` are exact inverses when called with the
    same arguments, and the free counter is kept in step with them.
    """

    __slots__ = ("width", "height", "cells", "_free")

    def __init__(self, width: int, height: int):
        width = int(width)
        height = int(height)
        if width <= 0 or height <= 0:
            raise ValueError(f"grid dimensions must be positive, got {width}x{height}")
        self.width = width
        self.height = height
        self.cells: List[int] = [FREE] * (width * height)
        self._free = width * height

    def fits(self, variant: ShapeMask, x: int, y: int) -> bool:
        W = self.width
        H = self.height
        cells = self.cells
        for dx, dy in variant.cells:
            cx = x + dx
            cy = y + dy
            if cx < 0 or cy < 0 or cx >= W or cy >= H:
                return False
            if cells[cy * W + cx] != FREE:
                return False
        return True

    def place(self, variant: ShapeMask, x: int, y: int, tag: int) -> None:
        W = self.width
        cells = self.cells
        for dx, dy in variant.cells:
            cells[(y + dy) * W + x + dx] = tag
        self._free -= len(variant.cells)

    def unplace(self, variant: ShapeMask, x: int, y: int) -> None:
        W = self.width
        cells = self.cells
        for dx, dy in variant.cells:
            cells[(y + dy) * W + x + dx] = FREE
        self._free += len(variant.cells)

    def count_free(self) -> int:
        return self._free

    def is_free(self, x: int, y: int) -> bool:
        return self.cells[y * self.width + x] == FREE

    def snapshot(self) -> Tuple[int, ...]:
        return tuple(self.cells)

    def render(self) -> str:
        """Text picture of the grid; tags cycle through ``A``..``Z``, free cells are ``.``."""
        lines = []
        for y in range(self.height):
            row = self.cells[y * self.width:(y + 1) * self.width]
            lines.append("".join("." if v == FREE else chr(ord("A") + v % 26) for v in row))
        return "\n".join(lines)

    def __repr__(self) -> str:
        return f"OccupancyGrid({self.width}x{self.height}, free={self._free})"
