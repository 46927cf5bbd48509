# puzzle_parser.py
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from models import FILLED, EMPTY, RegionSpec, ShapeCatalog, ShapeMask

_SHAPE_HEADER_RE = re.compile(r"^(?P<id>\d+)\s*:$")
_REGION_RE = re.compile(r"^(?P<w>-?\d+)\s*x\s*(?P<h>-?\d+)\s*:(?P<counts>.*)$")
_ROW_CHARS = frozenset(FILLED + EMPTY)


class PuzzleFormatError(ValueError):
    def __init__(self, message: str, line_no: Optional[int] = None):
        if line_no is not None:
            message = f"line {line_no}: {message}"
        super().__init__(message)
        self.line_no = line_no


@dataclass
class PuzzleInput:
    catalog: ShapeCatalog = field(default_factory=dict)
    regions: List[RegionSpec] = field(default_factory=list)


def _is_shape_row(line: str) -> bool:
    return bool(line) and set(line) <= _ROW_CHARS


def _parse_counts(raw: str, line_no: int) -> Tuple[int, ...]:
    counts = []
    for tok in raw.split():
        try:
            counts.append(int(tok))
        except ValueError:
            raise PuzzleFormatError(f"bad count {tok!r}", line_no) from None
    return tuple(counts)


def parse_puzzle(text: str) -> PuzzleInput:
    """
    Parse shape blocks and region lines.

    Shape block::

        4:
        ###
        #..
        ###

    Region line: ``12x5: 1 0 1 0 3 2`` where the i-th count belongs to shape id i.
    Anything else is ignored.
    """
    out = PuzzleInput()
    lines = (text or "").splitlines()
    i = 0
    while i < len(lines):
        line = lines[i].strip()
        header = _SHAPE_HEADER_RE.match(line)
        if header:
            sid = int(header.group("id"))
            start = i + 1
            rows: List[str] = []
            i += 1
            while i < len(lines):
                row = lines[i].strip()
                if not _is_shape_row(row):
                    break
                rows.append(row)
                i += 1
            if rows:
                if any(len(r) != len(rows[0]) for r in rows):
                    raise PuzzleFormatError(f"shape {sid} has rows of different lengths", start + 1)
                out.catalog[sid] = ShapeMask.from_rows(rows)
            continue

        region = _REGION_RE.match(line)
        if region:
            counts = _parse_counts(region.group("counts"), i + 1)
            size = f"{region.group('w')}x{region.group('h')}"
            out.regions.append(
                RegionSpec.from_counts(int(region.group("w")), int(region.group("h")), counts, label=size)
            )
        i += 1
    return out
