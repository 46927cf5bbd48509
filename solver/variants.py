# solver/variants.py
from typing import Dict, Iterable, List, Tuple

from models import ShapeCatalog, ShapeMask


def variants(mask: ShapeMask) -> Tuple[ShapeMask, ...]:
    """Return every distinct orientation of ``mask`` under rotation and reflection.

    Four times over, the current orientation and its horizontal and vertical
    flips are recorded (skipping any already seen), then the orientation is
    turned 90 degrees.  The original mask always comes first and the order is
    deterministic, so the search order built on top of it is too.
    """
    seen = set()
    out: List[ShapeMask] = []
    current = mask
    for _ in range(4):
        for candidate in (current, current.flip_horizontal(), current.flip_vertical()):
            if candidate not in seen:
                seen.add(candidate)
                out.append(candidate)
        current = current.rotate90()
    return tuple(out)


def variant_table(shape_ids: Iterable[int], catalog: ShapeCatalog) -> Dict[int, Tuple[ShapeMask, ...]]:
    """Compute variants once per shape id; ids missing from ``catalog`` are skipped."""
    table: Dict[int, Tuple[ShapeMask, ...]] = {}
    for sid in shape_ids:
        if sid in table or sid not in catalog:
            continue
        table[sid] = variants(catalog[sid])
    return table
