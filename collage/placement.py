"""
Placement engine for the collage templates.

This module handles:
- Computing the ordered cell list for a template kind and member count
- The stable "<section>:<row>-<col>" cell key format
- Binding members to cells (the centre always goes to the first member)

Placement is deterministic: the same (template, count) always yields the
same keys in the same order.
"""

import re
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from loguru import logger

from .config import DEFAULT_TEMPLATE_SIZES, TemplateSizeConfig
from .errors import LayoutError
from .geometry import (
    circle_ring_capacity,
    clear_ring_spacing,
    hex_ring_capacity,
    ring_angle,
    ring_radius,
    spiral_walk,
)
from .models import Cell, LayoutBounds, Member, TemplateKind
from .utils import coerce_member_count


CENTER_SECTION = "center"
SPIRAL_SECTION = "spiral"
CENTER_KEY = "center:0-0"

# Lattice cells covered by the square template's centre block
CENTER_BLOCK = frozenset({(0, 0), (0, 1), (1, 0), (1, 1)})

_KEY_RE = re.compile(r"^(?P<section>[^:]+):(?P<row>-?\d+)-(?P<col>-?\d+)$")


def cell_key(section: str, row: int, col: int) -> str:
    """Build a cell key such as 'top:0-3' or 'spiral:-1-2'."""
    return f"{section}:{row}-{col}"


def parse_cell_key(key: str) -> Tuple[str, int, int]:
    """Split a cell key into (section, row, col)."""
    match = _KEY_RE.match(key or "")
    if not match:
        raise LayoutError(
            f"Malformed cell key: {key!r}",
            details={'key': key},
            suggestions=["Cell keys look like '<section>:<row>-<col>', e.g. 'top:0-3'"]
        )
    return match.group('section'), int(match.group('row')), int(match.group('col'))


def ring_section(ring: int) -> str:
    return f"ring{ring}"


def _center_cell(kind: TemplateKind) -> Cell:
    if kind == TemplateKind.SQUARE:
        return Cell(key=CENTER_KEY, index=0, is_center=True, row=0, col=0, row_span=2, col_span=2)
    return Cell(key=CENTER_KEY, index=0, is_center=True, row=0, col=0, angle=0.0, radius=0.0)


def _square_cells(count: int) -> List[Cell]:
    cells = [_center_cell(TemplateKind.SQUARE)]
    walk = spiral_walk()
    while len(cells) < count:
        row, col = next(walk)
        if (row, col) in CENTER_BLOCK:
            continue
        cells.append(Cell(
            key=cell_key(SPIRAL_SECTION, row, col),
            index=len(cells),
            row=row,
            col=col,
        ))
    return cells


def _hexagonal_cells(count: int, sizes: TemplateSizeConfig) -> List[Cell]:
    cells = [_center_cell(TemplateKind.HEXAGONAL)]
    spacing = clear_ring_spacing(sizes.regular + sizes.margin, sizes.center,
                                 sizes.regular, sizes.margin)
    ring = 1
    while len(cells) < count:
        capacity = hex_ring_capacity(ring)
        for i in range(capacity):
            if len(cells) >= count:
                break
            cells.append(Cell(
                key=cell_key(ring_section(ring), ring, i),
                index=len(cells),
                row=ring,
                col=i,
                angle=ring_angle(i, capacity),
                radius=ring_radius(ring, spacing),
            ))
        ring += 1
    return cells


def _circle_cells(count: int, sizes: TemplateSizeConfig) -> List[Cell]:
    cells = [_center_cell(TemplateKind.CIRCLE)]
    spacing = clear_ring_spacing(sizes.base_radius, sizes.center, sizes.regular, sizes.margin)
    ring = 1
    while len(cells) < count:
        radius = ring_radius(ring, spacing)
        capacity = circle_ring_capacity(radius, sizes.regular, sizes.margin)
        in_ring = min(count - len(cells), capacity)
        # a partial outer ring spreads its members around the whole circle
        for i in range(in_ring):
            cells.append(Cell(
                key=cell_key(ring_section(ring), ring, i),
                index=len(cells),
                row=ring,
                col=i,
                angle=ring_angle(i, in_ring),
                radius=radius,
            ))
        ring += 1
    return cells


def placements(template_kind,
               member_count,
               sizes: Optional[TemplateSizeConfig] = None) -> List[Cell]:
    """Ordered cells for `member_count` members in `template_kind`.

    Returns exactly `member_count` cells, the first one being the centre.
    Counts that are not positive integers produce an empty list.
    """
    kind = TemplateKind.parse(template_kind)
    count = coerce_member_count(member_count)
    if count == 0:
        if member_count not in (0, None):
            logger.debug(f"Treating member count {member_count!r} as empty placement")
        return []

    sizes = sizes or DEFAULT_TEMPLATE_SIZES['xlarge']

    if kind == TemplateKind.SQUARE:
        cells = _square_cells(count)
    elif kind == TemplateKind.HEXAGONAL:
        cells = _hexagonal_cells(count, sizes)
    else:
        cells = _circle_cells(count, sizes)

    logger.debug(f"Placed {len(cells)} cells for {kind.value} template")
    return cells


def bind_members(cells: Sequence[Cell],
                 members: Sequence[Member]) -> List[Tuple[Cell, Optional[Member]]]:
    """Pair each cell with the member at its index (None past the end)."""
    return [
        (cell, members[cell.index] if cell.index < len(members) else None)
        for cell in cells
    ]


class Layout:
    """The computed cells of one template for one member count"""

    def __init__(self, kind: TemplateKind, cells: Iterable[Cell]):
        self.kind = kind
        self.cells: Tuple[Cell, ...] = tuple(cells)
        self._by_key: Dict[str, Cell] = {c.key: c for c in self.cells}
        if len(self._by_key) != len(self.cells):
            raise LayoutError("Duplicate cell keys in layout", details={'template': kind.value})

    @classmethod
    def compute(cls, template_kind, member_count,
                sizes: Optional[TemplateSizeConfig] = None) -> "Layout":
        kind = TemplateKind.parse(template_kind)
        return cls(kind, placements(kind, member_count, sizes))

    def __len__(self) -> int:
        return len(self.cells)

    def __iter__(self):
        return iter(self.cells)

    def __contains__(self, key: str) -> bool:
        return key in self._by_key

    @property
    def keys(self) -> List[str]:
        return [c.key for c in self.cells]

    def cell(self, key: str) -> Cell:
        try:
            return self._by_key[key]
        except KeyError:
            raise LayoutError(f"Unknown cell key for {self.kind.value} layout: {key}",
                              details={'key': key, 'template': self.kind.value})

    def index_of(self, key: str) -> int:
        """Member index bound to `key`, or -1 when the key is not in this layout."""
        cell = self._by_key.get(key)
        return cell.index if cell is not None else -1

    def bounds(self) -> Optional[LayoutBounds]:
        """Lattice bounds of a square layout including the centre block."""
        if not self.cells or self.kind != TemplateKind.SQUARE:
            return None
        rows, cols = [], []
        for c in self.cells:
            rows.extend((c.row, c.row + c.row_span - 1))
            cols.extend((c.col, c.col + c.col_span - 1))
        return LayoutBounds(min(rows), max(rows), min(cols), max(cols))
