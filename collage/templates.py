"""
Declarative layout scripts.

A script is the ordered list of (cell key, destination) pairs the composer
paints, generated once per template and member count. Keeping the layout
here means the render loop never needs to know which template it draws.
"""

import math
from dataclasses import dataclass, field
from typing import List, Optional, Union

from loguru import logger

from .config import DEFAULT_TEMPLATE_SIZES, TemplateSizeConfig
from .errors import LayoutError
from .models import CellShape, GridSlot, RingSlot, TemplateKind
from .placement import CENTER_KEY, Layout, cell_key, parse_cell_key


@dataclass
class ScriptLayout:
    """Grid geometry plus the ordered slots to paint"""
    cols: int
    rows: int
    slots: List[Union[GridSlot, RingSlot]] = field(default_factory=list)
    base_size: Optional[float] = None
    target_width_in: Optional[float] = None
    target_height_in: Optional[float] = None
    dpi: Optional[int] = None
    desired_gap_px: Optional[float] = None

    @property
    def keys(self) -> List[str]:
        return [s.key for s in self.slots]


# Fixed square poster: 8 columns, a 6x6 centre framed by one ring of cells,
# with an extra row of cells above and below.
POSTER_COLS = 8
POSTER_ROWS = 10
POSTER_WIDTH_IN = 8.5
POSTER_HEIGHT_IN = 12.5
POSTER_DPI = 300
POSTER_GAP_PX = 4


def poster_script() -> ScriptLayout:
    """Slots of the fixed print poster, in paint order.

    top extension, top row, left column, centre, right column, bottom row,
    bottom extension. The centre block is painted once as a single 6x6 slot.
    """
    slots: List[GridSlot] = []

    for i in range(POSTER_COLS):
        slots.append(GridSlot(cell_key('top-extension', -1, i + 2), 0, i))

    for c in range(POSTER_COLS):
        slots.append(GridSlot(cell_key('top', 0, c), 1, c))

    for r in range(1, 7):
        slots.append(GridSlot(cell_key('left', r, 0), r + 1, 0))

    slots.append(GridSlot(CENTER_KEY, 2, 1, row_span=6, col_span=6))

    for r in range(1, 7):
        slots.append(GridSlot(cell_key('right', r, 7), r + 1, 7))

    for c in range(POSTER_COLS):
        slots.append(GridSlot(cell_key('bottom', 9, c), 8, c))

    for i in range(POSTER_COLS):
        slots.append(GridSlot(cell_key('bottom-extension', -1, i + 2), 9, i))

    return ScriptLayout(
        cols=POSTER_COLS,
        rows=POSTER_ROWS,
        slots=slots,
        target_width_in=POSTER_WIDTH_IN,
        target_height_in=POSTER_HEIGHT_IN,
        dpi=POSTER_DPI,
        desired_gap_px=POSTER_GAP_PX,
    )


# Member order on the poster: centre first, then the frame ring clockwise
# from the top, then the two extension rows.
_POSTER_SECTION_BASE = {
    'top': 1,
    'left': 9,
    'right': 15,
    'bottom': 21,
    'top-extension': 29,
    'bottom-extension': 37,
}

POSTER_CAPACITY = 45


def poster_member_index(key: str) -> int:
    """Index of the member whose photo previews in a poster cell, -1 if none."""
    if key == CENTER_KEY:
        return 0
    try:
        section, row, col = parse_cell_key(key)
    except LayoutError:
        return -1

    base = _POSTER_SECTION_BASE.get(section)
    if base is None:
        return -1
    if section in ('top', 'bottom') and 0 <= col < POSTER_COLS:
        return base + col
    if section in ('left', 'right') and 1 <= row <= 6:
        return base + row - 1
    if section in ('top-extension', 'bottom-extension') and 2 <= col < POSTER_COLS + 2:
        return base + col - 2
    return -1


def grid_script(layout: Layout) -> ScriptLayout:
    """Square-spiral cells translated into a grid starting at (0, 0)."""
    if layout.kind != TemplateKind.SQUARE:
        raise LayoutError(f"grid_script needs a square layout, got {layout.kind.value}")

    bounds = layout.bounds()
    if bounds is None:
        return ScriptLayout(cols=1, rows=1)

    slots = [
        GridSlot(
            cell.key,
            cell.row - bounds.min_row,
            cell.col - bounds.min_col,
            row_span=cell.row_span,
            col_span=cell.col_span,
        )
        for cell in layout.cells
    ]
    logger.debug(f"Grid script: {len(slots)} slots in {bounds.cols}x{bounds.rows}")
    return ScriptLayout(cols=bounds.cols, rows=bounds.rows, slots=slots)


def ring_script(layout: Layout, sizes: Optional[TemplateSizeConfig] = None) -> ScriptLayout:
    """Ring cells as absolutely positioned, shape-clipped slots.

    Coordinates are in template units on a square canvas of side
    `base_size`, centred on the layout centre.
    """
    if layout.kind == TemplateKind.SQUARE:
        raise LayoutError("ring_script needs a hexagonal or circle layout")

    sizes = sizes or DEFAULT_TEMPLATE_SIZES['xlarge']
    shape = CellShape.HEXAGON if layout.kind == TemplateKind.HEXAGONAL else CellShape.CIRCLE

    extent = sizes.center / 2
    for cell in layout.cells:
        if not cell.is_center:
            extent = max(extent, (cell.radius or 0.0) + sizes.regular / 2)
    side = 2 * (extent + sizes.margin)
    mid = side / 2

    slots: List[RingSlot] = []
    for cell in layout.cells:
        radius = cell.radius or 0.0
        angle = cell.angle or 0.0
        cx, cy = _polar(mid, radius, angle)
        diameter = sizes.center if cell.is_center else sizes.regular
        slots.append(RingSlot(cell.key, cx, cy, diameter, shape))

    return ScriptLayout(cols=1, rows=1, slots=slots, base_size=side)


def _polar(mid: float, radius: float, angle: float):
    return (mid + radius * math.cos(angle), mid + radius * math.sin(angle))


def script_for(layout: Layout, sizes: Optional[TemplateSizeConfig] = None,
               fixed_poster: bool = False) -> ScriptLayout:
    """Pick the script for a layout: the fixed poster, a spiral grid or rings."""
    if layout.kind == TemplateKind.SQUARE:
        return poster_script() if fixed_poster else grid_script(layout)
    return ring_script(layout, sizes)


def member_index_resolver(layout: Layout, fixed_poster: bool = False):
    """Key -> member index function matching `script_for`."""
    if layout.kind == TemplateKind.SQUARE and fixed_poster:
        return poster_member_index
    return layout.index_of
