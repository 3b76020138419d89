"""
Data model for the collage engine
Members, template kinds, cells, pan offsets and the render request
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Optional, Sequence, Union

from .errors import UnknownTemplateError


PhotoRef = Union[bytes, str]


class TemplateKind(str, Enum):
    """Arrangement used to place member photos"""
    SQUARE = "square"
    HEXAGONAL = "hexagonal"
    CIRCLE = "circle"

    @classmethod
    def parse(cls, value: Union[str, "TemplateKind"]) -> "TemplateKind":
        if isinstance(value, cls):
            return value
        name = str(value).strip().lower()
        for kind in cls:
            if kind.value == name or kind.name.lower() == name:
                return kind
        raise UnknownTemplateError(str(value), [k.value for k in cls])


class CellShape(str, Enum):
    RECT = "rect"
    CIRCLE = "circle"
    HEXAGON = "hexagon"


@dataclass(frozen=True)
class Member:
    """A group member and the photo they contributed"""
    id: str
    name: str
    photo_ref: Optional[PhotoRef] = None


@dataclass(frozen=True)
class Cell:
    """A named slot in a template holding one member's photo"""
    key: str
    index: int
    is_center: bool = False
    row: Optional[int] = None
    col: Optional[int] = None
    angle: Optional[float] = None
    radius: Optional[float] = None
    row_span: int = 1
    col_span: int = 1


@dataclass(frozen=True)
class Offset:
    """Percentage-space crop anchor; (50, 50) is centred"""
    x: float = 50.0
    y: float = 50.0


CENTERED = Offset(50.0, 50.0)


@dataclass(frozen=True)
class CellImageState:
    source_ref: PhotoRef
    offset: Offset = CENTERED


@dataclass(frozen=True)
class GridSlot:
    """A cell painted into a grid rectangle, optionally spanning rows/cols"""
    key: str
    row: float
    col: float
    row_span: int = 1
    col_span: int = 1


@dataclass(frozen=True)
class RingSlot:
    """A cell painted at an absolute position, clipped to a shape"""
    key: str
    cx: float
    cy: float
    diameter: float
    shape: CellShape = CellShape.CIRCLE


@dataclass
class DrawHelpers:
    """What a RenderSpec.draw procedure receives from the composer"""
    draw_key: Callable[..., Awaitable[None]]
    draw_key_at: Callable[..., Awaitable[None]]
    canvas: Any
    width: int
    height: int


@dataclass
class RenderSpec:
    """Everything the composer needs to paint one export.

    Either `slots` (declarative) or `draw` (procedural) describes which
    cells go where. `width`/`height` passed to `draw` are in device pixels.
    """
    cols: int
    rows: int
    base_size: float = 100.0
    desired_gap_px: float = 4.0
    background: str = "#ffffff"
    target_width_in: Optional[float] = None
    target_height_in: Optional[float] = None
    dpi: int = 300
    scale: Optional[float] = None
    slots: Sequence[Union[GridSlot, RingSlot]] = field(default_factory=list)
    draw: Optional[Callable[[DrawHelpers], Any]] = None

    @property
    def uses_physical_size(self) -> bool:
        return (
            isinstance(self.target_width_in, (int, float))
            and isinstance(self.target_height_in, (int, float))
            and self.target_width_in > 0
            and self.target_height_in > 0
        )


@dataclass
class LayoutBounds:
    min_row: int
    max_row: int
    min_col: int
    max_col: int

    @property
    def rows(self) -> int:
        return self.max_row - self.min_row + 1

    @property
    def cols(self) -> int:
        return self.max_col - self.min_col + 1
