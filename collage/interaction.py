"""
Pointer interaction for panning photos inside their cells.

Turns pointer down/move/up sequences into pan offset updates, tells a
drag-to-pan gesture apart from a tap-to-replace gesture, and coalesces
offset writes so at most one lands per frame tick.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from loguru import logger

from .models import Offset
from .store import CellStateStore
from .utils import clamp_percent


class DragState(str, Enum):
    IDLE = "idle"
    DRAGGING = "dragging"


@dataclass
class PendingOffset:
    key: str
    x: float
    y: float


@dataclass
class _Drag:
    key: str
    start_x: float
    start_y: float
    start_offset: Offset
    cell_width: float
    cell_height: float
    moved: bool = False


class OffsetCoalescer:
    """Depth-1 queue: a new pending offset replaces the unapplied one"""

    def __init__(self):
        self._pending: Optional[PendingOffset] = None

    def push(self, pending: PendingOffset) -> None:
        self._pending = pending

    @property
    def pending(self) -> Optional[PendingOffset]:
        return self._pending

    def flush(self, store: CellStateStore) -> Optional[Offset]:
        pending, self._pending = self._pending, None
        if pending is None:
            return None
        return store.set_offset(pending.key, pending.x, pending.y)


class InteractionController:
    """Idle -> Dragging -> Idle state machine over a CellStateStore"""

    def __init__(self, store: CellStateStore,
                 on_replace_request: Optional[Callable[[str], None]] = None):
        self.store = store
        self.on_replace_request = on_replace_request
        self._coalescer = OffsetCoalescer()
        self._drag: Optional[_Drag] = None
        self._suppress_key: Optional[str] = None

    @property
    def state(self) -> DragState:
        return DragState.DRAGGING if self._drag is not None else DragState.IDLE

    @property
    def pending(self) -> Optional[PendingOffset]:
        return self._coalescer.pending

    def pointer_down(self, key: str, x: float, y: float,
                     cell_width: float, cell_height: float) -> bool:
        """Start panning `key` if it has an image. Returns True when a drag began."""
        if not self.store.has_image(key):
            return False
        if cell_width <= 0 or cell_height <= 0:
            logger.warning(f"Ignoring drag on {key}: cell has no size ({cell_width}x{cell_height})")
            return False

        if self._drag is not None:
            self.pointer_up()

        self._drag = _Drag(
            key=key,
            start_x=x,
            start_y=y,
            start_offset=self.store.offset_of(key),
            cell_width=cell_width,
            cell_height=cell_height,
        )
        self._suppress_key = None
        return True

    def pointer_move(self, x: float, y: float) -> Optional[PendingOffset]:
        drag = self._drag
        if drag is None:
            return None

        dx = (x - drag.start_x) / drag.cell_width * 100
        dy = (y - drag.start_y) / drag.cell_height * 100
        pending = PendingOffset(
            drag.key,
            clamp_percent(drag.start_offset.x + dx),
            clamp_percent(drag.start_offset.y + dy),
        )
        drag.moved = True
        self._coalescer.push(pending)
        return pending

    def tick(self) -> Optional[Offset]:
        """Frame tick: apply the pending offset, if any."""
        return self._coalescer.flush(self.store)

    def pointer_up(self) -> Optional[Offset]:
        """End the drag wherever the pointer was released."""
        drag = self._drag
        if drag is None:
            return None
        applied = self._coalescer.flush(self.store)
        if drag.moved:
            self._suppress_key = drag.key
            logger.debug(f"Panned {drag.key} to {self.store.offset_of(drag.key)}")
        self._drag = None
        return applied

    def activate(self, key: str) -> bool:
        """Click/tap on a cell. False when swallowed as the tail of a drag."""
        if self._suppress_key == key:
            self._suppress_key = None
            return False
        self._suppress_key = None
        if self.on_replace_request is not None:
            self.on_replace_request(key)
        return True

    async def run_frames(self, interval: float = 1 / 60) -> None:
        """Flush pending offsets on a fixed cadence until cancelled."""
        while True:
            self.tick()
            await asyncio.sleep(interval)
