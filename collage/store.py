"""
Cell state store.

Holds, per cell key, the assigned image source and the pan offset. The
store is the only writable copy of this state; the composer receives a
read-only `CellStateView` so it can never mutate it.
"""

from typing import Callable, Dict, Iterator, Mapping, Optional, Sequence

from loguru import logger

from .models import CENTERED, CellImageState, Member, Offset, PhotoRef
from .utils import clamp_percent


IndexResolver = Callable[[str], int]


def _no_index(key: str) -> int:
    return -1


class CellStateStore:
    """Per-cell image assignments and pan offsets for one layout session"""

    def __init__(self, index_of: Optional[IndexResolver] = None):
        self._images: Dict[str, PhotoRef] = {}
        self._offsets: Dict[str, Offset] = {}
        self.index_of: IndexResolver = index_of or _no_index

    def assign(self, key: str, source_ref: PhotoRef) -> None:
        """Attach an image to a cell, replacing any previous one"""
        if source_ref is None:
            raise ValueError(f"Cannot assign an empty image to cell {key}")
        replaced = key in self._images
        self._images[key] = source_ref
        logger.debug(f"{'Replaced' if replaced else 'Assigned'} image for cell {key}")

    def set_offset(self, key: str, x: float, y: float) -> Offset:
        offset = Offset(clamp_percent(x), clamp_percent(y))
        self._offsets[key] = offset
        return offset

    def offset_of(self, key: str) -> Offset:
        return self._offsets.get(key, CENTERED)

    def has_image(self, key: str) -> bool:
        return key in self._images

    def style_of(self, key: str, members: Sequence[Member] = ()) -> Optional[CellImageState]:
        """Image state for a cell.

        Falls back to the photo of the member whose index maps to `key` when
        nothing was assigned. The fallback is read-only: it is never stored.
        """
        source = self._images.get(key)
        if source is not None:
            return CellImageState(source, self.offset_of(key))

        index = self.index_of(key)
        if 0 <= index < len(members):
            photo = members[index].photo_ref
            if photo:
                return CellImageState(photo, self.offset_of(key))
        return None

    def reset(self) -> None:
        """Forget every assignment and offset"""
        count = len(self._images)
        self._images.clear()
        self._offsets.clear()
        logger.info(f"Cell state reset ({count} assignments cleared)")

    def snapshot(self) -> Dict[str, CellImageState]:
        return {key: CellImageState(src, self.offset_of(key)) for key, src in self._images.items()}

    def view(self) -> "CellStateView":
        return CellStateView(self)

    def __len__(self) -> int:
        return len(self._images)

    def __contains__(self, key: str) -> bool:
        return key in self._images


class CellStateView(Mapping):
    """Read-only window onto a CellStateStore"""

    def __init__(self, store: CellStateStore):
        self._store = store

    def __getitem__(self, key: str) -> CellImageState:
        state = self._store.style_of(key)
        if state is None:
            raise KeyError(key)
        return state

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._store.snapshot()))

    def __len__(self) -> int:
        return len(self._store)

    def style_of(self, key: str, members: Sequence[Member] = ()) -> Optional[CellImageState]:
        return self._store.style_of(key, members)

    def offset_of(self, key: str) -> Offset:
        return self._store.offset_of(key)
