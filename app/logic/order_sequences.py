"""Order reindexing helpers for sections and questions.

Provides the single source of truth for ``order`` values: every structural
edit goes through an ``OrderedArena`` and ends with ``to_list()``, which
renumbers the items into a dense zero-based sequence.
"""

from __future__ import annotations

import logging
from typing import Dict, Generic, Iterable, List, Optional, Sequence, TypeVar

from pydantic import BaseModel

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)


def renumber(items: Iterable[T]) -> List[T]:
    """Return copies of ``items`` with ``order`` set to 0..n-1 in sequence."""
    out: List[T] = []
    for index, item in enumerate(items):
        if getattr(item, "order", None) == index:
            out.append(item)
        else:
            out.append(item.model_copy(update={"order": index}))
    return out


def sort_and_renumber(items: Iterable[T]) -> List[T]:
    """Stable-sort by the incoming ``order`` then renumber densely."""
    ordered = sorted(enumerate(items), key=lambda pair: (getattr(pair[1], "order", 0), pair[0]))
    return renumber(item for _index, item in ordered)


def is_dense(items: Sequence[BaseModel]) -> bool:
    return [getattr(item, "order", None) for item in items] == list(range(len(items)))


def clamp_index(proposed: int, length: int) -> int:
    """Clamp an insertion index into [0..length]."""
    if proposed <= 0:
        return 0
    if proposed > length:
        return length
    return proposed


class OrderedArena(Generic[T]):
    """Items addressed by their ``id`` while keeping insertion order.

    Mutations only touch the working map; ``to_list`` performs the renumber
    step and yields the final sibling list.
    """

    def __init__(self, items: Iterable[T]) -> None:
        self._items: Dict[str, T] = {}
        for item in items:
            self._items[getattr(item, "id")] = item

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._items

    def __len__(self) -> int:
        return len(self._items)

    def ids(self) -> List[str]:
        return list(self._items)

    def get(self, item_id: str) -> Optional[T]:
        return self._items.get(item_id)

    def index_of(self, item_id: str) -> int:
        return self.ids().index(item_id)

    def append(self, item: T) -> None:
        self._items[getattr(item, "id")] = item

    def replace(self, item_id: str, item: T) -> bool:
        if item_id not in self._items:
            return False
        self._items[item_id] = item
        return True

    def remove(self, item_id: str) -> Optional[T]:
        return self._items.pop(item_id, None)

    def move(self, item_id: str, to_index: int) -> bool:
        """Move an existing item to ``to_index`` (clamped)."""
        item = self._items.pop(item_id, None)
        if item is None:
            return False
        pairs = list(self._items.items())
        insert_at = clamp_index(int(to_index), len(pairs))
        pairs.insert(insert_at, (item_id, item))
        self._items = dict(pairs)
        logger.debug("arena_move item_id=%s insert_at=%s after=%s", item_id, insert_at, list(self._items))
        return True

    def to_list(self) -> List[T]:
        return renumber(self._items.values())


__all__ = ["renumber", "sort_and_renumber", "is_dense", "clamp_index", "OrderedArena"]
