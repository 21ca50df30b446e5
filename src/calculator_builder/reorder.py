from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol, Sequence, TypeVar

KEY_DIRECTIONS = {
    "up": "up",
    "down": "down",
    "ArrowUp": "up",
    "ArrowDown": "down",
}

logger = logging.getLogger(__name__)


class Identified(Protocol):
    @property
    def id(self) -> str: ...


ItemT = TypeVar("ItemT", bound=Identified)


@dataclass(slots=True, frozen=True)
class DragState:
    """Pointer-drag session. ``dragging_id`` is None while idle."""

    dragging_id: str | None = None

    @property
    def is_dragging(self) -> bool:
        return self.dragging_id is not None


IDLE = DragState()


def move_item(items: Sequence[ItemT], from_index: int, to_index: int) -> tuple[ItemT, ...]:
    """Take one element out of ``from_index`` and reinsert it at ``to_index``."""
    moved = list(items)
    item = moved.pop(from_index)
    moved.insert(to_index, item)
    return tuple(moved)


def index_of(items: Sequence[ItemT], item_id: str) -> int | None:
    for position, item in enumerate(items):
        if item.id == item_id:
            return position
    return None


def drag_start(items: Sequence[ItemT], index: int) -> DragState:
    if not 0 <= index < len(items):
        logger.debug("drag_start_ignored", extra={"index": index, "size": len(items)})
        return IDLE
    return DragState(dragging_id=items[index].id)


def drag_over(
    items: Sequence[ItemT],
    target_index: int,
    state: DragState,
) -> tuple[tuple[ItemT, ...], DragState]:
    """Move the dragged element to ``target_index`` in the current order.

    The dragged element is found by id on every call since each move shifts
    positions. Events arriving while idle, for a vanished element, or for the
    slot the element already occupies leave the order as it is.
    """
    current = tuple(items)
    if state.dragging_id is None:
        return current, state
    position = index_of(current, state.dragging_id)
    if position is None or position == target_index or not 0 <= target_index < len(current):
        return current, state
    return move_item(current, position, target_index), state


def drag_end(state: DragState) -> DragState:
    return IDLE


def reorder_by_drag(
    items: Sequence[ItemT],
    drag_start_index: int,
    drag_over_index: int,
    state: DragState = IDLE,
) -> tuple[tuple[ItemT, ...], DragState]:
    if not state.is_dragging:
        state = drag_start(items, drag_start_index)
    return drag_over(items, drag_over_index, state)


def reorder_by_keyboard(items: Sequence[ItemT], index: int, direction: str) -> tuple[ItemT, ...]:
    """Swap the element at ``index`` with its neighbour above or below.

    Moving the first element up or the last element down leaves the order as it is.
    """
    try:
        step = KEY_DIRECTIONS[direction]
    except KeyError:
        raise ValueError(f"unsupported direction: {direction!r}") from None

    swapped = list(items)
    if not 0 <= index < len(swapped):
        return tuple(swapped)
    neighbour = index - 1 if step == "up" else index + 1
    if not 0 <= neighbour < len(swapped):
        return tuple(swapped)
    swapped[neighbour], swapped[index] = swapped[index], swapped[neighbour]
    return tuple(swapped)


class DragSession:
    """Host-side holder of the transient drag state for one rendered list."""

    def __init__(self) -> None:
        self.state = IDLE

    @property
    def dragging_id(self) -> str | None:
        return self.state.dragging_id

    @property
    def is_dragging(self) -> bool:
        return self.state.is_dragging

    def start(self, items: Sequence[ItemT], index: int) -> None:
        self.state = drag_start(items, index)

    def over(self, items: Sequence[ItemT], target_index: int) -> tuple[ItemT, ...] | None:
        reordered, self.state = drag_over(items, target_index, self.state)
        if [item.id for item in reordered] == [item.id for item in items]:
            return None
        return reordered

    def drop(self) -> None:
        """Nothing to commit: each drag-over already applied its move."""

    def end(self) -> None:
        self.state = drag_end(self.state)
