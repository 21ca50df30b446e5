from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Callable, Sequence

from . import field_model
from .field_model import FieldConfig, FieldUpdateError, apply_changes, create_field, generate_id
from .reorder import DragSession, reorder_by_keyboard

SaveSink = Callable[[str, tuple[FieldConfig, ...]], None]

logger = logging.getLogger(__name__)


class ReorderInvariantError(ValueError):
    """Raised when a reorder is not a permutation of the current fields."""


@dataclass(slots=True, frozen=True)
class EditorSession:
    fields: tuple[FieldConfig, ...] = ()
    selected_field_id: str | None = None
    pending_delete_id: str | None = None

    def field_ids(self) -> list[str]:
        return [item.id for item in self.fields]

    def find(self, field_id: str | None) -> FieldConfig | None:
        for item in self.fields:
            if item.id == field_id:
                return item
        return None


def selected_field(session: EditorSession) -> FieldConfig | None:
    return session.find(session.selected_field_id)


def add_field(
    session: EditorSession,
    kind: str,
    *,
    id_factory: Callable[[], str] = generate_id,
) -> EditorSession:
    created = create_field(kind, id_factory=id_factory)
    return replace(session, fields=(*session.fields, created), selected_field_id=created.id)


def _replace_in_place(session: EditorSession, updated: FieldConfig) -> EditorSession:
    return replace(
        session,
        fields=tuple(updated if item.id == updated.id else item for item in session.fields),
    )


def update_field(session: EditorSession, field_id: str, changes: dict[str, Any]) -> EditorSession:
    current = session.find(field_id)
    if current is None:
        logger.debug("stale_field_reference", extra={"operation": "update", "field_id": field_id})
        return session
    return _replace_in_place(session, apply_changes(current, changes))


def replace_field(session: EditorSession, updated: FieldConfig) -> EditorSession:
    current = session.find(updated.id)
    if current is None:
        logger.debug("stale_field_reference", extra={"operation": "replace", "field_id": updated.id})
        return session
    if current.kind != updated.kind:
        raise FieldUpdateError(f"cannot change field {updated.id} from {current.kind} to {updated.kind}")
    return _replace_in_place(session, updated)


def is_permutation(current: Sequence[FieldConfig], proposed: Sequence[FieldConfig]) -> bool:
    current_ids = [item.id for item in current]
    proposed_ids = [item.id for item in proposed]
    return len(current_ids) == len(proposed_ids) and sorted(current_ids) == sorted(proposed_ids)


def reorder(session: EditorSession, new_fields: Sequence[FieldConfig], *, strict: bool = True) -> EditorSession:
    if not is_permutation(session.fields, new_fields):
        if strict:
            raise ReorderInvariantError("reordered fields must contain exactly the current field ids")
        logger.warning(
            "reorder_rejected",
            extra={"current": session.field_ids(), "proposed": [item.id for item in new_fields]},
        )
        return session
    return replace(session, fields=tuple(new_fields))


def select(session: EditorSession, field_id: str | None) -> EditorSession:
    if session.find(field_id) is None:
        return session
    return replace(session, selected_field_id=field_id)


def clear_selection(session: EditorSession) -> EditorSession:
    return replace(session, selected_field_id=None)


def request_delete(session: EditorSession, field_id: str) -> EditorSession:
    if session.find(field_id) is None:
        logger.debug("stale_field_reference", extra={"operation": "request_delete", "field_id": field_id})
        return session
    return replace(session, pending_delete_id=field_id)


def cancel_delete(session: EditorSession) -> EditorSession:
    return replace(session, pending_delete_id=None)


def confirm_delete(session: EditorSession) -> EditorSession:
    pending = session.pending_delete_id
    if pending is None:
        return session
    selected = None if session.selected_field_id == pending else session.selected_field_id
    return EditorSession(
        fields=tuple(item for item in session.fields if item.id != pending),
        selected_field_id=selected,
        pending_delete_id=None,
    )


class EditorController:
    """Owns one calculator's editor session and pushes field changes to a save sink.

    Every operation runs to completion synchronously. The sink only hears about
    changes to the field list; selection and delete confirmation are local.
    """

    def __init__(
        self,
        calculator_id: str,
        fields: Sequence[FieldConfig] = (),
        *,
        save: SaveSink | None = None,
        id_factory: Callable[[], str] = generate_id,
        strict: bool = True,
    ) -> None:
        self.calculator_id = calculator_id
        self.session = EditorSession(fields=tuple(fields))
        self.drag = DragSession()
        self._save = save
        self._id_factory = id_factory
        self._strict = strict

    @property
    def fields(self) -> tuple[FieldConfig, ...]:
        return self.session.fields

    def _commit(self, session: EditorSession, event: str, **extra: Any) -> EditorSession:
        previous = self.session
        self.session = session
        if session.fields != previous.fields:
            logger.info(event, extra={"calculator_id": self.calculator_id, "field_count": len(session.fields), **extra})
            if self._save is not None:
                try:
                    self._save(self.calculator_id, session.fields)
                except Exception:
                    logger.exception("field_save_failed", extra={"calculator_id": self.calculator_id})
                    raise
        return session

    def add_field(self, kind: str) -> EditorSession:
        session = add_field(self.session, kind, id_factory=self._id_factory)
        return self._commit(session, "field_added", kind=kind, field_id=session.selected_field_id)

    def update_field(self, field_id: str, changes: dict[str, Any]) -> EditorSession:
        return self._commit(update_field(self.session, field_id, changes), "field_updated", field_id=field_id)

    def add_option(self, field_id: str) -> EditorSession:
        current = self.session.find(field_id)
        if current is None:
            return self.session
        updated = field_model.add_option(current, id_factory=self._id_factory)
        return self._commit(replace_field(self.session, updated), "field_option_added", field_id=field_id)

    def update_option(
        self,
        field_id: str,
        index: int,
        *,
        label: str | None = None,
        value: str | None = None,
    ) -> EditorSession:
        current = self.session.find(field_id)
        if current is None:
            return self.session
        updated = field_model.update_option(current, index, label=label, value=value)
        return self._commit(replace_field(self.session, updated), "field_option_updated", field_id=field_id)

    def remove_option(self, field_id: str, index: int) -> EditorSession:
        current = self.session.find(field_id)
        if current is None:
            return self.session
        updated = field_model.remove_option(current, index)
        return self._commit(replace_field(self.session, updated), "field_option_removed", field_id=field_id)

    def reorder(self, new_fields: Sequence[FieldConfig]) -> EditorSession:
        return self._commit(reorder(self.session, new_fields, strict=self._strict), "fields_reordered")

    def reorder_ids(self, ordered_ids: Sequence[str]) -> EditorSession:
        by_id = {item.id: item for item in self.session.fields}
        missing = [field_id for field_id in ordered_ids if field_id not in by_id]
        if missing:
            if self._strict:
                raise ReorderInvariantError(f"unknown field ids: {', '.join(missing)}")
            logger.warning("reorder_rejected", extra={"unknown": missing})
            return self.session
        return self.reorder([by_id[field_id] for field_id in ordered_ids])

    def drag_start(self, index: int) -> EditorSession:
        self.drag.start(self.session.fields, index)
        return self.session

    def drag_over(self, target_index: int) -> EditorSession:
        reordered = self.drag.over(self.session.fields, target_index)
        if reordered is None:
            return self.session
        return self.reorder(reordered)

    def drag_end(self) -> EditorSession:
        self.drag.end()
        return self.session

    def move(self, index: int, direction: str) -> EditorSession:
        return self.reorder(reorder_by_keyboard(self.session.fields, index, direction))

    def select(self, field_id: str | None) -> EditorSession:
        if field_id is None:
            self.session = clear_selection(self.session)
        else:
            self.session = select(self.session, field_id)
        return self.session

    def request_delete(self, field_id: str) -> EditorSession:
        self.session = request_delete(self.session, field_id)
        return self.session

    def cancel_delete(self) -> EditorSession:
        self.session = cancel_delete(self.session)
        return self.session

    def confirm_delete(self) -> EditorSession:
        pending = self.session.pending_delete_id
        session = confirm_delete(self.session)
        if pending is None:
            return session
        return self._commit(session, "field_deleted", field_id=pending)

    def snapshot(self) -> dict[str, Any]:
        return {
            "calculator_id": self.calculator_id,
            "fields": field_model.fields_to_list(self.session.fields),
            "selectedFieldId": self.session.selected_field_id,
            "pendingDeleteId": self.session.pending_delete_id,
            "draggingId": self.drag.dragging_id,
        }
