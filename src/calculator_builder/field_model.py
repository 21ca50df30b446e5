from __future__ import annotations

import logging
import math
import uuid
from dataclasses import dataclass, fields, replace
from typing import Any, Callable, ClassVar

from .variable_names import apply_label_change, derive_variable_name

FIELD_KINDS = ("dropdown", "radio", "checkbox", "number", "slider", "text", "image_select")
FIELD_KIND_LABELS = {
    "dropdown": "Dropdown",
    "radio": "Radio Button",
    "checkbox": "Checkbox",
    "number": "Number Input",
    "slider": "Slider",
    "text": "Text Input",
    "image_select": "Image Select",
}
OPTION_KINDS = frozenset({"dropdown", "radio", "checkbox"})
BASE_ATTRIBUTES = ("label", "help_text", "required", "variable_name")
NUMERIC_ATTRIBUTES = frozenset({"min", "max", "step", "default_value"})
IMMUTABLE_ATTRIBUTES = frozenset({"id", "kind"})

# attribute name -> wire key, for names that differ
WIRE_KEYS = {
    "help_text": "helpText",
    "variable_name": "variableName",
    "default_value": "defaultValue",
}

logger = logging.getLogger(__name__)


class FieldModelError(ValueError):
    """Raised when a field value cannot be built or read."""


class UnknownFieldKindError(FieldModelError):
    """Raised when a kind outside FIELD_KINDS is requested."""


class FieldUpdateError(FieldModelError):
    """Raised when an update targets an attribute the field does not own."""


def generate_id() -> str:
    return uuid.uuid4().hex


@dataclass(slots=True, frozen=True)
class FieldOption:
    id: str
    label: str = ""
    value: str = ""


@dataclass(slots=True, frozen=True)
class FieldConfig:
    """Shared attributes of every field kind. Concrete kinds subclass this."""

    kind: ClassVar[str] = ""

    id: str
    label: str
    variable_name: str = ""
    required: bool = False
    help_text: str | None = None

    @classmethod
    def kind_attributes(cls) -> tuple[str, ...]:
        return tuple(item.name for item in fields(cls) if item.name not in BASE_ATTRIBUTES and item.name != "id")


@dataclass(slots=True, frozen=True)
class OptionFieldConfig(FieldConfig):
    options: tuple[FieldOption, ...] = ()


@dataclass(slots=True, frozen=True)
class DropdownFieldConfig(OptionFieldConfig):
    kind: ClassVar[str] = "dropdown"


@dataclass(slots=True, frozen=True)
class RadioFieldConfig(OptionFieldConfig):
    kind: ClassVar[str] = "radio"


@dataclass(slots=True, frozen=True)
class CheckboxFieldConfig(OptionFieldConfig):
    kind: ClassVar[str] = "checkbox"


@dataclass(slots=True, frozen=True)
class SliderFieldConfig(FieldConfig):
    kind: ClassVar[str] = "slider"

    min: float | None = None
    max: float | None = None
    step: float | None = None
    default_value: float | None = None


@dataclass(slots=True, frozen=True)
class NumberFieldConfig(SliderFieldConfig):
    kind: ClassVar[str] = "number"

    placeholder: str | None = None


@dataclass(slots=True, frozen=True)
class TextFieldConfig(FieldConfig):
    kind: ClassVar[str] = "text"

    placeholder: str | None = None


@dataclass(slots=True, frozen=True)
class ImageSelectFieldConfig(FieldConfig):
    kind: ClassVar[str] = "image_select"


FIELD_TYPES: dict[str, type[FieldConfig]] = {
    "dropdown": DropdownFieldConfig,
    "radio": RadioFieldConfig,
    "checkbox": CheckboxFieldConfig,
    "number": NumberFieldConfig,
    "slider": SliderFieldConfig,
    "text": TextFieldConfig,
    "image_select": ImageSelectFieldConfig,
}


def field_type_for(kind: str) -> type[FieldConfig]:
    try:
        return FIELD_TYPES[kind]
    except KeyError:
        raise UnknownFieldKindError(f"unknown field kind: {kind!r}") from None


def field_kind_palette() -> list[dict[str, str]]:
    return [{"kind": kind, "label": FIELD_KIND_LABELS[kind]} for kind in FIELD_KINDS]


def create_field(
    kind: str,
    label: str | None = None,
    *,
    id_factory: Callable[[], str] = generate_id,
) -> FieldConfig:
    """Build a new field of ``kind`` labelled with the kind's display name.

    The variable name starts out synchronized with the label, and option-bearing
    kinds start with no options.
    """
    field_type = field_type_for(kind)
    initial_label = FIELD_KIND_LABELS[kind] if label is None else label
    return field_type(
        id=id_factory(),
        label=initial_label,
        variable_name=derive_variable_name(initial_label),
        required=False,
    )


def _coerce_number(name: str, value: Any) -> float | None:
    if value is None:
        return None
    if isinstance(value, bool):
        raise FieldUpdateError(f"{name} must be numeric")
    if isinstance(value, (int, float)):
        return value if math.isfinite(value) else None
    if isinstance(value, str):
        # blank, unparsable, nan or infinite input clears the bound
        try:
            parsed = float(value) if value.strip() else None
        except ValueError:
            return None
        return parsed if parsed is not None and math.isfinite(parsed) else None
    raise FieldUpdateError(f"{name} must be numeric")


def _coerce_attribute(name: str, value: Any) -> Any:
    if name in NUMERIC_ATTRIBUTES:
        return _coerce_number(name, value)
    if name == "placeholder":
        return None if value in (None, "") else str(value)
    if name == "required":
        return bool(value)
    if name == "options":
        if not isinstance(value, (list, tuple)):
            raise FieldModelError("options must be a list")
        return tuple(_coerce_option(option) for option in value)
    if name == "help_text":
        return None if value is None else str(value)
    return _coerce_text(value)


def _coerce_text(value: Any) -> str:
    return "" if value is None else str(value)


def _coerce_option(option: Any) -> FieldOption:
    if isinstance(option, FieldOption):
        return option
    if not isinstance(option, dict) or "id" not in option:
        raise FieldModelError("options must be objects with an id")
    return FieldOption(
        id=str(option["id"]),
        label=str(option.get("label", "")),
        value=str(option.get("value", "")),
    )


def update_base(field: FieldConfig, **changes: Any) -> FieldConfig:
    """Replace shared attributes only; kind attributes pass through untouched."""
    unknown = sorted(set(changes) - set(BASE_ATTRIBUTES))
    if unknown:
        raise FieldUpdateError(f"not a shared field attribute: {', '.join(unknown)}")

    updated = field
    if "label" in changes:
        updated = apply_label_change(updated, _coerce_text(changes["label"]))
    rest = {name: _coerce_attribute(name, value) for name, value in changes.items() if name != "label"}
    return replace(updated, **rest) if rest else updated


def update_attributes(field: FieldConfig, **changes: Any) -> FieldConfig:
    """Replace attributes specific to the field's kind; shared attributes pass through."""
    allowed = set(type(field).kind_attributes())
    unknown = sorted(set(changes) - allowed)
    if unknown:
        raise FieldUpdateError(f"{field.kind} fields have no attribute: {', '.join(unknown)}")
    if not changes:
        return field
    return replace(field, **{name: _coerce_attribute(name, value) for name, value in changes.items()})


def apply_changes(field: FieldConfig, changes: dict[str, Any]) -> FieldConfig:
    frozen = sorted(IMMUTABLE_ATTRIBUTES & set(changes))
    if frozen:
        raise FieldUpdateError(f"cannot change {', '.join(frozen)} of an existing field")
    base = {name: value for name, value in changes.items() if name in BASE_ATTRIBUTES}
    specific = {name: value for name, value in changes.items() if name not in BASE_ATTRIBUTES}
    return update_attributes(update_base(field, **base), **specific)


def _require_options(field: FieldConfig) -> OptionFieldConfig:
    if not isinstance(field, OptionFieldConfig):
        raise FieldUpdateError(f"{field.kind} fields have no options")
    return field


def add_option(field: FieldConfig, *, id_factory: Callable[[], str] = generate_id) -> FieldConfig:
    owner = _require_options(field)
    return replace(owner, options=(*owner.options, FieldOption(id=id_factory())))


def update_option(
    field: FieldConfig,
    index: int,
    *,
    label: str | None = None,
    value: str | None = None,
) -> FieldConfig:
    owner = _require_options(field)
    if not 0 <= index < len(owner.options):
        logger.debug("option_index_out_of_range", extra={"field_id": field.id, "index": index})
        return field
    current = owner.options[index]
    changed = replace(
        current,
        label=current.label if label is None else label,
        value=current.value if value is None else value,
    )
    options = tuple(changed if position == index else option for position, option in enumerate(owner.options))
    return replace(owner, options=options)


def remove_option(field: FieldConfig, index: int) -> FieldConfig:
    owner = _require_options(field)
    if not 0 <= index < len(owner.options):
        logger.debug("option_index_out_of_range", extra={"field_id": field.id, "index": index})
        return field
    return replace(owner, options=owner.options[:index] + owner.options[index + 1 :])


def field_to_dict(field: FieldConfig) -> dict[str, Any]:
    payload: dict[str, Any] = {"id": field.id, "kind": field.kind}
    for item in fields(field):
        if item.name == "id":
            continue
        value = getattr(field, item.name)
        if value is None:
            continue
        if item.name == "options":
            value = [{"id": option.id, "label": option.label, "value": option.value} for option in value]
        payload[WIRE_KEYS.get(item.name, item.name)] = value
    return payload


def field_from_dict(data: dict[str, Any]) -> FieldConfig:
    if not isinstance(data, dict):
        raise FieldModelError("field must be an object")
    field_type = field_type_for(str(data.get("kind", "")))
    attribute_names = {WIRE_KEYS.get(item.name, item.name): item.name for item in fields(field_type)}
    unknown = sorted(set(data) - set(attribute_names) - {"kind"})
    if unknown:
        raise FieldModelError(f"{field_type.kind} fields have no attribute: {', '.join(unknown)}")
    if not data.get("id"):
        raise FieldModelError("field id is required")

    values: dict[str, Any] = {"id": str(data["id"]), "label": _coerce_text(data.get("label"))}
    for key, name in attribute_names.items():
        if name in values or key not in data:
            continue
        values[name] = _coerce_attribute(name, data[key])
    return field_type(**values)


def fields_to_list(items: tuple[FieldConfig, ...] | list[FieldConfig]) -> list[dict[str, Any]]:
    return [field_to_dict(item) for item in items]


def fields_from_list(items: list[dict[str, Any]]) -> tuple[FieldConfig, ...]:
    parsed = tuple(field_from_dict(item) for item in items)
    seen: set[str] = set()
    for item in parsed:
        if item.id in seen:
            raise FieldModelError(f"duplicate field id: {item.id}")
        seen.add(item.id)
    return parsed
