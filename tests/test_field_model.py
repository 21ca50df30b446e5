import itertools

import pytest

from calculator_builder.field_model import (
    FIELD_KINDS,
    CheckboxFieldConfig,
    DropdownFieldConfig,
    FieldModelError,
    FieldOption,
    FieldUpdateError,
    NumberFieldConfig,
    UnknownFieldKindError,
    add_option,
    apply_changes,
    create_field,
    field_from_dict,
    field_kind_palette,
    field_to_dict,
    fields_from_list,
    generate_id,
    remove_option,
    update_attributes,
    update_base,
    update_option,
)


def sequential_ids(prefix: str = "id"):
    counter = itertools.count(1)
    return lambda: f"{prefix}{next(counter)}"


def test_create_field_defaults_for_every_kind() -> None:
    for kind in FIELD_KINDS:
        field = create_field(kind, id_factory=lambda: "f1")
        assert field.kind == kind
        assert field.id == "f1"
        assert field.required is False
        assert field.help_text is None

    dropdown = create_field("dropdown")
    assert dropdown.label == "Dropdown"
    assert dropdown.variable_name == "dropdown"
    assert dropdown.options == ()

    number = create_field("number")
    assert number.label == "Number Input"
    assert number.variable_name == "number_input"
    assert not hasattr(number, "options")


def test_create_field_uses_provided_label() -> None:
    field = create_field("radio", "Shipping Speed")
    assert field.label == "Shipping Speed"
    assert field.variable_name == "shipping_speed"


def test_create_field_rejects_unknown_kind() -> None:
    with pytest.raises(UnknownFieldKindError, match="unknown field kind"):
        create_field("colour_picker")


def test_generate_id_is_unique() -> None:
    assert len({generate_id() for _ in range(100)}) == 100


def test_palette_lists_kinds_in_order() -> None:
    palette = field_kind_palette()
    assert [entry["kind"] for entry in palette] == list(FIELD_KINDS)
    assert palette[1] == {"kind": "radio", "label": "Radio Button"}


def test_update_base_preserves_kind_attributes() -> None:
    field = update_attributes(create_field("number", id_factory=lambda: "n1"), min=1, max=10, placeholder="Qty")

    updated = update_base(field, required=True, help_text="How many units")

    assert isinstance(updated, NumberFieldConfig)
    assert updated.id == "n1"
    assert updated.required is True
    assert updated.help_text == "How many units"
    assert (updated.min, updated.max, updated.placeholder) == (1, 10, "Qty")


def test_update_attributes_preserves_base_attributes() -> None:
    field = update_base(create_field("slider", id_factory=lambda: "s1"), label="Discount", required=True)

    updated = update_attributes(field, step=0.05, default_value="0.1")

    assert updated.label == "Discount"
    assert updated.variable_name == "discount"
    assert updated.required is True
    assert updated.step == 0.05
    assert updated.default_value == 0.1


def test_update_attributes_clears_blank_input() -> None:
    field = update_attributes(create_field("number"), min=5, placeholder="Enter")

    cleared = update_attributes(field, min="", placeholder="")

    assert cleared.min is None
    assert cleared.placeholder is None


def test_update_attributes_clears_non_finite_numbers() -> None:
    field = update_attributes(create_field("number"), min=2, max=8, step=1)

    cleared = update_attributes(field, min="nan", max="NaN", step=float("inf"), default_value="-Infinity")

    assert (cleared.min, cleared.max, cleared.step, cleared.default_value) == (None, None, None, None)


def test_null_label_and_variable_name_become_empty_text() -> None:
    field = update_base(create_field("text"), label=None)
    assert field.label == ""
    assert field.variable_name == ""

    field = update_base(create_field("text"), variable_name=None)
    assert field.variable_name == ""

    parsed = field_from_dict({"id": "t1", "kind": "text", "label": None, "variableName": None})
    assert (parsed.label, parsed.variable_name) == ("", "")


def test_update_attributes_rejects_foreign_attribute() -> None:
    with pytest.raises(FieldUpdateError, match="text fields have no attribute: min"):
        update_attributes(create_field("text"), min=3)
    with pytest.raises(FieldUpdateError, match="slider fields have no attribute: placeholder"):
        update_attributes(create_field("slider"), placeholder="x")


def test_apply_changes_rejects_identity_changes() -> None:
    with pytest.raises(FieldUpdateError, match="cannot change id"):
        apply_changes(create_field("text"), {"id": "other"})
    with pytest.raises(FieldUpdateError, match="cannot change kind"):
        apply_changes(create_field("text"), {"kind": "number"})


def test_apply_changes_routes_label_through_synchronizer() -> None:
    field = create_field("text")

    updated = apply_changes(field, {"label": "Company Name", "placeholder": "Acme Ltd"})

    assert updated.variable_name == "company_name"
    assert updated.placeholder == "Acme Ltd"


def test_option_edits() -> None:
    ids = sequential_ids("opt")
    field = create_field("dropdown", id_factory=lambda: "d1")
    field = add_option(field, id_factory=ids)
    field = add_option(field, id_factory=ids)
    field = add_option(field, id_factory=ids)
    assert [option.id for option in field.options] == ["opt1", "opt2", "opt3"]
    assert field.options[0] == FieldOption(id="opt1", label="", value="")

    field = update_option(field, 1, label="Express", value="express")
    assert field.options[1] == FieldOption(id="opt2", label="Express", value="express")
    assert field.options[0] == FieldOption(id="opt1")
    assert field.options[2] == FieldOption(id="opt3")

    field = update_option(field, 1, value="next_day")
    assert field.options[1].label == "Express"
    assert field.options[1].value == "next_day"

    field = remove_option(field, 0)
    assert [option.id for option in field.options] == ["opt2", "opt3"]
    assert field.label == "Dropdown"


def test_removing_only_option_yields_empty_options() -> None:
    field = add_option(create_field("checkbox"), id_factory=lambda: "only")

    emptied = remove_option(field, 0)

    assert isinstance(emptied, CheckboxFieldConfig)
    assert emptied.options == ()


def test_option_index_out_of_range_is_a_no_op() -> None:
    field = add_option(create_field("radio"), id_factory=lambda: "o1")
    assert update_option(field, 5, label="x") is field
    assert remove_option(field, -1) is field


def test_option_edits_require_option_kind() -> None:
    with pytest.raises(FieldUpdateError, match="number fields have no options"):
        add_option(create_field("number"))


def test_field_dict_round_trip_uses_wire_keys() -> None:
    field = DropdownFieldConfig(
        id="d1",
        label="Plan",
        variable_name="plan",
        required=True,
        help_text="Pick one",
        options=(FieldOption(id="o1", label="Basic", value="basic"),),
    )

    payload = field_to_dict(field)

    assert payload == {
        "id": "d1",
        "kind": "dropdown",
        "label": "Plan",
        "variableName": "plan",
        "required": True,
        "helpText": "Pick one",
        "options": [{"id": "o1", "label": "Basic", "value": "basic"}],
    }
    assert field_from_dict(payload) == field


def test_field_to_dict_omits_unset_optionals() -> None:
    payload = field_to_dict(update_attributes(create_field("number", id_factory=lambda: "n1"), max=99))
    assert payload["max"] == 99
    assert "min" not in payload
    assert "defaultValue" not in payload
    assert "helpText" not in payload


def test_field_from_dict_rejects_bad_payloads() -> None:
    with pytest.raises(FieldModelError, match="options must be a list"):
        field_from_dict({"id": "x", "kind": "radio", "label": "R", "options": "abc"})
    with pytest.raises(UnknownFieldKindError):
        field_from_dict({"id": "x", "kind": "matrix", "label": "M"})
    with pytest.raises(FieldModelError, match="have no attribute: options"):
        field_from_dict({"id": "x", "kind": "text", "label": "T", "options": []})
    with pytest.raises(FieldModelError, match="field id is required"):
        field_from_dict({"kind": "text", "label": "T"})


def test_fields_from_list_rejects_duplicate_ids() -> None:
    with pytest.raises(FieldModelError, match="duplicate field id"):
        fields_from_list(
            [
                {"id": "a", "kind": "text", "label": "A"},
                {"id": "a", "kind": "number", "label": "B"},
            ]
        )
