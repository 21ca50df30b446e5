import pytest

from calculator_builder.field_model import create_field, update_base
from calculator_builder.variable_names import (
    apply_label_change,
    derive_variable_name,
    is_variable_name_synchronized,
)


@pytest.mark.parametrize(
    ("label", "expected"),
    [
        ("Project Name!", "project_name"),
        ("  Budget  ", "budget"),
        ("A&B", "a_b"),
        ("hello world", "hello_world"),
        ("CamelCase", "camelcase"),
        ("multiple   spaces", "multiple_spaces"),
        ("---leading-trailing---", "leading_trailing"),
        ("already_snake_case", "already_snake_case"),
        ("special!@#$%chars", "special_chars"),
        ("123 numbers", "123_numbers"),
        ("a", "a"),
        ("", ""),
        ("!!!###", ""),
    ],
)
def test_derive_variable_name(label: str, expected: str) -> None:
    assert derive_variable_name(label) == expected


def test_derive_variable_name_is_idempotent() -> None:
    for label in ["Project Name!", "__x__y__", "Déjà vu 2", "  ", "Total (USD) / unit"]:
        once = derive_variable_name(label)
        assert derive_variable_name(once) == once


def test_label_edit_moves_synchronized_variable_name() -> None:
    field = update_base(create_field("text", id_factory=lambda: "f1"), label="Project Name")
    assert field.variable_name == "project_name"

    renamed = apply_label_change(field, "Budget Amount")

    assert renamed.label == "Budget Amount"
    assert renamed.variable_name == "budget_amount"


def test_label_edit_keeps_diverged_variable_name() -> None:
    field = update_base(create_field("text", id_factory=lambda: "f1"), label="Project Name")
    field = update_base(field, variable_name="my_custom_var")

    renamed = apply_label_change(field, "Budget Amount")

    assert renamed.label == "Budget Amount"
    assert renamed.variable_name == "my_custom_var"


def test_manual_variable_name_matching_derivation_resumes_sync() -> None:
    field = update_base(create_field("number", id_factory=lambda: "f1"), variable_name="custom")
    field = update_base(field, label="Unit Price")
    assert field.variable_name == "custom"

    field = update_base(field, variable_name="unit_price")
    field = update_base(field, label="Unit Cost")

    assert field.variable_name == "unit_cost"


def test_variable_name_edit_leaves_label_alone() -> None:
    field = create_field("slider", id_factory=lambda: "f1")

    edited = update_base(field, variable_name="discount_rate")

    assert edited.label == "Slider"
    assert not is_variable_name_synchronized(edited.label, edited.variable_name)
