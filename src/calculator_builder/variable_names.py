from __future__ import annotations

import logging
import re
from dataclasses import replace
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .field_model import FieldConfig

NON_ALPHANUMERIC_RUN = re.compile(r"[^a-z0-9]+")

logger = logging.getLogger(__name__)


def derive_variable_name(label: str) -> str:
    """Turn a human label into a snake_case variable name.

    "Project Name!" -> "project_name", "  Budget  " -> "budget", "A&B" -> "a_b".
    Labels without any alphanumeric character give an empty string.
    """
    return NON_ALPHANUMERIC_RUN.sub("_", label.lower()).strip("_")


def is_variable_name_synchronized(label: str, variable_name: str) -> bool:
    return variable_name == derive_variable_name(label)


def apply_label_change(field: FieldConfig, new_label: str) -> FieldConfig:
    """Relabel a field, carrying the variable name along while it still tracks the old label.

    There is no stored override flag: a variable name edited back to the
    derivation of the current label starts following the label again.
    """
    if is_variable_name_synchronized(field.label, field.variable_name):
        variable_name = derive_variable_name(new_label)
    else:
        variable_name = field.variable_name
        logger.debug(
            "variable_name_kept",
            extra={"field_id": field.id, "variable_name": variable_name},
        )
    return replace(field, label=new_label, variable_name=variable_name)
