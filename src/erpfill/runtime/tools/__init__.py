"""Tool implementations: excel, web. All spreadsheet and browser I/O goes through these."""

from erpfill.runtime.tools.excel import export_rows, normalize_row, read_records, read_rows
from erpfill.runtime.tools.web import (
    click,
    element_kind,
    is_truthy,
    script_click,
    select_option,
    select_second_option,
    set_checkbox,
    set_text,
)

# Element kind (from element_kind) -> value-setting action.
TOOLS = {
    "select": select_option,
    "checkbox": set_checkbox,
    "input": set_text,
    "textarea": set_text,
}

__all__ = [
    "TOOLS",
    "click",
    "element_kind",
    "export_rows",
    "is_truthy",
    "normalize_row",
    "read_records",
    "read_rows",
    "script_click",
    "select_option",
    "select_second_option",
    "set_checkbox",
    "set_text",
]
