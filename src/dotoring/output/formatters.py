"""Rich/JSON rendering of ServiceResult for the diagnostics CLI."""

from __future__ import annotations

import json as _json
from typing import TYPE_CHECKING, Any

from rich.table import Table

from dotoring.output.console import create_console, get_output, style_for_kind

if TYPE_CHECKING:
    from dotoring.services.result import ServiceResult

_TABLE_COLUMNS: dict[str, tuple[str, ...]] = {
    "plan": ("kind", "days_before", "trigger_at", "status"),
    "list_entries": ("entity_id", "kind", "handle"),
}


def _render_items(op: str, items: list[dict[str, Any]]) -> str:
    console = create_console()
    columns = _TABLE_COLUMNS[op]
    table = Table(show_header=True, header_style="doto.key")
    for column in columns:
        table.add_column(column)
    for item in items:
        if item.get("status") == "past":
            style = "doto.past"
        else:
            style = style_for_kind(str(item.get("kind", "")))
        table.add_row(*(str(item.get(c, "")) for c in columns), style=style)
    console.print(table)
    return get_output(console).rstrip("\n")


def _format_data_human(data: dict[str, Any]) -> str:
    lines: list[str] = []
    for key, value in data.items():
        if key == "items":
            continue
        if isinstance(value, (dict, list)):
            lines.append(f"  {key}: {_json.dumps(value, separators=(',', ':'))}")
        else:
            lines.append(f"  {key}: {value}")
    return "\n".join(lines)


def format_result(result: ServiceResult, *, json_output: bool = False) -> str:
    """Format a ServiceResult as JSON or human-readable text."""
    if json_output:
        return result.model_dump_json(indent=2)
    if not result.ok:
        error_msg = result.error.message if result.error else "Unknown error"
        return f"ERROR: {result.op} - {error_msg}"

    parts = [f"OK: {result.op}"]
    summary = _format_data_human(result.data)
    if summary:
        parts.append(summary)
    items = result.data.get("items")
    if result.op in _TABLE_COLUMNS and items:
        parts.append(_render_items(result.op, items))
    return "\n".join(parts)
