"""Output formatting for the plugsmith CLI.

Implements JSON and human-readable output modes.
stdout contains only results; stderr carries logs and diagnostics.
"""

import json
import sys
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel

OutputFormat = Literal["json", "human"]

_output_format: OutputFormat = "json"


def set_output_format(format: OutputFormat) -> None:
    """Set the global output format."""
    global _output_format
    _output_format = format


def get_output_format() -> OutputFormat:
    """Get the current output format."""
    return _output_format


class JSONEncoder(json.JSONEncoder):
    """Custom JSON encoder for plugsmith types."""

    def default(self, obj: Any) -> Any:
        if isinstance(obj, Path):
            return str(obj)
        if isinstance(obj, Enum):
            return obj.value
        if isinstance(obj, datetime):
            return obj.isoformat()
        if isinstance(obj, BaseModel):
            return obj.model_dump(mode="json")
        return super().default(obj)


def _plain(data: Any) -> Any:
    if isinstance(data, BaseModel):
        return data.model_dump(mode="json")
    if isinstance(data, list):
        return [_plain(item) for item in data]
    return data


def output_json(data: Any, file: Any = None) -> None:
    """Output data as JSON to stdout.

    Args:
        data: Data to output (dict, list, or Pydantic model)
        file: Output file (defaults to stdout)
    """
    if file is None:
        file = sys.stdout

    json.dump(_plain(data), file, cls=JSONEncoder, ensure_ascii=False)
    file.write("\n")
    file.flush()


def output_human(data: Any, title: str | None = None, file: Any = None) -> None:
    """Output data in human-readable format to stdout.

    Args:
        data: Data to output
        title: Optional title for the output
        file: Output file (defaults to stdout)
    """
    if file is None:
        file = sys.stdout

    if title:
        file.write(f"\n{title}\n")
        file.write("=" * len(title) + "\n\n")

    data = _plain(data)
    if isinstance(data, dict):
        _format_dict(data, file)
    elif isinstance(data, list):
        _format_list(data, file)
    else:
        file.write(str(data) + "\n")

    file.flush()


def output_human_table(
    records: list[dict[str, Any]],
    columns: list[str] | None = None,
    title: str | None = None,
    file: Any = None,
    max_width: int = 50,
) -> None:
    """Output records as a human-readable table.

    Args:
        records: List of record dictionaries
        columns: Columns to display (all keys of the first record if None)
        title: Optional title for the table
        file: Output file (defaults to stdout)
        max_width: Maximum column width
    """
    if file is None:
        file = sys.stdout

    if not records:
        file.write("No plugins.\n")
        return

    if title:
        file.write(f"\n{title}\n")
        file.write("=" * len(title) + "\n\n")

    if columns is None:
        columns = list(records[0].keys())

    widths = {col: len(col) for col in columns}
    for record in records:
        for col in columns:
            widths[col] = min(max_width, max(widths[col], len(str(record.get(col, "")))))

    header = " | ".join(col.ljust(widths[col])[: widths[col]] for col in columns)
    file.write(header + "\n")
    file.write("-" * len(header) + "\n")

    for record in records:
        row = []
        for col in columns:
            value = record.get(col)
            value_str = str(value) if value is not None else ""
            if len(value_str) > widths[col]:
                value_str = value_str[: widths[col] - 3] + "..."
            row.append(value_str.ljust(widths[col]))
        file.write(" | ".join(row) + "\n")

    file.write(f"\nTotal: {len(records)} plugins\n")
    file.flush()


def _format_dict(data: dict[str, Any], file: Any, indent: int = 0) -> None:
    """Format a dictionary for human-readable output."""
    prefix = "  " * indent
    for key, value in data.items():
        if isinstance(value, dict):
            file.write(f"{prefix}{key}:\n")
            _format_dict(value, file, indent + 1)
        elif isinstance(value, list):
            file.write(f"{prefix}{key}:\n")
            _format_list(value, file, indent + 1)
        else:
            file.write(f"{prefix}{key}: {value}\n")


def _format_list(data: list[Any], file: Any, indent: int = 0) -> None:
    """Format a list for human-readable output."""
    prefix = "  " * indent
    for i, item in enumerate(data):
        if isinstance(item, dict):
            file.write(f"{prefix}[{i}]:\n")
            _format_dict(item, file, indent + 1)
        else:
            file.write(f"{prefix}- {item}\n")


def output(data: Any, format: OutputFormat | None = None, **kwargs: Any) -> None:
    """Output data in the specified format (uses global if not specified)."""
    if format is None:
        format = _output_format

    if format == "human":
        output_human(data, **kwargs)
    else:
        output_json(data, **kwargs)


def output_error(error: Any, file: Any = None) -> None:
    """Output an error to stdout in the current format.

    Errors are output to stdout (not stderr) for programmatic handling.
    """
    output(error, file=file)


class OutputFormatter:
    """Encapsulates output formatting for commands."""

    def __init__(self, format: OutputFormat = "json"):
        self.format = format

    def output(self, data: Any) -> None:
        """Output data in the configured format."""
        output(data, format=self.format)

    def table(self, records: list[Any], columns: list[str] | None = None) -> None:
        """Output a list of records, as a table in human mode."""
        if self.format == "human":
            output_human_table(_plain(records), columns=columns)
        else:
            output_json(records)

    def error(self, error: Any) -> None:
        """Output error in the configured format."""
        output(error, format=self.format)
