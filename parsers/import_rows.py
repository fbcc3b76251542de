"""
Parsed module import rows.

Shared by the CSV and spreadsheet parsers: turns a header row plus a
data row into a sparse ImportRow, or a RowError when the serial number
is missing.
"""

from dataclasses import dataclass, field
from typing import Any, Optional, Union
import re

from parsers.header_aliases import SERIAL_FIELD, resolve_header
from utils.text_utils import clean_cell

MISSING_SERIAL = "Missing serial number"

TRUE_FLAGS = {"x", "true", "yes", "y", "1"}

_LEADING_INT = re.compile(r"^[+-]?\d+")


@dataclass
class ImportRow:
    """
    A candidate module from an import file.

    ``fields`` only holds columns that had a value in the source row,
    keyed by canonical field name.
    """
    serial_number: str
    fields: dict[str, Any] = field(default_factory=dict)
    row_number: Optional[int] = None

    @property
    def build_sequence(self) -> int:
        """Parsed sequence, 0 when the row has none."""
        return self.fields.get("build_sequence") or 0

    def has(self, name: str) -> bool:
        return name in self.fields

    def to_payload(self) -> dict:
        """Flat dict used by the import endpoint and the hosted function."""
        payload = {SERIAL_FIELD: self.serial_number, **self.fields}
        if self.row_number is not None:
            payload["row_number"] = self.row_number
        return payload

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "ImportRow":
        """
        Inverse of to_payload for rows posted to the API.

        Empty values are dropped so they never count as changes.
        """
        data = dict(payload)
        row_number = data.pop("row_number", None)
        serial = clean_cell(data.pop(SERIAL_FIELD, None)) or ""
        fields = {}
        for key, value in data.items():
            if value is None or (isinstance(value, str) and not value.strip()):
                continue
            fields[key] = coerce_field(key, value)
        return cls(serial_number=serial, fields=fields, row_number=row_number)


@dataclass
class RowError:
    """A rejected row."""
    row: int
    error: str


@dataclass
class ModuleParseResult:
    """Result of parsing a module import file."""
    modules: list[ImportRow] = field(default_factory=list)
    errors: list[RowError] = field(default_factory=list)
    headers: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        """True if every data row produced a module."""
        return len(self.errors) == 0

    def to_dict(self) -> dict:
        """Convert to dictionary for API response."""
        return {
            "modules": [row.to_payload() for row in self.modules],
            "errors": [
                {"row": e.row, "error": e.error}
                for e in self.errors
            ],
            "headers": self.headers,
        }


def parse_build_sequence(value: Any) -> int:
    """
    Parse a build sequence cell.

    Reads leading digits ("61", "61.0", "12a" → 61, 61, 12); anything
    else, including negatives, becomes 0.
    """
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return max(value, 0)
    if isinstance(value, float):
        return max(int(value), 0) if value == value else 0

    match = _LEADING_INT.match(str(value).strip())
    if not match:
        return 0
    return max(int(match.group()), 0)


def parse_flag(value: Any) -> bool:
    """Spreadsheet checkbox cells: X / true / yes / 1."""
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in TRUE_FLAGS


def coerce_field(name: str, value: Any) -> Any:
    """Convert a cleaned cell to the type its canonical field expects."""
    if name == "build_sequence":
        return parse_build_sequence(value)
    if name == "is_prototype":
        return parse_flag(value)
    return value


def build_row(
    columns: list[str],
    cells: list[Any],
    row_number: int
) -> Union[ImportRow, RowError]:
    """
    Map one data row onto canonical fields.

    Args:
        columns: Canonical field per column (from resolve_header)
        cells: Raw cell values
        row_number: 1-based source line

    Returns:
        ImportRow, or RowError when the serial number is missing
    """
    fields: dict[str, Any] = {}
    for column, raw in zip(columns, cells):
        if not column:
            continue
        value = clean_cell(raw)
        if value is None:
            continue
        fields[column] = coerce_field(column, value)

    serial = fields.pop(SERIAL_FIELD, None)
    if not serial:
        return RowError(row=row_number, error=MISSING_SERIAL)

    return ImportRow(serial_number=serial, fields=fields, row_number=row_number)


def resolve_columns(headers: list[Any]) -> list[str]:
    """Canonical field name for each header cell."""
    return [resolve_header(clean_cell(h)) for h in headers]
