"""
Module CSV parser.

Parses a serial number / build sequence / metadata table exported from
the sequencing sheet. Headers are matched through the alias table;
rows without a serial number are reported and skipped.
"""

import csv
import structlog

from exceptions import CSVParseError
from parsers.header_aliases import SERIAL_FIELD
from parsers.import_rows import (
    ModuleParseResult,
    RowError,
    build_row,
    resolve_columns,
)

logger = structlog.get_logger(__name__)


def split_csv_line(line: str) -> list[str]:
    """
    Split one CSV line.

    Quoted cells may contain commas, and "" inside quotes is a literal
    quote: '"Room ""A"", 5th"' → 'Room "A", 5th'.
    """
    return next(csv.reader([line]), [])


def parse_module_csv(text: str) -> ModuleParseResult:
    """
    Parse module CSV text.

    Args:
        text: Raw file contents

    Returns:
        ModuleParseResult with one ImportRow per data line that has a
        serial number, and a RowError (1-based source line) per line
        that does not

    Raises:
        CSVParseError: If there is no data row or no serial number column
    """
    # (source line number, text) for every non-blank line
    lines = [
        (number, line)
        for number, line in enumerate(text.splitlines(), start=1)
        if line.strip()
    ]

    logger.info("parsing_module_csv", line_count=len(lines))

    if len(lines) < 2:
        raise CSVParseError(
            message="CSV file must have a header row and at least one data row",
            details={"non_empty_lines": len(lines)}
        )

    header_number, header_line = lines[0]
    headers = split_csv_line(header_line)
    columns = resolve_columns(headers)

    if SERIAL_FIELD not in columns:
        logger.warning("csv_missing_serial_column", headers=headers)
        raise CSVParseError(
            message="CSV must have a Serial Number column",
            details={"headers": headers, "row": header_number}
        )

    result = ModuleParseResult(headers=columns)

    for number, line in lines[1:]:
        parsed = build_row(columns, split_csv_line(line), number)
        if isinstance(parsed, RowError):
            result.errors.append(parsed)
        else:
            result.modules.append(parsed)

    logger.info(
        "module_csv_parsed",
        modules=len(result.modules),
        errors=len(result.errors)
    )

    return result
