"""
Module spreadsheet parser.

Reads the first sheet of an .xlsx/.xls module list. The first non-empty
row is the header; rows go through the same alias table and row rules
as the CSV parser.
"""

from io import BytesIO
from pathlib import Path
from typing import Union
import structlog

import pandas as pd

from exceptions import ModuleFileParseError
from parsers.header_aliases import SERIAL_FIELD
from parsers.import_rows import (
    ModuleParseResult,
    RowError,
    build_row,
    resolve_columns,
)
from utils.text_utils import clean_cell

logger = structlog.get_logger(__name__)


def _read_first_sheet(
    file: Union[str, Path, BytesIO],
    filename: str = ""
) -> pd.DataFrame:
    """Load the first sheet with every cell as text."""
    engine = "xlrd" if str(filename or file).lower().endswith(".xls") else "openpyxl"
    try:
        if isinstance(file, BytesIO):
            file.seek(0)
        return pd.read_excel(file, sheet_name=0, header=None, dtype=str, engine=engine)
    except Exception as e:
        logger.error("module_excel_read_failed", error=str(e), engine=engine)
        raise ModuleFileParseError(
            message="Failed to read Excel file",
            details={"original_error": str(e)}
        )


def parse_module_excel(
    file: Union[str, Path, BytesIO],
    filename: str = ""
) -> ModuleParseResult:
    """
    Parse a module spreadsheet.

    Args:
        file: File path (str/Path) or file-like object (BytesIO)
        filename: Original upload name, used to pick the .xls reader

    Returns:
        ModuleParseResult; row numbers are 1-based spreadsheet rows

    Raises:
        ModuleFileParseError: If the file cannot be read, has no data
            row, or has no serial number column
    """
    logger.info("parsing_module_excel", file_type=type(file).__name__)

    df = _read_first_sheet(file, filename)

    # (spreadsheet row number, cells) for every row with any value
    rows = []
    for index, values in enumerate(df.itertuples(index=False, name=None)):
        if any(clean_cell(v) is not None for v in values):
            rows.append((index + 1, list(values)))

    if len(rows) < 2:
        raise ModuleFileParseError(
            message="Sheet must have a header row and at least one data row",
            details={"non_empty_rows": len(rows)}
        )

    header_number, headers = rows[0]
    columns = resolve_columns(headers)

    if SERIAL_FIELD not in columns:
        raise ModuleFileParseError(
            message="Sheet must have a Serial Number column",
            details={"headers": [clean_cell(h) for h in headers], "row": header_number}
        )

    result = ModuleParseResult(headers=columns)

    for number, cells in rows[1:]:
        parsed = build_row(columns, cells, number)
        if isinstance(parsed, RowError):
            result.errors.append(parsed)
        else:
            result.modules.append(parsed)

    logger.info(
        "module_excel_parsed",
        modules=len(result.modules),
        errors=len(result.errors)
    )

    return result
