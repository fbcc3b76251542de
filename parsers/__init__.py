"""
Module import file parsers.
"""

from parsers.header_aliases import (
    HEADER_ALIASES,
    ALIAS_LOOKUP,
    SERIAL_FIELD,
    build_alias_lookup,
    resolve_header,
)
from parsers.import_rows import (
    ImportRow,
    RowError,
    ModuleParseResult,
    MISSING_SERIAL,
    parse_build_sequence,
    parse_flag,
)
from parsers.module_csv_parser import parse_module_csv
from parsers.module_excel_parser import parse_module_excel

__all__ = [
    "HEADER_ALIASES",
    "ALIAS_LOOKUP",
    "SERIAL_FIELD",
    "build_alias_lookup",
    "resolve_header",
    "ImportRow",
    "RowError",
    "ModuleParseResult",
    "MISSING_SERIAL",
    "parse_build_sequence",
    "parse_flag",
    "parse_module_csv",
    "parse_module_excel",
]
