from .spreadsheet_parser import (
    SpreadsheetRow,
    parse_spreadsheet_data,
    has_required_columns,
    extract_structured_rows,
    find_missing_columns,
    validate_rows,
    parse_pasted_rows,
)
from .positions_parser import PositionsParser, PositionsParseError, parse_positions

__all__ = [
    "SpreadsheetRow",
    "parse_spreadsheet_data",
    "has_required_columns",
    "extract_structured_rows",
    "find_missing_columns",
    "validate_rows",
    "parse_pasted_rows",
    "PositionsParser",
    "PositionsParseError",
    "parse_positions",
]
