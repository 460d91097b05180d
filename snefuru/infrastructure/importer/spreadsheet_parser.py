"""
Spreadsheet Paste Parser
========================

Turns text copied from Excel / Google Sheets (tab separated, one row per
line) into a grid of cells, and pulls the image generation rows out of it.

The header row decides which columns hold the prompt and the file name:
any header containing "prompt" and any header containing "file".
"""

import re
import logging
from dataclasses import dataclass
from typing import List, Dict, Optional, Tuple

logger = logging.getLogger(__name__)

PROMPT_FIELD = "actual_prompt_for_image_generating_ai_tool"
FILE_NAME_FIELD = "file_name"

PROMPT_HEADER_PATTERN = "prompt"
FILE_HEADER_PATTERN = "file"

_LINE_SPLIT = re.compile(r"\r?\n")


@dataclass(frozen=True)
class SpreadsheetRow:
    """One image to generate."""
    actual_prompt_for_image_generating_ai_tool: str
    file_name: str

    @property
    def prompt(self) -> str:
        return self.actual_prompt_for_image_generating_ai_tool

    def to_dict(self) -> Dict[str, str]:
        return {PROMPT_FIELD: self.prompt, FILE_NAME_FIELD: self.file_name}


def parse_spreadsheet_data(pasted_data: str) -> List[List[str]]:
    """
    Parse clipboard text into a rectangular grid of strings.

    Blank lines are dropped, cells are trimmed and short rows are padded
    with empty strings up to the widest row.
    """
    rows = [row for row in _LINE_SPLIT.split(pasted_data or "") if row.strip() != ""]
    if not rows:
        return []

    processed = [[cell.strip() for cell in row.split("\t")] for row in rows]
    max_columns = max(len(row) for row in processed)

    return [row + [""] * (max_columns - len(row)) for row in processed]


def has_required_columns(headers: List[str], required_columns: List[str]) -> bool:
    """True if every required column matches (equals or is contained in) some header."""
    lower_headers = [h.lower() for h in headers]
    return all(
        any(header == required.lower() or required.lower() in header for header in lower_headers)
        for required in required_columns
    )


def _find_column(headers: List[str], pattern: str) -> Optional[int]:
    """Index of the first header containing the pattern, case-insensitive."""
    for index, header in enumerate(headers):
        if header and pattern in header.lower():
            return index
    return None


def find_missing_columns(headers: List[str]) -> List[str]:
    """Logical columns that cannot be located in the header row."""
    missing = []
    if _find_column(headers, PROMPT_HEADER_PATTERN) is None:
        missing.append(PROMPT_FIELD)
    if _find_column(headers, FILE_HEADER_PATTERN) is None:
        missing.append(FILE_NAME_FIELD)
    return missing


def extract_structured_rows(cells: List[List[str]]) -> List[SpreadsheetRow]:
    """
    Extract SpreadsheetRows from a parsed grid.

    Returns an empty list (never raises) when the grid is empty or the
    prompt / file name columns cannot be found.
    """
    if not cells or (len(cells) == 1 and all(not cell for cell in cells[0])):
        return []

    headers = cells[0]
    prompt_index = _find_column(headers, PROMPT_HEADER_PATTERN)
    file_index = _find_column(headers, FILE_HEADER_PATTERN)

    if prompt_index is None or file_index is None:
        logger.debug(f"Header row lacks prompt/file columns: {headers}")
        return []

    rows = []
    for row in cells[1:]:
        prompt = row[prompt_index] if prompt_index < len(row) else ""
        file_name = row[file_index] if file_index < len(row) else ""
        if not prompt or not file_name:
            continue
        rows.append(SpreadsheetRow(prompt, file_name))

    logger.info(f"Extracted {len(rows)} image rows from {len(cells) - 1} data rows")
    return rows


def validate_rows(raw_rows: List[Dict]) -> Tuple[List[SpreadsheetRow], int]:
    """
    Validate rows submitted as dicts (e.g. JSON).

    A row is valid when both fields are present as strings and the file
    name is not blank. Returns (valid rows, number of invalid rows).
    """
    valid = []
    invalid = 0

    for raw in raw_rows:
        prompt = raw.get(PROMPT_FIELD) if isinstance(raw, dict) else None
        file_name = raw.get(FILE_NAME_FIELD) if isinstance(raw, dict) else None

        if not isinstance(prompt, str) or not isinstance(file_name, str) or not file_name.strip():
            logger.warning(f"Invalid row data: {raw}")
            invalid += 1
            continue

        valid.append(SpreadsheetRow(prompt, file_name.strip()))

    return valid, invalid


def parse_pasted_rows(pasted_data: str) -> List[SpreadsheetRow]:
    """Convenience: parse pasted text straight into SpreadsheetRows."""
    return extract_structured_rows(parse_spreadsheet_data(pasted_data))
