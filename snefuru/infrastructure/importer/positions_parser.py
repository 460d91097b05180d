"""
Positions Parser - Keyword Ranking Export Import
=================================================

Parses SEO tool exports (Excel or CSV) of organic keyword positions and
maps their columns onto OrganicPosition fields.
Supports .xlsx, .xls, and .csv formats.
"""

import io
import math
import logging
from pathlib import Path
from typing import List, Dict, Optional, Tuple, Any
from urllib.parse import urlparse

import pandas as pd

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = ['.xlsx', '.xls', '.csv']

# Header variations (lower-case) -> position field
HEADER_MAPPING = {
    'keyword': 'keyword',
    'keywords': 'keyword',
    'search term': 'keyword',
    'url': 'url',
    'landing page': 'url',
    'page url': 'url',
    'domain': 'domain',
    'hostname': 'domain',
    'position': 'position',
    'rank': 'position',
    'ranking': 'position',
    'previous position': 'previous_position',
    'prev position': 'previous_position',
    'last position': 'previous_position',
    'position change': 'position_change',
    'change': 'position_change',
    'search volume': 'search_volume',
    'volume': 'search_volume',
    'monthly searches': 'search_volume',
    'cpc': 'cpc',
    'cost per click': 'cpc',
    'avg cpc': 'cpc',
    'competition': 'competition',
    'comp': 'competition',
    'difficulty': 'difficulty',
    'traffic': 'traffic',
    'organic traffic': 'traffic',
    'traffic cost': 'traffic_cost',
    'timestamp': 'timestamp',
    'date': 'timestamp',
    'location': 'location',
    'country': 'location',
    'geo': 'location',
    'device': 'device',
    'search engine': 'search_engine',
    'engine': 'search_engine',
    'language': 'language',
    'lang': 'language',
    'date captured': 'date_captured',
    'capture date': 'date_captured',
    'serp features': 'serp_features',
    'features': 'serp_features',
    'visibility': 'visibility',
    'estimated clicks': 'estimated_clicks',
    'clicks': 'estimated_clicks',
    'click through rate': 'click_through_rate',
    'ctr': 'click_through_rate',
    'title': 'title',
    'page title': 'title',
    'description': 'description',
    'meta description': 'meta_description',
    'meta desc': 'meta_description',
    'h1 tag': 'h1_tag',
    'h1': 'h1_tag',
    'word count': 'word_count',
    'words': 'word_count',
    'page authority': 'page_authority',
    'pa': 'page_authority',
    'domain authority': 'domain_authority',
    'da': 'domain_authority',
    'backlinks': 'backlinks',
    'links': 'backlinks',
    'referring domains': 'referring_domains',
    'ref domains': 'referring_domains',
    'social shares': 'social_shares',
    'shares': 'social_shares',
}

INTEGER_FIELDS = {
    'position', 'previous_position', 'position_change', 'search_volume', 'traffic',
    'estimated_clicks', 'word_count', 'backlinks', 'referring_domains', 'social_shares',
}

# Decimal-looking values kept verbatim so they are not rounded
TEXT_METRIC_FIELDS = {
    'cpc', 'traffic_cost', 'difficulty', 'visibility', 'click_through_rate',
    'page_authority', 'domain_authority',
}

MAX_LENGTHS = {'keyword': 500, 'url': 2048, 'domain': 255}


class PositionsParseError(ValueError):
    """Raised when an uploaded positions file cannot be imported."""
    pass


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ''
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def domain_from_url(url: str) -> Optional[str]:
    """Host part of a URL, or the third '/'-separated segment for odd inputs."""
    host = urlparse(url).hostname
    if host:
        return host
    parts = url.split('/')
    if len(parts) > 2 and parts[2]:
        return parts[2]
    return None


class PositionsParser:
    """
    Keyword positions parser with header alias detection.

    Usage:
        parser = PositionsParser()
        positions, skipped_rows = parser.parse(content, "export.xlsx", user_id=1)
    """

    def __init__(self):
        self.column_map: Dict[int, str] = {}

    def parse(self, content: bytes, filename: str, user_id: int) -> Tuple[List[Dict], List[int]]:
        """
        Parse an uploaded file.

        Args:
            content: Raw file bytes
            filename: Original file name (extension picks the reader)
            user_id: Owner of the imported rows

        Returns:
            Tuple of (position dicts, skipped spreadsheet row numbers)
        """
        rows = self._read_rows(content, filename)

        if len(rows) < 2:
            raise PositionsParseError("File must contain header row and at least one data row")

        self.column_map = self._map_headers(rows[0])
        logger.info(f"Detected columns: {self.column_map}")

        mapped = set(self.column_map.values())
        if 'keyword' not in mapped or 'url' not in mapped:
            raise PositionsParseError('File must contain at least "keyword" and "url" columns')

        positions = []
        skipped_rows = []

        for index, row in enumerate(rows[1:]):
            # Row number as the user sees it in the spreadsheet (header is row 1)
            row_number = index + 2

            if all(_is_empty(cell) for cell in row):
                continue

            position = self._convert_row(row, user_id)
            if position.get('keyword') and position.get('url'):
                positions.append(position)
            else:
                skipped_rows.append(row_number)

        if not positions:
            raise PositionsParseError("No valid data rows found in the file")

        logger.info(f"Parsed {len(positions)} positions from {filename}, skipped {len(skipped_rows)}")
        return positions, skipped_rows

    def _read_rows(self, content: bytes, filename: str) -> List[List[Any]]:
        """Read the first sheet as a list of raw rows, header included."""
        ext = Path(filename or '').suffix.lower()
        buffer = io.BytesIO(content)

        try:
            if ext == '.csv':
                df = pd.read_csv(buffer, header=None, dtype=str, keep_default_na=False)
            elif ext in ['.xlsx', '.xls']:
                df = pd.read_excel(buffer, sheet_name=0, header=None)
            else:
                raise PositionsParseError(
                    f"Unsupported file format: {ext or 'none'}. Use .xlsx, .xls, or .csv"
                )
        except PositionsParseError:
            raise
        except pd.errors.EmptyDataError:
            return []
        except Exception as e:
            logger.error(f"Failed to read file: {e}")
            raise PositionsParseError(f"Failed to read file: {e}") from e

        return df.values.tolist()

    def _map_headers(self, headers: List[Any]) -> Dict[int, str]:
        column_map = {}
        for index, header in enumerate(headers):
            if _is_empty(header):
                continue
            field_name = HEADER_MAPPING.get(str(header).strip().lower())
            if field_name:
                column_map[index] = field_name
        return column_map

    def _convert_row(self, row: List[Any], user_id: int) -> Dict:
        position: Dict[str, Any] = {
            'user_id': user_id,
            'search_engine': 'google',
            'language': 'en',
        }

        for index, field_name in self.column_map.items():
            value = row[index] if index < len(row) else None
            if _is_empty(value):
                continue

            if field_name in INTEGER_FIELDS:
                number = self._to_number(value)
                if number is not None:
                    position[field_name] = math.floor(number + 0.5)
            elif field_name in TEXT_METRIC_FIELDS:
                position[field_name] = str(value).strip()
            else:
                text = str(value).strip()
                limit = MAX_LENGTHS.get(field_name)
                position[field_name] = text[:limit] if limit else text

        if position.get('url') and not position.get('domain'):
            domain = domain_from_url(position['url'])
            if domain:
                position['domain'] = domain[:MAX_LENGTHS['domain']]

        return position

    @staticmethod
    def _to_number(value: Any) -> Optional[float]:
        try:
            number = float(str(value).strip())
        except ValueError:
            return None
        if not math.isfinite(number):
            return None
        return number


def parse_positions(content: bytes, filename: str, user_id: int) -> Tuple[List[Dict], List[int]]:
    """Convenience function to parse a positions file."""
    return PositionsParser().parse(content, filename, user_id)
