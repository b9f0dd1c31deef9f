from __future__ import annotations

import csv
import io
import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from api.config import HISTORY_IMPORT_ERROR_CEILING, HISTORY_IMPORT_MAX_BYTES

logger = logging.getLogger(__name__)

EMPTY_FILE = "empty_file"
WRONG_TYPE = "wrong_type"
OVERSIZED = "oversized"
UNRECOGNIZED_HEADER = "unrecognized_header"
UNPARSEABLE_ROW = "unparseable_row"
TOO_MANY_ERRORS = "too_many_errors"
NO_VALID_ROWS = "no_valid_rows"

# header candidates, matched case-insensitively as substrings, in priority order
TITLE_HEADERS = ("name", "title", "film")
YEAR_HEADERS = ("year", "release year", "date")
RATING_HEADERS = ("rating", "your rating", "stars")
WATCHED_HEADERS = ("watched date", "date watched", "watch date")

_TEXT_RATINGS = (
    ("dislike", 2.0),
    ("love", 5.0),
    ("like", 4.0),
    ("meh", 3.0),
    ("hate", 1.0),
)
_YEAR_RE = re.compile(r"(\d{4})")


class HistoryImportError(ValueError):
    def __init__(self, kind: str, message: str, row_errors: Sequence[str] = ()):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.row_errors = list(row_errors)

    def to_dict(self) -> Dict[str, object]:
        return {"kind": self.kind, "message": self.message, "row_errors": self.row_errors}


@dataclass
class HistoryEntry:
    title: str
    year: Optional[int] = None
    # 0 means watched without a rating
    rating: float = 0.0
    watched_date: Optional[str] = None


@dataclass
class HistoryImport:
    entries: List[HistoryEntry] = field(default_factory=list)
    row_errors: List[str] = field(default_factory=list)


@dataclass
class _Columns:
    title: int
    year: int = -1
    rating: int = -1
    watched_date: int = -1


def _find_column(headers: Sequence[str], candidates: Sequence[str]) -> int:
    lowered = [h.strip().lower() for h in headers]
    for candidate in candidates:
        for index, header in enumerate(lowered):
            if candidate in header:
                return index
    return -1


def find_columns(headers: Sequence[str]) -> _Columns:
    title = _find_column(headers, TITLE_HEADERS)
    if title == -1:
        raise HistoryImportError(
            UNRECOGNIZED_HEADER,
            "Could not find a title column (expected one of: Name, Title, Film).",
        )
    watched = _find_column(headers, WATCHED_HEADERS)
    year = _find_column(headers, YEAR_HEADERS)
    if year == watched:
        # "Watched Date" also contains "date"; prefer an explicit year column
        year = _find_column(headers, YEAR_HEADERS[:2])
    return _Columns(
        title=title,
        year=year,
        rating=_find_column(headers, RATING_HEADERS),
        watched_date=watched,
    )


def parse_rating(text: str) -> float:
    """
    Normalise a rating to the 0-5 scale.

    Accepts star strings (with an optional half star), decimals on a 5 or 10
    point scale and a few words. Empty text means unrated and returns 0.
    """
    value = (text or "").strip().strip('"')
    if not value:
        return 0.0
    if "★" in value or "½" in value:
        return value.count("★") + (0.5 if "½" in value else 0.0)
    try:
        number = float(value)
    except ValueError:
        lowered = value.lower()
        for word, rating in _TEXT_RATINGS:
            if word in lowered:
                return rating
        raise ValueError(f"unrecognised rating '{value}'")
    if number < 0 or number > 10:
        raise ValueError(f"rating {number:g} out of range")
    if number <= 5:
        return number
    return number / 2


def _cell(row: Sequence[str], index: int) -> str:
    if index < 0 or index >= len(row):
        return ""
    return row[index].strip()


def _parse_row(row: Sequence[str], columns: _Columns) -> HistoryEntry:
    title = _cell(row, columns.title)
    if not title:
        raise ValueError("missing title")
    year = None
    match = _YEAR_RE.search(_cell(row, columns.year))
    if match:
        year = int(match.group(1))
    return HistoryEntry(
        title=title,
        year=year,
        rating=parse_rating(_cell(row, columns.rating)),
        watched_date=_cell(row, columns.watched_date) or None,
    )


def _decode(content: bytes) -> str:
    try:
        return content.decode("utf-8-sig")
    except UnicodeDecodeError:
        raise HistoryImportError(WRONG_TYPE, "File is not UTF-8 text; upload a CSV export.")


def parse_letterboxd_csv(
    content: bytes,
    filename: Optional[str] = None,
    max_bytes: int = HISTORY_IMPORT_MAX_BYTES,
    error_ceiling: int = HISTORY_IMPORT_ERROR_CEILING,
) -> HistoryImport:
    """Parse a Letterboxd ratings/diary CSV export into history entries."""
    if filename and not filename.lower().endswith(".csv"):
        raise HistoryImportError(WRONG_TYPE, f"Expected a .csv file, got '{filename}'.")
    if len(content) > max_bytes:
        raise HistoryImportError(
            OVERSIZED, f"File is {len(content)} bytes; the limit is {max_bytes}."
        )
    text = _decode(content)
    if not text.strip():
        raise HistoryImportError(EMPTY_FILE, "The file is empty.")

    reader = csv.reader(io.StringIO(text))
    result = HistoryImport()
    try:
        headers = next(reader, None)
        if not headers or not any(h.strip() for h in headers):
            raise HistoryImportError(EMPTY_FILE, "The file has no header row.")
        columns = find_columns(headers)
        for line_no, row in enumerate(reader, start=2):
            if not any(cell.strip() for cell in row):
                continue
            try:
                result.entries.append(_parse_row(row, columns))
            except ValueError as exc:
                result.row_errors.append(f"Row {line_no}: {exc}")
                if len(result.row_errors) > error_ceiling:
                    raise HistoryImportError(
                        TOO_MANY_ERRORS,
                        f"Import stopped after more than {error_ceiling} bad rows.",
                        result.row_errors,
                    )
    except csv.Error as exc:
        raise HistoryImportError(
            UNPARSEABLE_ROW,
            f"Row {reader.line_num}: {exc}",
            result.row_errors,
        )

    if not result.entries:
        raise HistoryImportError(
            NO_VALID_ROWS, "No valid films found in the file.", result.row_errors
        )
    logger.info(
        "Parsed history import: %d entries, %d skipped rows",
        len(result.entries),
        len(result.row_errors),
    )
    return result
