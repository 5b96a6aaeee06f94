"""Table-structured parser: one header row of hours, one row per field."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime

from thermolog.analysis.tokens import canonical_hour_label, find_time_tokens, parse_hour_label
from thermolog.parsers.common import (
    build_reading,
    empty_reading,
    is_number_token,
    make_field_match,
    parse_number,
    repair_ocr_digits,
)
from thermolog.readings.fields import in_expected_range, resolve_field_name
from thermolog.readings.models import FieldMatch, HourlyReading

logger = logging.getLogger(__name__)

ROW_BASE_CONFIDENCE = 0.6
ALIGNED_ROW_BONUS = 0.2
IN_RANGE_BONUS = 0.1
CLEAN_OCR_BONUS = 0.1
POSITIONAL_PENALTY = 0.2

_BRACKETS_RE = re.compile(r"[()\[\]{}]")
_PLACEHOLDER_RE = re.compile(r"^[-–—_]+$")


@dataclass(frozen=True)
class _Cell:
    raw: str
    value: float | None
    corrected: bool


@dataclass(frozen=True)
class _Row:
    label: str
    cells: tuple[_Cell, ...]
    offset: int
    raw_line: str


def normalize_table_line(line: str) -> str:
    """Drop brackets and collapse runs of spaces and tabs."""
    return " ".join(_BRACKETS_RE.sub(" ", line).split())


def split_row(line: str) -> tuple[str, tuple[_Cell, ...]]:
    """Split a normalised row into its label and value cells."""
    label_tokens: list[str] = []
    cells: list[_Cell] = []
    for token in line.split(" "):
        if not token:
            continue
        if _PLACEHOLDER_RE.match(token) or (
            is_number_token(token) and parse_number(token) is None
        ):
            if label_tokens or cells:
                cells.append(_Cell(token, None, False))
            continue
        value = parse_number(token)
        if value is not None:
            cells.append(_Cell(token, value, repair_ocr_digits(token) != token))
        elif not cells:
            label_tokens.append(token)
    return " ".join(label_tokens), tuple(cells)


def parse_table(
    ocr_text: str,
    target_hour: str,
    *,
    parsed_at: datetime | None = None,
) -> HourlyReading:
    """Read the target hour's column out of a tabular log.

    The header is the first line carrying two or more time tokens. Without a
    header the column index falls back to the hour number, as on the standard
    sheet whose first column is 00:00, and every field is penalised.
    """
    target_label = canonical_hour_label(target_hour)
    if target_label is None:
        return empty_reading(target_hour, ocr_text, parsed_at, "Invalid target hour")

    header_index, header_labels = _find_header(ocr_text)
    if header_labels:
        if target_label not in header_labels:
            return empty_reading(
                target_hour, ocr_text, parsed_at, "Target hour not found in table header"
            )
        column_index = header_labels.index(target_label)
    else:
        hour, _ = parse_hour_label(target_label)
        column_index = hour

    matches: list[FieldMatch] = []
    seen: set[str] = set()
    for index, row in enumerate(_rows(ocr_text)):
        if index == header_index or not row.cells:
            continue
        name = resolve_field_name(row.label)
        if name is None or name in seen:
            continue
        if column_index >= len(row.cells) or row.cells[column_index].value is None:
            continue

        cell = row.cells[column_index]
        confidence = ROW_BASE_CONFIDENCE
        if header_labels and len(row.cells) == len(header_labels):
            confidence += ALIGNED_ROW_BONUS
        if not header_labels:
            confidence -= POSITIONAL_PENALTY
        if in_expected_range(name, cell.value):
            confidence += IN_RANGE_BONUS
        if not cell.corrected:
            confidence += CLEAN_OCR_BONUS

        matches.append(
            make_field_match(
                name,
                cell.value,
                confidence,
                raw_match=cell.raw,
                position=row.offset + max(0, row.raw_line.find(cell.raw)),
            )
        )
        seen.add(name)

    logger.debug(
        "table_parsed",
        extra={
            "target_hour": target_label,
            "header_found": bool(header_labels),
            "column_index": column_index,
            "field_count": len(matches),
        },
    )
    return build_reading(target_hour, matches, ocr_text, parsed_at)


def _rows(ocr_text: str) -> list[_Row]:
    rows = []
    offset = 0
    for raw_line in (ocr_text or "").split("\n"):
        label, cells = split_row(normalize_table_line(raw_line))
        rows.append(_Row(label, cells, offset, raw_line))
        offset += len(raw_line) + 1
    return rows


def _find_header(ocr_text: str) -> tuple[int, list[str]]:
    for index, raw_line in enumerate((ocr_text or "").split("\n")):
        tokens = find_time_tokens(normalize_table_line(raw_line))
        if len(tokens) >= 2:
            return index, [token.label for token in tokens]
    return -1, []
