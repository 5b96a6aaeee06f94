"""Column-aligned parser, tolerant of ragged spacing and missing cells.

Finds the target hour anywhere in the text and reads the value sitting under
it on the following lines, by cell index when a row is complete and by
horizontal distance when it is not.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime

from thermolog.analysis.tokens import TimeToken, find_time_tokens, parse_hour_label
from thermolog.parsers.common import (
    build_reading,
    empty_reading,
    make_field_match,
    parse_number,
    repair_ocr_digits,
)
from thermolog.readings.fields import in_expected_range, resolve_field_name
from thermolog.readings.models import FieldMatch, HourlyReading

logger = logging.getLogger(__name__)

BASE_CONFIDENCE = 0.5
INDEX_ALIGNED_BONUS = 0.15
PROXIMITY_BONUS = 0.1
IN_RANGE_BONUS = 0.1
OUT_OF_RANGE_PENALTY = 0.2
CLEAN_OCR_BONUS = 0.1
MAX_ROWS_BELOW = 15
DEFAULT_COLUMN_WIDTH = 8
FUZZY_MINUTE_TOLERANCE = 20
TAB_SIZE = 8

_TOKEN_RE = re.compile(r"\S+")
_BRACKETS = "()[]{}"


@dataclass(frozen=True)
class _Value:
    raw: str
    value: float
    start: int
    end: int

    @property
    def center(self) -> float:
        return (self.start + self.end) / 2


@dataclass(frozen=True)
class _Anchor:
    line_index: int
    token: TimeToken
    header: tuple[TimeToken, ...]


def parse_column_aligned(
    ocr_text: str,
    target_hour: str,
    *,
    parsed_at: datetime | None = None,
) -> HourlyReading:
    target = parse_hour_label(target_hour)
    if target is None:
        return empty_reading(target_hour, ocr_text, parsed_at, "Invalid target hour")

    lines = [line.expandtabs(TAB_SIZE) for line in (ocr_text or "").split("\n")]
    anchor = _find_anchor(lines, target)
    if anchor is None:
        return empty_reading(target_hour, ocr_text, parsed_at, "Target hour not found")

    width = _column_width(anchor.header)
    target_index = anchor.header.index(anchor.token)
    offsets = _line_offsets(lines)

    matches: list[FieldMatch] = []
    seen: set[str] = set()
    last_row = min(len(lines), anchor.line_index + 1 + MAX_ROWS_BELOW)
    for line_index in range(anchor.line_index + 1, last_row):
        line = lines[line_index]
        values = _values(line)
        if not values:
            continue
        name = resolve_field_name(line[: values[0].start])
        if name is None or name in seen:
            continue

        confidence = BASE_CONFIDENCE
        if len(values) == len(anchor.header):
            cell = values[target_index]
            confidence += INDEX_ALIGNED_BONUS
        else:
            cell = min(values, key=lambda v: abs(v.center - anchor.token.center))
            distance = abs(cell.center - anchor.token.center)
            if distance > width:
                continue
            confidence += PROXIMITY_BONUS * (1 - distance / width)

        if in_expected_range(name, cell.value):
            confidence += IN_RANGE_BONUS
        else:
            confidence -= OUT_OF_RANGE_PENALTY
        if repair_ocr_digits(cell.raw) == cell.raw:
            confidence += CLEAN_OCR_BONUS

        matches.append(
            make_field_match(
                name,
                cell.value,
                confidence,
                raw_match=cell.raw,
                position=offsets[line_index] + cell.start,
            )
        )
        seen.add(name)

    logger.debug(
        "column_parsed",
        extra={
            "target_hour": anchor.token.label,
            "anchor_line": anchor.line_index,
            "field_count": len(matches),
        },
    )
    return build_reading(target_hour, matches, ocr_text, parsed_at)


def _find_anchor(lines: list[str], target: tuple[int, int]) -> _Anchor | None:
    best: _Anchor | None = None
    best_key: tuple[int, int] | None = None
    for line_index, line in enumerate(lines):
        tokens = find_time_tokens(line)
        candidates = []
        for token in tokens:
            hour, minute = parse_hour_label(token.label)
            if hour == target[0] and abs(minute - target[1]) < FUZZY_MINUTE_TOLERANCE:
                candidates.append((abs(minute - target[1]), token))
        if not candidates:
            continue
        minute_gap, token = min(candidates, key=lambda item: item[0])
        # More time tokens on the line wins, then the closer minute.
        key = (len(tokens), -minute_gap)
        if best_key is None or key > best_key:
            best = _Anchor(line_index, token, tuple(tokens))
            best_key = key
    return best


def _column_width(header: tuple[TimeToken, ...]) -> float:
    if len(header) < 2:
        return DEFAULT_COLUMN_WIDTH
    gaps = [b.start - a.start for a, b in zip(header, header[1:])]
    return max(1, min(gaps))


def _values(line: str) -> list[_Value]:
    values = []
    for match in _TOKEN_RE.finditer(line):
        raw = match.group(0).strip(_BRACKETS)
        value = parse_number(raw)
        if value is not None:
            values.append(_Value(raw, value, match.start(), match.end()))
    return values


def _line_offsets(lines: list[str]) -> list[int]:
    offsets = []
    offset = 0
    for line in lines:
        offsets.append(offset)
        offset += len(line) + 1
    return offsets
