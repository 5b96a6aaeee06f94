"""Helpers shared by the strategy parsers and fallback strategies."""

from __future__ import annotations

import math
import re
from collections.abc import Iterable
from datetime import datetime, timezone

from thermolog.readings.fields import (
    coerce_value,
    field_type_for,
    unit_for,
    validate_value,
)
from thermolog.readings.models import FieldMatch, HourlyReading

_OCR_ZERO_RE = re.compile(r"(?<=\d)[oO]|[oO](?=\d)")
_OCR_ONE_RE = re.compile(r"(?<=\d)[Il|]|[Il|](?=\d)")
_NUMBER_RE = re.compile(r"^-?\d+(?:\.\d+)?$")


def resolve_parsed_at(parsed_at: datetime | None) -> datetime:
    return parsed_at if parsed_at is not None else datetime.now(timezone.utc)


def clamp_confidence(value: float) -> float:
    return max(0.0, min(1.0, value))


def repair_ocr_digits(token: str) -> str:
    """Replace O/o and l/I/| that sit next to digits with 0 and 1."""
    previous = None
    repaired = token
    while repaired != previous:
        previous = repaired
        repaired = _OCR_ZERO_RE.sub("0", repaired)
        repaired = _OCR_ONE_RE.sub("1", repaired)
    return repaired


def is_number_token(raw: str) -> bool:
    """True when the token reads as a number after OCR repair, finite or not."""
    return bool(_NUMBER_RE.match(repair_ocr_digits(raw.strip())))


def parse_number(raw: str) -> float | None:
    """Parse a numeric token after OCR repair; None when it is not a finite number."""
    repaired = repair_ocr_digits(raw.strip())
    if not _NUMBER_RE.match(repaired):
        return None
    value = float(repaired)
    return value if math.isfinite(value) else None


def make_field_match(
    name: str,
    value: float | None,
    confidence: float,
    *,
    raw_match: str = "",
    position: int = 0,
    unit: str | None = None,
    warnings: Iterable[str] = (),
) -> FieldMatch:
    """Build a validated FieldMatch with registry type, unit and numeric kind."""
    if value is not None and not math.isfinite(value):
        value = None
    typed_value = coerce_value(name, value) if value is not None else None
    validation = validate_value(name, typed_value)
    extra_warnings = tuple(warnings)
    if extra_warnings:
        validation = validation.model_copy(
            update={"warnings": validation.warnings + extra_warnings}
        )
    return FieldMatch(
        name=name,
        value=typed_value,
        type=field_type_for(name, typed_value),
        confidence=clamp_confidence(confidence),
        raw_match=raw_match,
        position=max(0, position),
        unit=unit if unit else unit_for(name),
        validation=validation,
    )


def dedupe_matches(matches: Iterable[FieldMatch]) -> list[FieldMatch]:
    """Keep the first match for each field name."""
    seen: set[str] = set()
    unique = []
    for match in matches:
        if match.name in seen:
            continue
        seen.add(match.name)
        unique.append(match)
    return unique


def build_reading(
    target_hour: str,
    matches: Iterable[FieldMatch],
    raw_ocr_text: str,
    parsed_at: datetime | None = None,
    *,
    overall_confidence: float | None = None,
    notes: Iterable[str] = (),
) -> HourlyReading:
    """Assemble a reading; confidence defaults to the mean field confidence."""
    unique = dedupe_matches(matches)
    if overall_confidence is None:
        overall_confidence = (
            sum(match.confidence for match in unique) / len(unique) if unique else 0.0
        )
    return HourlyReading(
        inspection_time=target_hour,
        field_matches=tuple(unique),
        overall_confidence=clamp_confidence(overall_confidence),
        parsed_at=resolve_parsed_at(parsed_at),
        raw_ocr_text=raw_ocr_text,
        notes=tuple(notes),
    )


def empty_reading(
    target_hour: str,
    raw_ocr_text: str,
    parsed_at: datetime | None = None,
    reason: str | None = None,
) -> HourlyReading:
    return build_reading(
        target_hour,
        (),
        raw_ocr_text,
        parsed_at,
        overall_confidence=0.0,
        notes=(reason,) if reason else (),
    )
