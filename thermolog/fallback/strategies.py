"""Fallback strategies, tried in cascade order when the primary parse is not good enough.

Each strategy takes the OCR text and target hour and returns an
``HourlyReading``. Strategies never mutate their input and never share state;
collaborators (primary parser, field extractor) and tunables are passed in.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from pydantic import ValidationError

from thermolog.analysis.classifier import FormatType
from thermolog.config.settings import StrategyConfig
from thermolog.fallback.extractor import FieldExtractor, coerce_extracted
from thermolog.fallback.templates import best_template
from thermolog.parsers.column import parse_column_aligned
from thermolog.parsers.common import (
    build_reading,
    empty_reading,
    make_field_match,
    parse_number,
    repair_ocr_digits,
)
from thermolog.parsers.freeform import parse_free_form
from thermolog.parsers.table import parse_table
from thermolog.readings.fields import guess_field_name, normalize_label, resolve_field_name
from thermolog.readings.models import FieldMatch, HourlyReading

logger = logging.getLogger(__name__)

PrimaryParser = Callable[..., HourlyReading]

GUESSED_WARNING = "Value guessed from context"
PARTIAL_WARNING = "Partially extracted value"
NO_TEMPLATE_NOTE = "No template matches found"

_NOISE_CHARS_RE = re.compile(r"[^\w\s.:\-]")
_WHITESPACE_RE = re.compile(r"\s+")
_NUMBER_RE = re.compile(r"\b\d+(?:\.\d+)?\b")

_LAYOUT_PARSERS = {
    FormatType.TABLE_STRUCTURED: parse_table,
    FormatType.COLUMN_ALIGNED: parse_column_aligned,
    FormatType.FREE_FORM: parse_free_form,
}


@dataclass(frozen=True)
class PatternRule:
    """A unit-anchored regex for one field, gated on line keywords."""

    field: str
    pattern: re.Pattern[str]
    requires: tuple[str, ...] = ()
    excludes: tuple[str, ...] = ()

    def search(self, line: str) -> re.Match[str] | None:
        words = normalize_label(line)
        if any(word not in words for word in self.requires):
            return None
        if any(word in words for word in self.excludes):
            return None
        return self.pattern.search(line)


def _rule(field: str, pattern: str, **kwargs: tuple[str, ...]) -> PatternRule:
    return PatternRule(field, re.compile(pattern, re.IGNORECASE), **kwargs)


PATTERN_RULES: tuple[PatternRule, ...] = (
    _rule(
        "vaporInletFpm",
        r"\b(\d{3,4})\s*(?:fpm|flow)\b",
        excludes=("dilution", "combustion"),
    ),
    _rule("dilutionAirFpm", r"\b(\d{2,4})\s*(?:fpm|flow)\b", requires=("dilution",)),
    _rule("combustionAirFpm", r"\b(\d{2,4})\s*(?:fpm|flow)\b", requires=("combustion",)),
    _rule("exhaustTempF", r"\b(\d{3,4})\s*(?:°\s*f|f|temp|temperature)\b"),
    _rule("spherePressurePsi", r"\b(\d+(?:\.\d+)?)\s*(?:psi|pressure)\b"),
    _rule("inletPpm", r"\b(\d+(?:\.\d+)?)\s*(?:ppm|inlet)\b", excludes=("outlet",)),
    _rule("outletPpm", r"\b(\d+(?:\.\d+)?)\s*(?:ppm|outlet)\b", requires=("outlet",)),
    _rule("totalizerScf", r"\b(\d{6,9})\s*(?:scf|totalizer)\b"),
)


def aggressive_clean(text: str) -> str:
    """Strip noise characters, collapse whitespace and repair OCR digits."""
    cleaned = _NOISE_CHARS_RE.sub(" ", text or "")
    cleaned = _WHITESPACE_RE.sub(" ", cleaned)
    return repair_ocr_digits(cleaned).strip()


def text_preprocessing(
    ocr_text: str,
    target_hour: str,
    *,
    parsed_at: datetime,
    primary_parser: PrimaryParser,
) -> HourlyReading:
    return primary_parser(aggressive_clean(ocr_text), target_hour, parsed_at=parsed_at)


def pattern_matching(
    ocr_text: str,
    target_hour: str,
    *,
    parsed_at: datetime,
    config: StrategyConfig,
) -> HourlyReading:
    """First unit-anchored match per field, scanning line by line."""
    matches: list[FieldMatch] = []
    lines = (ocr_text or "").split("\n")
    for rule in PATTERN_RULES:
        offset = 0
        for line in lines:
            found = rule.search(line)
            value = parse_number(found.group(1)) if found else None
            if value is not None:
                matches.append(
                    make_field_match(
                        rule.field,
                        value,
                        config.pattern_confidence,
                        raw_match=found.group(0),
                        position=offset + found.start(1),
                    )
                )
                break
            offset += len(line) + 1

    return build_reading(
        target_hour,
        matches,
        ocr_text,
        parsed_at,
        overall_confidence=config.pattern_overall_confidence if matches else 0.0,
    )


def field_extraction(
    ocr_text: str,
    target_hour: str,
    *,
    parsed_at: datetime,
    config: StrategyConfig,
    extractor: FieldExtractor,
) -> HourlyReading:
    """Remap a generic extractor's findings onto canonical fields."""
    matches: list[FieldMatch] = []
    for item in extractor(ocr_text):
        try:
            extracted = coerce_extracted(item)
        except ValidationError as exc:
            logger.warning(
                "extracted_field_rejected",
                extra={"item": repr(item), "error_count": exc.error_count()},
            )
            continue
        name = resolve_field_name(extracted.field_name)
        value = parse_number(extracted.value)
        if name is None or value is None:
            logger.debug(
                "extracted_field_skipped",
                extra={"field_name": extracted.field_name, "value": extracted.value},
            )
            continue
        matches.append(
            make_field_match(
                name,
                value,
                extracted.confidence * config.extraction_confidence_scale,
                raw_match=extracted.value,
                unit=extracted.unit or None,
            )
        )

    return build_reading(
        target_hour,
        matches,
        ocr_text,
        parsed_at,
        overall_confidence=config.extraction_overall_confidence if matches else 0.0,
    )


def template_matching(
    ocr_text: str,
    target_hour: str,
    *,
    parsed_at: datetime,
    config: StrategyConfig,
) -> HourlyReading:
    """Read the page with the parser of the first matching layout template."""
    found = best_template(ocr_text, config.template_threshold)
    if found is None:
        return empty_reading(target_hour, ocr_text, parsed_at, NO_TEMPLATE_NOTE)

    template, score = found
    parsed = _LAYOUT_PARSERS[template.layout](ocr_text, target_hour, parsed_at=parsed_at)
    matches = [
        match.model_copy(update={"confidence": match.confidence * score})
        for match in parsed.field_matches
    ]
    return build_reading(
        target_hour,
        matches,
        ocr_text,
        parsed_at,
        overall_confidence=score if matches else 0.0,
        notes=(f"Matched template: {template.name}",),
    )


def heuristic_guessing(
    ocr_text: str,
    target_hour: str,
    *,
    parsed_at: datetime,
    config: StrategyConfig,
) -> HourlyReading:
    """Assign bare numbers to fields by magnitude and nearby keywords."""
    text = ocr_text or ""
    matches: list[FieldMatch] = []
    seen: set[str] = set()
    for found in _NUMBER_RE.finditer(text):
        value = parse_number(found.group(0))
        if value is None:
            continue
        context = _line_context(text, found.start(), found.end(), config.heuristic_context_chars)
        name = guess_field_name(value, context)
        if name is None or name in seen:
            continue
        matches.append(
            make_field_match(
                name,
                value,
                config.heuristic_confidence,
                raw_match=found.group(0),
                position=found.start(),
                warnings=(GUESSED_WARNING,),
            )
        )
        seen.add(name)

    return build_reading(
        target_hour,
        matches,
        ocr_text,
        parsed_at,
        overall_confidence=config.heuristic_overall_confidence if matches else 0.0,
    )


def partial_extraction(
    ocr_text: str,
    target_hour: str,
    *,
    parsed_at: datetime,
    config: StrategyConfig,
) -> HourlyReading:
    """Keep any positive number whose surroundings name a field."""
    text = ocr_text or ""
    matches: list[FieldMatch] = []
    seen: set[str] = set()
    for found in _NUMBER_RE.finditer(text):
        value = parse_number(found.group(0))
        if value is None or value <= 0:
            continue
        context = _line_context(text, found.start(), found.end(), config.partial_context_chars)
        name = resolve_field_name(context)
        if name is None or name in seen:
            continue
        matches.append(
            make_field_match(
                name,
                value,
                config.partial_confidence,
                raw_match=found.group(0),
                position=found.start(),
                warnings=(PARTIAL_WARNING,),
            )
        )
        seen.add(name)

    return build_reading(
        target_hour,
        matches,
        ocr_text,
        parsed_at,
        overall_confidence=config.partial_overall_confidence if matches else 0.0,
    )


def forced_table_parsing(
    ocr_text: str,
    target_hour: str,
    *,
    parsed_at: datetime,
) -> HourlyReading:
    return parse_table(ocr_text, target_hour, parsed_at=parsed_at)


def _line_context(text: str, start: int, end: int, size: int) -> str:
    line_start = text.rfind("\n", 0, start) + 1
    line_end = text.find("\n", end)
    if line_end == -1:
        line_end = len(text)
    return text[max(line_start, start - size) : min(line_end, end + size)]
