"""Result combination: merges candidate readings into one.

Contract:
- Candidates at or below the noise floor are discarded before ranking.
- Ranking is by overall confidence, descending; equal scores keep input order.
- Per field the highest-confidence match wins; ties keep the higher-ranked one.
- Combined confidence is the rank-weighted mean with weight 1/(rank+1).

MUST NOT:
- Raise when nothing survives; an empty reading is returned instead.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from datetime import datetime

from thermolog.parsers.column import parse_column_aligned
from thermolog.parsers.common import build_reading, empty_reading, resolve_parsed_at
from thermolog.parsers.freeform import parse_free_form
from thermolog.parsers.table import parse_table
from thermolog.readings.models import FieldMatch, HourlyReading
from thermolog.telemetry.errors import ErrorCode, emit_structured_error

logger = logging.getLogger(__name__)

DEFAULT_NOISE_FLOOR = 0.3
ALL_FAILED_NOTE = "All parsing strategies failed"

Parser = Callable[..., HourlyReading]

HYBRID_PARSERS: tuple[tuple[str, Parser], ...] = (
    ("table", parse_table),
    ("column", parse_column_aligned),
    ("freeForm", parse_free_form),
)


def rank_candidates(
    candidates: Iterable[HourlyReading],
    noise_floor: float = DEFAULT_NOISE_FLOOR,
) -> list[HourlyReading]:
    survivors = [c for c in candidates if c.overall_confidence > noise_floor]
    return sorted(survivors, key=lambda c: c.overall_confidence, reverse=True)


def combine_readings(
    candidates: Sequence[HourlyReading],
    target_hour: str,
    raw_ocr_text: str,
    parsed_at: datetime | None = None,
    *,
    noise_floor: float = DEFAULT_NOISE_FLOOR,
) -> HourlyReading:
    """Merge candidate readings into one reading for ``target_hour``."""
    ranked = rank_candidates(candidates, noise_floor)
    if not ranked:
        return empty_reading(target_hour, raw_ocr_text, parsed_at, ALL_FAILED_NOTE)

    merged: dict[str, FieldMatch] = {}
    for candidate in ranked:
        for match in candidate.field_matches:
            current = merged.get(match.name)
            if current is None or match.confidence > current.confidence:
                merged[match.name] = match

    weights = [1.0 / (rank + 1) for rank in range(len(ranked))]
    confidence = sum(w * c.overall_confidence for w, c in zip(weights, ranked)) / sum(weights)

    return build_reading(
        target_hour,
        merged.values(),
        raw_ocr_text,
        parsed_at,
        overall_confidence=confidence,
    )


def parse_hybrid(
    ocr_text: str,
    target_hour: str,
    *,
    parsed_at: datetime | None = None,
    noise_floor: float = DEFAULT_NOISE_FLOOR,
) -> HourlyReading:
    """Run every layout parser and combine whatever they found."""
    parsed_at = resolve_parsed_at(parsed_at)
    candidates = []
    for name, parser in HYBRID_PARSERS:
        try:
            candidates.append(parser(ocr_text, target_hour, parsed_at=parsed_at))
        except Exception as exc:
            emit_structured_error(
                logger,
                code=ErrorCode.PARSER_FAILED,
                message=str(exc),
                suppressed=True,
                target_hour=target_hour,
                strategy=name,
            )
    return combine_readings(
        candidates, target_hour, ocr_text, parsed_at, noise_floor=noise_floor
    )
