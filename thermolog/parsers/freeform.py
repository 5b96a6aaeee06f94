"""Free-form parser for ``Label: value [unit]`` notes."""

from __future__ import annotations

import logging
import re
from datetime import datetime

from thermolog.analysis.tokens import canonical_hour_label
from thermolog.parsers.common import (
    build_reading,
    empty_reading,
    make_field_match,
    parse_number,
    repair_ocr_digits,
)
from thermolog.readings.fields import resolve_field_name
from thermolog.readings.models import FieldMatch, HourlyReading

logger = logging.getLogger(__name__)

FREE_FORM_CONFIDENCE = 0.9

_KEY_VALUE_RE = re.compile(r"([^:]+):\s*(\d+(?:\.\d+)?)\s*([A-Za-z°%]*)")


def parse_free_form(
    ocr_text: str,
    target_hour: str,
    *,
    parsed_at: datetime | None = None,
) -> HourlyReading:
    if canonical_hour_label(target_hour) is None:
        return empty_reading(target_hour, ocr_text, parsed_at, "Invalid target hour")

    matches: list[FieldMatch] = []
    seen: set[str] = set()
    offset = 0
    for raw_line in (ocr_text or "").split("\n"):
        line = repair_ocr_digits(raw_line)
        match = _KEY_VALUE_RE.search(line)
        value = parse_number(match.group(2)) if match else None
        if value is not None:
            name = resolve_field_name(match.group(1))
            if name is not None and name not in seen:
                matches.append(
                    make_field_match(
                        name,
                        value,
                        FREE_FORM_CONFIDENCE,
                        raw_match=match.group(0).strip(),
                        position=offset + match.start(2),
                        unit=match.group(3) or None,
                    )
                )
                seen.add(name)
        offset += len(raw_line) + 1

    logger.debug("free_form_parsed", extra={"field_count": len(matches)})
    return build_reading(target_hour, matches, ocr_text, parsed_at)
