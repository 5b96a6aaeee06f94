"""Classification-driven primary parse."""

from __future__ import annotations

import logging
from datetime import datetime

from thermolog.analysis.classifier import FormatType, analyze_structure
from thermolog.parsers.column import parse_column_aligned
from thermolog.parsers.combiner import parse_hybrid
from thermolog.parsers.common import resolve_parsed_at
from thermolog.parsers.freeform import parse_free_form
from thermolog.parsers.table import parse_table
from thermolog.readings.models import HourlyReading

logger = logging.getLogger(__name__)

FORMAT_PARSERS = {
    FormatType.TABLE_STRUCTURED: parse_table,
    FormatType.COLUMN_ALIGNED: parse_column_aligned,
    FormatType.FREE_FORM: parse_free_form,
    FormatType.HYBRID: parse_hybrid,
}


def parse_intelligently(
    ocr_text: str,
    target_hour: str,
    *,
    parsed_at: datetime | None = None,
) -> HourlyReading:
    """Classify the layout and run the matching parser."""
    analysis = analyze_structure(ocr_text)
    reading = FORMAT_PARSERS[analysis.format_type](
        ocr_text, target_hour, parsed_at=resolve_parsed_at(parsed_at)
    )
    logger.info(
        "primary_parse_completed",
        extra={
            "format_type": analysis.format_type.value,
            "format_confidence": analysis.confidence,
            "target_hour": target_hour,
            "overall_confidence": reading.overall_confidence,
            "valid_field_count": reading.valid_field_count,
        },
    )
    return reading
