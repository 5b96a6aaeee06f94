"""Layout classification: picks the parsing strategy for an OCR text block.

Rules are evaluated in priority order and the first match wins:

1. table-structured: time headers, >= 2 time tokens, >= 3 numeric tokens
2. column-aligned:   time headers, >= 2 time tokens
3. free-form:        field labels without time headers
4. table-structured: field labels (labels alongside time headers)
5. hybrid:           nothing recognisable; run every parser and combine
"""

from __future__ import annotations

import logging
from enum import Enum

from pydantic import BaseModel, Field

from thermolog.analysis.metrics import TextMetrics, analyze_text

logger = logging.getLogger(__name__)

BASE_CONFIDENCE = 0.5
HYBRID_CONFIDENCE = 0.6


class FormatType(str, Enum):
    """Recognised OCR layouts."""

    TABLE_STRUCTURED = "tableStructured"
    COLUMN_ALIGNED = "columnAligned"
    FREE_FORM = "freeForm"
    HYBRID = "hybrid"


class FormatAnalysis(BaseModel):
    """Chosen layout with the metrics that justified it."""

    model_config = {"frozen": True}

    format_type: FormatType
    confidence: float = Field(ge=0.0, le=1.0)
    metrics: TextMetrics


def classify_format(metrics: TextMetrics) -> FormatAnalysis:
    """Classify a layout from precomputed metrics."""
    format_type = _select_format(metrics)
    return FormatAnalysis(
        format_type=format_type,
        confidence=format_confidence(format_type, metrics),
        metrics=metrics,
    )


def analyze_structure(text: str) -> FormatAnalysis:
    analysis = classify_format(analyze_text(text))
    logger.debug(
        "format_classified",
        extra={
            "format_type": analysis.format_type.value,
            "confidence": analysis.confidence,
            "line_count": analysis.metrics.line_count,
        },
    )
    return analysis


def _select_format(metrics: TextMetrics) -> FormatType:
    if metrics.has_time_headers and metrics.time_column_count >= 2:
        if metrics.numeric_column_count >= 3:
            return FormatType.TABLE_STRUCTURED
        return FormatType.COLUMN_ALIGNED
    if metrics.has_field_labels and not metrics.has_time_headers:
        return FormatType.FREE_FORM
    if metrics.has_field_labels:
        return FormatType.TABLE_STRUCTURED
    return FormatType.HYBRID


def format_confidence(format_type: FormatType, metrics: TextMetrics) -> float:
    """Score how strongly the metrics support ``format_type``."""
    confidence = BASE_CONFIDENCE

    if format_type is FormatType.TABLE_STRUCTURED:
        if metrics.has_time_headers:
            confidence += 0.2
        if metrics.has_consistent_spacing:
            confidence += 0.2
        if metrics.time_column_count >= 5:
            confidence += 0.1
        if metrics.numeric_column_count >= 8:
            confidence += 0.1
    elif format_type is FormatType.COLUMN_ALIGNED:
        if metrics.has_time_headers:
            confidence += 0.3
        if metrics.time_column_count >= 3:
            confidence += 0.2
        if metrics.has_field_labels:
            confidence += 0.1
    elif format_type is FormatType.FREE_FORM:
        if metrics.has_field_labels:
            confidence += 0.3
        if metrics.numeric_column_count >= 3:
            confidence += 0.2
    else:
        confidence = HYBRID_CONFIDENCE

    return max(0.0, min(1.0, confidence))
