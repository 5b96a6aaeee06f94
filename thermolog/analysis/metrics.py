"""Structural text metrics used to classify OCR layout."""

from __future__ import annotations

import re

from pydantic import BaseModel, Field

from thermolog.analysis.tokens import count_numeric_tokens, count_time_tokens
from thermolog.readings.fields import has_label_vocabulary

_KEY_VALUE_RE = re.compile(r"[A-Za-z\s]+:\s*\d+")

SPACING_OVERLAP_RATIO = 0.7
SPACING_SAMPLE_LINES = 5


class TextMetrics(BaseModel):
    """Layout statistics for one OCR text block."""

    model_config = {"frozen": True}

    avg_line_length: float = Field(ge=0.0, default=0.0)
    line_length_variance: float = Field(ge=0.0, default=0.0)
    time_column_count: int = Field(ge=0, default=0)
    numeric_column_count: int = Field(ge=0, default=0)
    has_consistent_spacing: bool = False
    has_time_headers: bool = False
    has_field_labels: bool = False
    line_count: int = Field(ge=0, default=0)


def analyze_text(text: str) -> TextMetrics:
    """Compute layout metrics over the non-empty lines of ``text``."""
    lines = [line for line in (text or "").splitlines() if line.strip()]
    if not lines:
        return TextMetrics()

    lengths = [len(line) for line in lines]
    avg = sum(lengths) / len(lengths)
    variance = sum((length - avg) ** 2 for length in lengths) / len(lengths)

    time_counts = [count_time_tokens(line) for line in lines]
    numeric_counts = [count_numeric_tokens(line) for line in lines]

    return TextMetrics(
        avg_line_length=avg,
        line_length_variance=variance,
        time_column_count=max(time_counts),
        numeric_column_count=max(numeric_counts),
        has_consistent_spacing=_has_consistent_spacing(lines),
        has_time_headers=any(count >= 2 for count in time_counts),
        has_field_labels=any(_has_field_label(line) for line in lines),
        line_count=len(lines),
    )


def _has_field_label(line: str) -> bool:
    return has_label_vocabulary(line) or bool(_KEY_VALUE_RE.search(line))


def _has_consistent_spacing(lines: list[str]) -> bool:
    # Space positions of the first line are the reference grid.
    if len(lines) <= 2:
        return False
    reference = [i for i, char in enumerate(lines[0]) if char == " "]
    if not reference:
        return False

    consistent = 0
    for line in lines[1:min(SPACING_SAMPLE_LINES, len(lines))]:
        overlap = sum(1 for pos in reference if pos < len(line) and line[pos] == " ")
        if overlap >= len(reference) * SPACING_OVERLAP_RATIO:
            consistent += 1
    return consistent >= 2
