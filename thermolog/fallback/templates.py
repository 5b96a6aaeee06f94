"""Known page-layout templates.

A template is a set of regex fingerprints plus the layout parser that knows
how to read pages of that shape. Its match score is the share of fingerprints
found in the text times the template's base confidence.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from thermolog.analysis.classifier import FormatType


@dataclass(frozen=True)
class LogTemplate:
    name: str
    patterns: tuple[re.Pattern[str], ...]
    base_confidence: float
    layout: FormatType

    def score(self, text: str) -> float:
        if not self.patterns:
            return 0.0
        matched = sum(1 for pattern in self.patterns if pattern.search(text or ""))
        return matched / len(self.patterns) * self.base_confidence


def _compile(*patterns: str) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(pattern, re.IGNORECASE) for pattern in patterns)


TEMPLATES: tuple[LogTemplate, ...] = (
    LogTemplate(
        name="Standard Table",
        patterns=_compile(
            r"\d{1,2}:\d{2}",
            r"vap[o0]r.*(?:fl[o0]w|[i1]nlet)",
            r"exhaust.*temp",
        ),
        base_confidence=0.8,
        layout=FormatType.TABLE_STRUCTURED,
    ),
    LogTemplate(
        name="Column Format",
        patterns=_compile(
            r"time.*\d{1,2}:\d{2}",
            r"fl[o0]w.*\d+",
            r"temp.*\d+",
        ),
        base_confidence=0.7,
        layout=FormatType.COLUMN_ALIGNED,
    ),
    LogTemplate(
        name="Key-Value Notes",
        patterns=_compile(
            r"[A-Za-z ]+:\s*\d",
            r"ppm",
            r"temp",
        ),
        base_confidence=0.7,
        layout=FormatType.FREE_FORM,
    ),
)


def best_template(
    text: str,
    threshold: float,
    templates: tuple[LogTemplate, ...] = TEMPLATES,
) -> tuple[LogTemplate, float] | None:
    """Return the first template scoring strictly above ``threshold``."""
    for template in templates:
        score = template.score(text)
        if score > threshold:
            return template, score
    return None
