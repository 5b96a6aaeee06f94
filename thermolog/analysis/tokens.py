"""Time and number token patterns shared by the analyzers and parsers."""

from __future__ import annotations

import re
from dataclasses import dataclass

# HH:MM with OCR confusions (O/o for 0, l/I/| for 1) allowed in the digits.
TIME_TOKEN_RE = re.compile(r"(?<![\w:])([0-2OolI|]?[0-9OolI|]):([0-5Oo][0-9OolI|])(?![\d:])")
NUMERIC_TOKEN_RE = re.compile(r"\b\d+\.?\d*\b")

_HOUR_LABEL_RE = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*$")
_OCR_DIGITS = str.maketrans({"O": "0", "o": "0", "l": "1", "I": "1", "|": "1"})


@dataclass(frozen=True)
class TimeToken:
    label: str
    start: int
    end: int

    @property
    def center(self) -> float:
        return (self.start + self.end) / 2


def parse_hour_label(label: str) -> tuple[int, int] | None:
    """Parse ``H:MM``/``HH:MM`` into (hour, minute); None when out of range."""
    match = _HOUR_LABEL_RE.match(label or "")
    if not match:
        return None
    hour, minute = int(match.group(1)), int(match.group(2))
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        return None
    return hour, minute


def canonical_hour_label(label: str) -> str | None:
    parsed = parse_hour_label(label)
    if parsed is None:
        return None
    return f"{parsed[0]:02d}:{parsed[1]:02d}"


def find_time_tokens(line: str) -> list[TimeToken]:
    """Return the well-formed time tokens of a line, OCR digits repaired."""
    tokens = []
    for match in TIME_TOKEN_RE.finditer(line):
        label = canonical_hour_label(match.group(0).translate(_OCR_DIGITS))
        if label is not None:
            tokens.append(TimeToken(label, match.start(), match.end()))
    return tokens


def count_time_tokens(line: str) -> int:
    """Count the tokens the parsers can use as hour columns."""
    return len(find_time_tokens(line))


def count_numeric_tokens(line: str) -> int:
    return len(NUMERIC_TOKEN_RE.findall(line))
