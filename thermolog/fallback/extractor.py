"""Generic OCR field extractor used by the field-extraction fallback.

The extractor knows nothing about hourly log layouts: it spots measurement
shaped substrings (a number followed by a unit) and reports them with its own
field taxonomy. The fallback strategy remaps those names onto canonical
fields. Any callable with the same shape can be injected in its place,
returning ``ExtractedField`` instances or plain dicts using the camelCase keys.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator


class ExtractedFieldType(str, Enum):
    TEMPERATURE = "temperature"
    PPM = "ppm"
    FLOW_RATE = "flowRate"
    PRESSURE = "pressure"
    HOUR = "hour"
    TIME = "time"
    TEXT = "text"


class ExtractedField(BaseModel):
    """One measurement-shaped match reported by an extractor."""

    model_config = {"frozen": True, "populate_by_name": True}

    field_name: str = Field(default="", alias="fieldName")
    value: str = ""
    confidence: float = Field(ge=0.0, le=1.0, default=0.0)
    unit: str = ""
    type: ExtractedFieldType = ExtractedFieldType.TEXT

    @field_validator("field_name", "value", "unit", mode="before")
    @classmethod
    def _stringify(cls, value: Any) -> str:
        return "" if value is None else str(value)

    @field_validator("type", mode="before")
    @classmethod
    def _unknown_type_is_text(cls, value: Any) -> ExtractedFieldType:
        try:
            return ExtractedFieldType(value)
        except ValueError:
            return ExtractedFieldType.TEXT


FieldExtractor = Callable[[str], Iterable[ExtractedField | dict[str, Any]]]

_EXTRACTION_PATTERNS: tuple[tuple[str, ExtractedFieldType, float, re.Pattern[str]], ...] = (
    (
        "Temperature",
        ExtractedFieldType.TEMPERATURE,
        0.8,
        re.compile(r"(\d+(?:\.\d+)?)\s*(°\s*[FC]|deg(?:rees)?\s*[FC]?|[FC])\b", re.IGNORECASE),
    ),
    (
        "PPM",
        ExtractedFieldType.PPM,
        0.9,
        re.compile(r"(\d+(?:\.\d+)?)\s*(ppm)\b", re.IGNORECASE),
    ),
    (
        "Flow Rate",
        ExtractedFieldType.FLOW_RATE,
        0.8,
        re.compile(r"(\d+(?:\.\d+)?)\s*(CFM|FPM|GPM|BBL)\b", re.IGNORECASE),
    ),
    (
        "Pressure",
        ExtractedFieldType.PRESSURE,
        0.8,
        re.compile(r"(\d+(?:\.\d+)?)\s*(PSI|inHg|bar)\b", re.IGNORECASE),
    ),
    (
        "Hour",
        ExtractedFieldType.HOUR,
        0.9,
        re.compile(r"\b(?:hr|hour)\s*:?\s*(\d{1,2})\b()", re.IGNORECASE),
    ),
)


def extract_fields(text: str) -> list[ExtractedField]:
    """Report every measurement-shaped substring, in pattern order."""
    fields = []
    for field_name, field_type, confidence, pattern in _EXTRACTION_PATTERNS:
        for match in pattern.finditer(text or ""):
            fields.append(
                ExtractedField(
                    field_name=field_name,
                    value=match.group(1),
                    confidence=confidence,
                    unit=match.group(2).upper(),
                    type=field_type,
                )
            )
    return fields


def coerce_extracted(item: ExtractedField | dict[str, Any]) -> ExtractedField:
    if isinstance(item, ExtractedField):
        return item
    return ExtractedField.model_validate(item)
