"""Reading data models: hourly log readings with per-field confidence and provenance."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field, computed_field, model_validator

MEASUREMENT_FIELDS: tuple[str, ...] = (
    "vaporInletFpm",
    "dilutionAirFpm",
    "combustionAirFpm",
    "exhaustTempF",
    "spherePressurePsi",
    "inletPpm",
    "outletPpm",
    "totalizerScf",
)


class FieldType(str, Enum):
    """Semantic type of an extracted field."""

    TEMPERATURE = "temperature"
    PRESSURE = "pressure"
    FLOW_RATE = "flowRate"
    CONCENTRATION = "concentration"
    TOTALIZER = "totalizer"
    TIME = "time"
    NUMERIC = "numeric"
    TEXT = "text"


class FallbackLevel(str, Enum):
    """How hard the orchestrator may try before settling for a degraded result."""

    CONSERVATIVE = "conservative"
    MODERATE = "moderate"
    AGGRESSIVE = "aggressive"


class FallbackStrategy(str, Enum):
    """Which route produced a returned reading."""

    NONE = "none"
    TEXT_PREPROCESSING = "textPreprocessing"
    PATTERN_MATCHING = "patternMatching"
    FIELD_EXTRACTION = "fieldExtraction"
    TEMPLATE_MATCHING = "templateMatching"
    HEURISTIC_GUESSING = "heuristicGuessing"
    PARTIAL_EXTRACTION = "partialExtraction"
    FORCED_TABLE_PARSING = "forcedTableParsing"
    ERROR = "error"


class ValidationResult(BaseModel):
    """Outcome of validating one extracted value."""

    model_config = {"frozen": True}

    is_valid: bool
    errors: tuple[str, ...] = ()
    warnings: tuple[str, ...] = ()

    @classmethod
    def valid(cls, warnings: tuple[str, ...] | list[str] = ()) -> ValidationResult:
        return cls(is_valid=True, warnings=tuple(warnings))

    @classmethod
    def invalid(
        cls,
        errors: tuple[str, ...] | list[str],
        warnings: tuple[str, ...] | list[str] = (),
    ) -> ValidationResult:
        return cls(is_valid=False, errors=tuple(errors), warnings=tuple(warnings))


class FieldMatch(BaseModel):
    """A single field value pulled out of OCR text."""

    model_config = {"frozen": True}

    name: str
    value: int | float | str | None
    type: FieldType
    confidence: float = Field(ge=0.0, le=1.0)
    raw_match: str = ""
    position: int = Field(default=0, ge=0)
    unit: str = ""
    validation: ValidationResult = Field(default_factory=ValidationResult.valid)

    @property
    def is_high_confidence(self) -> bool:
        return self.confidence >= 0.8


class HourlyReading(BaseModel):
    """All fields extracted for one target hour.

    Field names are unique within a reading. Derived counts are computed from
    ``field_matches`` on every access, so they can never drift from the
    matches they describe.
    """

    model_config = {"frozen": True}

    inspection_time: str
    field_matches: tuple[FieldMatch, ...] = ()
    overall_confidence: float = Field(ge=0.0, le=1.0, default=0.0)
    parsed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    raw_ocr_text: str = ""
    notes: tuple[str, ...] = ()

    @model_validator(mode="after")
    def _reject_duplicate_fields(self) -> HourlyReading:
        names = [match.name for match in self.field_matches]
        if len(names) != len(set(names)):
            raise ValueError(f"Duplicate field names in reading: {names}")
        return self

    @computed_field
    @property
    def valid_field_count(self) -> int:
        return sum(
            1
            for match in self.field_matches
            if match.value is not None and match.validation.is_valid
        )

    @computed_field
    @property
    def high_confidence_field_count(self) -> int:
        return sum(1 for match in self.field_matches if match.is_high_confidence)

    @computed_field
    @property
    def completeness_score(self) -> float:
        present = {
            match.name
            for match in self.field_matches
            if match.value is not None and match.validation.is_valid
        }
        return len(present.intersection(MEASUREMENT_FIELDS)) / len(MEASUREMENT_FIELDS)

    @computed_field
    @property
    def is_partial(self) -> bool:
        return self.completeness_score < 1.0

    def get(self, name: str) -> FieldMatch | None:
        for match in self.field_matches:
            if match.name == name:
                return match
        return None

    def value_of(self, name: str) -> int | float | str | None:
        match = self.get(name)
        return match.value if match is not None else None


class AttemptRecord(BaseModel):
    """Audit entry for one strategy tried by the orchestrator."""

    model_config = {"frozen": True}

    strategy: FallbackStrategy
    confidence: float = Field(ge=0.0, le=1.0, default=0.0)
    valid_field_count: int = 0
    accepted: bool = False
    error: str | None = None


class HourlyReadingWithFallback(BaseModel):
    """A reading plus how it was obtained."""

    model_config = {"frozen": True}

    reading: HourlyReading
    fallback_strategy: FallbackStrategy
    fallback_reason: str | None = None
    confidence: float = Field(ge=0.0, le=1.0)
    best_attempt: FallbackStrategy | None = None
    attempts: tuple[AttemptRecord, ...] = ()

    @property
    def used_fallback(self) -> bool:
        return self.fallback_strategy is not FallbackStrategy.NONE
