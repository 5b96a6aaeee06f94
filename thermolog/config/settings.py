"""Thermolog configuration settings."""

from __future__ import annotations

import os

from pydantic import BaseModel, Field, field_validator, model_validator

from thermolog.readings.models import FallbackLevel


class AcceptanceThresholds(BaseModel):
    """Minimum quality a reading needs to be accepted at one fallback level."""

    model_config = {"frozen": True}

    min_confidence: float = Field(ge=0.0, le=1.0)
    min_valid_fields: int = Field(ge=0)


class FallbackConfig(BaseModel):
    """Acceptance thresholds and cascade controls."""

    conservative: AcceptanceThresholds = Field(
        default_factory=lambda: AcceptanceThresholds(min_confidence=0.8, min_valid_fields=6)
    )
    moderate: AcceptanceThresholds = Field(
        default_factory=lambda: AcceptanceThresholds(min_confidence=0.6, min_valid_fields=4)
    )
    aggressive: AcceptanceThresholds = Field(
        default_factory=lambda: AcceptanceThresholds(min_confidence=0.3, min_valid_fields=2)
    )
    noise_floor: float = Field(ge=0.0, le=1.0, default=0.3)
    default_level: FallbackLevel = Field(
        default_factory=lambda: FallbackLevel(
            os.getenv("THERMOLOG_FALLBACK_LEVEL", FallbackLevel.AGGRESSIVE.value).strip().lower()
        )
    )

    @model_validator(mode="after")
    def _validate_monotonic_thresholds(self) -> FallbackConfig:
        ordered = (self.conservative, self.moderate, self.aggressive)
        for stricter, looser in zip(ordered, ordered[1:]):
            if (
                stricter.min_confidence < looser.min_confidence
                or stricter.min_valid_fields < looser.min_valid_fields
            ):
                raise ValueError("Stricter fallback levels cannot have looser thresholds")
        return self

    def thresholds_for(self, level: FallbackLevel) -> AcceptanceThresholds:
        return getattr(self, level.value)


class StrategyConfig(BaseModel):
    """Tunables of the individual fallback strategies."""

    pattern_confidence: float = Field(ge=0.0, le=1.0, default=0.7)
    pattern_overall_confidence: float = Field(ge=0.0, le=1.0, default=0.6)
    extraction_confidence_scale: float = Field(ge=0.0, le=1.0, default=0.8)
    extraction_overall_confidence: float = Field(ge=0.0, le=1.0, default=0.5)
    template_threshold: float = Field(ge=0.0, le=1.0, default=0.5)
    heuristic_confidence: float = Field(ge=0.0, le=1.0, default=0.4)
    heuristic_overall_confidence: float = Field(ge=0.0, le=1.0, default=0.3)
    heuristic_context_chars: int = 30
    partial_confidence: float = Field(ge=0.0, le=1.0, default=0.3)
    partial_overall_confidence: float = Field(ge=0.0, le=1.0, default=0.2)
    partial_context_chars: int = 20

    @field_validator("heuristic_context_chars", "partial_context_chars")
    @classmethod
    def _validate_context_window(cls, value: int) -> int:
        if value < 1:
            raise ValueError("context window must be >= 1 character")
        return value


class APIConfig(BaseModel):
    """API/security and runtime controls from environment."""

    api_token: str = Field(default_factory=lambda: os.getenv("THERMOLOG_API_TOKEN", ""))
    max_ocr_chars: int = Field(
        default_factory=lambda: int(os.getenv("THERMOLOG_MAX_OCR_CHARS", "20000"))
    )

    @field_validator("max_ocr_chars")
    @classmethod
    def _validate_max_ocr_chars(cls, value: int) -> int:
        if value < 1:
            raise ValueError("THERMOLOG_MAX_OCR_CHARS must be >= 1")
        return value


class ThermologConfig(BaseModel):
    """Root configuration."""

    fallback: FallbackConfig = Field(default_factory=FallbackConfig)
    strategies: StrategyConfig = Field(default_factory=StrategyConfig)
    api: APIConfig = Field(default_factory=APIConfig)
    log_level: str = Field(default_factory=lambda: os.getenv("THERMOLOG_LOG_LEVEL", "INFO"))
