"""The fallback orchestrator: entry point for turning OCR text into an hourly reading.

The orchestrator is a finite state machine over one parse request:
PRIMARY -> EVALUATING -> ACCEPTED | CASCADING -> TERMINAL.

Responsibilities:
- Validate the target hour before any parsing
- Run the classification-driven primary parse
- Judge every candidate against the acceptance thresholds of the fallback level
- Walk the level's strategy cascade until a candidate is accepted
- On exhaustion, return the best candidate (or their combination) with a reason
- Record every attempt for audit

MUST NOT:
- Raise out of ``handle``; failures become error-tagged empty readings
- Keep per-request state on the orchestrator instance
- Let one failing strategy abort the cascade
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from functools import partial
from typing import Any

from thermolog.analysis.tokens import canonical_hour_label
from thermolog.config.settings import AcceptanceThresholds, ThermologConfig
from thermolog.fallback import strategies
from thermolog.fallback.extractor import FieldExtractor, extract_fields
from thermolog.fallback.states import (
    VALID_TRANSITIONS,
    OrchestrationError,
    OrchestrationState,
)
from thermolog.parsers.combiner import combine_readings, rank_candidates
from thermolog.parsers.common import empty_reading, resolve_parsed_at
from thermolog.parsers.primary import parse_intelligently
from thermolog.readings.models import (
    AttemptRecord,
    FallbackLevel,
    FallbackStrategy,
    HourlyReading,
    HourlyReadingWithFallback,
)
from thermolog.telemetry.errors import ErrorCode, emit_structured_error

logger = logging.getLogger(__name__)

INVALID_HOUR_REASON = "Invalid target hour"
EXHAUSTED_REASON = "Using best available result despite low confidence"
COMBINED_REASON = "No single strategy was accepted; merged candidates meet the threshold"

CASCADES: dict[FallbackLevel, tuple[FallbackStrategy, ...]] = {
    FallbackLevel.CONSERVATIVE: (
        FallbackStrategy.TEXT_PREPROCESSING,
        FallbackStrategy.PATTERN_MATCHING,
    ),
    FallbackLevel.MODERATE: (
        FallbackStrategy.TEXT_PREPROCESSING,
        FallbackStrategy.PATTERN_MATCHING,
        FallbackStrategy.FIELD_EXTRACTION,
        FallbackStrategy.TEMPLATE_MATCHING,
    ),
    FallbackLevel.AGGRESSIVE: (
        FallbackStrategy.TEXT_PREPROCESSING,
        FallbackStrategy.PATTERN_MATCHING,
        FallbackStrategy.FIELD_EXTRACTION,
        FallbackStrategy.TEMPLATE_MATCHING,
        FallbackStrategy.HEURISTIC_GUESSING,
        FallbackStrategy.PARTIAL_EXTRACTION,
        FallbackStrategy.FORCED_TABLE_PARSING,
    ),
}

FALLBACK_REASONS: dict[FallbackStrategy, str] = {
    FallbackStrategy.TEXT_PREPROCESSING: "Applied text preprocessing due to low OCR quality",
    FallbackStrategy.PATTERN_MATCHING: "Used pattern matching due to poor structure recognition",
    FallbackStrategy.FIELD_EXTRACTION: "Extracted individual fields due to table parsing failure",
    FallbackStrategy.TEMPLATE_MATCHING: "Matched against known log templates",
    FallbackStrategy.HEURISTIC_GUESSING: "Used heuristic value guessing due to poor OCR quality",
    FallbackStrategy.PARTIAL_EXTRACTION: "Extracted partial data due to significant OCR issues",
    FallbackStrategy.FORCED_TABLE_PARSING: "Forced table parsing despite format uncertainty",
}

Strategy = Callable[[str, str], HourlyReading]


def is_acceptable(reading: HourlyReading, thresholds: AcceptanceThresholds) -> bool:
    """Both the confidence and the valid-field thresholds must hold."""
    return (
        reading.overall_confidence >= thresholds.min_confidence
        and reading.valid_field_count >= thresholds.min_valid_fields
    )


class _FallbackRun:
    """Mutable state of a single ``handle`` call."""

    def __init__(self, target_hour: str, level: FallbackLevel) -> None:
        self.target_hour = target_hour
        self.level = level
        self.state = OrchestrationState.PRIMARY
        self.attempts: list[AttemptRecord] = []
        self.candidates: list[tuple[FallbackStrategy, HourlyReading]] = []

    def transition(self, to_state: OrchestrationState, context: dict[str, Any] | None = None) -> None:
        """Every state change MUST go through this method."""
        if to_state not in VALID_TRANSITIONS.get(self.state, set()):
            raise OrchestrationError(f"Invalid transition: {self.state.value} -> {to_state.value}")
        logger.debug(
            "orchestration_transition",
            extra={
                "from_state": self.state.value,
                "to_state": to_state.value,
                "target_hour": self.target_hour,
                "context": context or {},
            },
        )
        self.state = to_state


class FallbackOrchestrator:
    """Runs the primary parse and, when needed, the fallback cascade.

    Collaborators are fixed at construction; each ``handle`` call keeps its
    own state, so one instance may serve concurrent callers.
    """

    def __init__(
        self,
        config: ThermologConfig | None = None,
        *,
        primary_parser: Callable[..., HourlyReading] = parse_intelligently,
        field_extractor: FieldExtractor = extract_fields,
    ) -> None:
        self._config = config or ThermologConfig()
        self._primary_parser = primary_parser
        self._field_extractor = field_extractor

    @property
    def config(self) -> ThermologConfig:
        return self._config

    def thresholds_for(self, level: FallbackLevel) -> AcceptanceThresholds:
        return self._config.fallback.thresholds_for(level)

    def handle(
        self,
        ocr_text: str,
        target_hour: str,
        level: FallbackLevel | None = None,
        *,
        parsed_at: datetime | None = None,
    ) -> HourlyReadingWithFallback:
        """Parse ``ocr_text`` for ``target_hour``, degrading as far as ``level`` allows."""
        level = level or self._config.fallback.default_level
        parsed_at = resolve_parsed_at(parsed_at)
        run = _FallbackRun(target_hour, level)

        try:
            return self._execute(run, ocr_text or "", parsed_at)
        except Exception as exc:
            emit_structured_error(
                logger,
                code=ErrorCode.ORCHESTRATION_FAILED,
                message=str(exc),
                suppressed=True,
                target_hour=target_hour,
                details={"state": run.state.value, "level": level.value},
            )
            reading = empty_reading(target_hour, ocr_text or "", parsed_at, f"Parsing error: {exc}")
            return HourlyReadingWithFallback(
                reading=reading,
                fallback_strategy=FallbackStrategy.ERROR,
                fallback_reason=f"Parsing error: {exc}",
                confidence=0.0,
                attempts=tuple(run.attempts),
            )

    def _execute(
        self,
        run: _FallbackRun,
        ocr_text: str,
        parsed_at: datetime,
    ) -> HourlyReadingWithFallback:
        thresholds = self.thresholds_for(run.level)

        if canonical_hour_label(run.target_hour) is None:
            run.transition(OrchestrationState.TERMINAL, {"reason": INVALID_HOUR_REASON})
            reading = empty_reading(run.target_hour, ocr_text, parsed_at, INVALID_HOUR_REASON)
            return HourlyReadingWithFallback(
                reading=reading,
                fallback_strategy=FallbackStrategy.ERROR,
                fallback_reason=INVALID_HOUR_REASON,
                confidence=0.0,
            )

        primary = self._run_primary(run, ocr_text, parsed_at)
        run.candidates.append((FallbackStrategy.NONE, primary))
        run.transition(OrchestrationState.EVALUATING)
        if is_acceptable(primary, thresholds):
            run.transition(OrchestrationState.ACCEPTED)
            run.transition(OrchestrationState.TERMINAL)
            return HourlyReadingWithFallback(
                reading=primary,
                fallback_strategy=FallbackStrategy.NONE,
                confidence=primary.overall_confidence,
                best_attempt=FallbackStrategy.NONE,
            )
        run.transition(OrchestrationState.CASCADING)

        strategy_table = self._strategy_table(parsed_at)
        for strategy in CASCADES[run.level]:
            reading = self._attempt(run, strategy, strategy_table[strategy], ocr_text)
            if reading is None:
                continue
            run.transition(OrchestrationState.EVALUATING, {"strategy": strategy.value})
            accepted = is_acceptable(reading, thresholds)
            run.attempts[-1] = run.attempts[-1].model_copy(update={"accepted": accepted})
            if accepted:
                run.transition(OrchestrationState.ACCEPTED)
                run.transition(OrchestrationState.TERMINAL)
                logger.info(
                    "fallback_accepted",
                    extra={
                        "strategy": strategy.value,
                        "level": run.level.value,
                        "target_hour": run.target_hour,
                        "overall_confidence": reading.overall_confidence,
                    },
                )
                return HourlyReadingWithFallback(
                    reading=reading,
                    fallback_strategy=strategy,
                    fallback_reason=FALLBACK_REASONS[strategy],
                    confidence=reading.overall_confidence,
                    best_attempt=strategy,
                    attempts=tuple(run.attempts),
                )
            run.transition(OrchestrationState.CASCADING)

        result = self._exhausted(run, ocr_text, parsed_at, thresholds)
        run.transition(OrchestrationState.TERMINAL)
        return result

    def _run_primary(self, run: _FallbackRun, ocr_text: str, parsed_at: datetime) -> HourlyReading:
        try:
            return self._primary_parser(ocr_text, run.target_hour, parsed_at=parsed_at)
        except Exception as exc:
            emit_structured_error(
                logger,
                code=ErrorCode.PRIMARY_PARSE_FAILED,
                message=str(exc),
                suppressed=True,
                target_hour=run.target_hour,
            )
            return empty_reading(run.target_hour, ocr_text, parsed_at, f"Primary parse failed: {exc}")

    def _attempt(
        self,
        run: _FallbackRun,
        strategy: FallbackStrategy,
        execute: Strategy,
        ocr_text: str,
    ) -> HourlyReading | None:
        try:
            reading = execute(ocr_text, run.target_hour)
        except Exception as exc:
            code = (
                ErrorCode.FIELD_EXTRACTOR_FAILED
                if strategy is FallbackStrategy.FIELD_EXTRACTION
                else ErrorCode.STRATEGY_FAILED
            )
            emit_structured_error(
                logger,
                code=code,
                message=str(exc),
                suppressed=True,
                target_hour=run.target_hour,
                strategy=strategy.value,
            )
            run.attempts.append(AttemptRecord(strategy=strategy, error=str(exc)))
            return None

        run.attempts.append(
            AttemptRecord(
                strategy=strategy,
                confidence=reading.overall_confidence,
                valid_field_count=reading.valid_field_count,
            )
        )
        run.candidates.append((strategy, reading))
        return reading

    def _exhausted(
        self,
        run: _FallbackRun,
        ocr_text: str,
        parsed_at: datetime,
        thresholds: AcceptanceThresholds,
    ) -> HourlyReadingWithFallback:
        best_strategy, best = run.candidates[0]
        for strategy, reading in run.candidates[1:]:
            if reading.overall_confidence > best.overall_confidence:
                best_strategy, best = strategy, reading

        noise_floor = self._config.fallback.noise_floor
        readings = [reading for _, reading in run.candidates]
        reason = f"{EXHAUSTED_REASON} (best attempt: {best_strategy.value})"
        if len(rank_candidates(readings, noise_floor)) >= 2:
            combined = combine_readings(
                readings, run.target_hour, ocr_text, parsed_at, noise_floor=noise_floor
            )
            if is_acceptable(combined, thresholds):
                best = combined
                reason = f"{COMBINED_REASON} (led by {best_strategy.value})"

        logger.warning(
            "fallback_exhausted",
            extra={
                "level": run.level.value,
                "target_hour": run.target_hour,
                "best_attempt": best_strategy.value,
                "overall_confidence": best.overall_confidence,
                "attempts": len(run.attempts),
            },
        )
        return HourlyReadingWithFallback(
            reading=best,
            fallback_strategy=FallbackStrategy.PARTIAL_EXTRACTION,
            fallback_reason=reason,
            confidence=best.overall_confidence,
            best_attempt=best_strategy,
            attempts=tuple(run.attempts),
        )

    def _strategy_table(self, parsed_at: datetime) -> dict[FallbackStrategy, Strategy]:
        config = self._config.strategies
        return {
            FallbackStrategy.TEXT_PREPROCESSING: partial(
                strategies.text_preprocessing,
                parsed_at=parsed_at,
                primary_parser=self._primary_parser,
            ),
            FallbackStrategy.PATTERN_MATCHING: partial(
                strategies.pattern_matching, parsed_at=parsed_at, config=config
            ),
            FallbackStrategy.FIELD_EXTRACTION: partial(
                strategies.field_extraction,
                parsed_at=parsed_at,
                config=config,
                extractor=self._field_extractor,
            ),
            FallbackStrategy.TEMPLATE_MATCHING: partial(
                strategies.template_matching, parsed_at=parsed_at, config=config
            ),
            FallbackStrategy.HEURISTIC_GUESSING: partial(
                strategies.heuristic_guessing, parsed_at=parsed_at, config=config
            ),
            FallbackStrategy.PARTIAL_EXTRACTION: partial(
                strategies.partial_extraction, parsed_at=parsed_at, config=config
            ),
            FallbackStrategy.FORCED_TABLE_PARSING: partial(
                strategies.forced_table_parsing, parsed_at=parsed_at
            ),
        }


def parse_with_fallback(
    ocr_text: str,
    target_hour: str,
    level: FallbackLevel | None = None,
    *,
    config: ThermologConfig | None = None,
    parsed_at: datetime | None = None,
) -> HourlyReadingWithFallback:
    """Convenience wrapper around a default-configured orchestrator."""
    return FallbackOrchestrator(config).handle(ocr_text, target_hour, level, parsed_at=parsed_at)
