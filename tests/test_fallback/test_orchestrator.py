"""Tests for the fallback orchestrator."""

from datetime import datetime, timezone

import pytest

from thermolog.config.settings import ThermologConfig
from thermolog.fallback.orchestrator import (
    CASCADES,
    COMBINED_REASON,
    EXHAUSTED_REASON,
    FALLBACK_REASONS,
    INVALID_HOUR_REASON,
    FallbackOrchestrator,
    is_acceptable,
    parse_with_fallback,
)
from thermolog.readings.models import (
    FallbackLevel,
    FallbackStrategy,
    FieldMatch,
    FieldType,
    HourlyReading,
)

PARSED_AT = datetime(2026, 3, 1, 14, 5, tzinfo=timezone.utc)

HOURLY_TABLE = """Time            13:00   14:00   15:00
Vapor Inlet     1180    1200    1210
Dilution Air    640     650     655
Combustion Air  410     420     425
Exhaust Temp    1440    1450    1460
Sphere Pressure 12.4    12.5    12.6
Inlet PPM       8200    8300    8350
Outlet PPM      14.2    14.8    15.1
Totalizer       1234500 1235600 1236700
"""

UNIT_NOTES = """Vapor flow 1200 FPM
Exhaust 1450 F
Inlet 8300 PPM
Outlet 14.8 PPM
Sphere 12.5 PSI
"""


def _stub_primary(confidence: float, **fields):
    """Primary parser returning a fixed reading."""

    def primary(text, hour, *, parsed_at):
        return HourlyReading(
            inspection_time=hour,
            field_matches=tuple(
                FieldMatch(name=name, value=value, type=FieldType.NUMERIC, confidence=confidence)
                for name, value in fields.items()
            ),
            overall_confidence=confidence,
            parsed_at=parsed_at,
            raw_ocr_text=text,
        )

    return primary


def _no_fields(text):
    return []


@pytest.fixture
def orchestrator():
    return FallbackOrchestrator(ThermologConfig())


class TestIsAcceptable:
    def test_both_thresholds_required(self):
        thresholds = ThermologConfig().fallback.moderate
        rich = _stub_primary(0.6, a=1, b=2, c=3, d=4)("", "14:00", parsed_at=PARSED_AT)
        sparse = _stub_primary(0.9, a=1)("", "14:00", parsed_at=PARSED_AT)
        weak = _stub_primary(0.5, a=1, b=2, c=3, d=4)("", "14:00", parsed_at=PARSED_AT)
        assert is_acceptable(rich, thresholds)
        assert not is_acceptable(sparse, thresholds)
        assert not is_acceptable(weak, thresholds)

    def test_monotonic_across_levels(self):
        fallback = ThermologConfig().fallback
        for confidence in (0.2, 0.3, 0.5, 0.6, 0.8, 1.0):
            for count in range(0, 9):
                fields = {f"f{i}": i for i in range(count)}
                reading = _stub_primary(confidence, **fields)("", "14:00", parsed_at=PARSED_AT)
                if is_acceptable(reading, fallback.conservative):
                    assert is_acceptable(reading, fallback.moderate)
                if is_acceptable(reading, fallback.moderate):
                    assert is_acceptable(reading, fallback.aggressive)


class TestCascades:
    def test_cascade_order_and_nesting(self):
        conservative = CASCADES[FallbackLevel.CONSERVATIVE]
        moderate = CASCADES[FallbackLevel.MODERATE]
        aggressive = CASCADES[FallbackLevel.AGGRESSIVE]
        assert conservative == (
            FallbackStrategy.TEXT_PREPROCESSING,
            FallbackStrategy.PATTERN_MATCHING,
        )
        assert moderate[: len(conservative)] == conservative
        assert aggressive[: len(moderate)] == moderate
        assert aggressive[-1] is FallbackStrategy.FORCED_TABLE_PARSING
        assert len(aggressive) == 7

    def test_every_strategy_has_a_reason(self):
        for strategy in CASCADES[FallbackLevel.AGGRESSIVE]:
            assert FALLBACK_REASONS[strategy]


class TestHandle:
    def test_clean_table_needs_no_fallback(self, orchestrator):
        result = orchestrator.handle(
            HOURLY_TABLE, "14:00", FallbackLevel.CONSERVATIVE, parsed_at=PARSED_AT
        )
        assert result.fallback_strategy is FallbackStrategy.NONE
        assert result.fallback_reason is None
        assert result.confidence >= 0.8
        assert result.reading.valid_field_count >= 6
        assert result.reading.value_of("exhaustTempF") == 1450
        assert result.attempts == ()

    def test_free_form_notes(self, orchestrator):
        result = orchestrator.handle(
            "Exhaust Temp: 950 F\nInlet PPM: 12.3",
            "14:00",
            FallbackLevel.AGGRESSIVE,
            parsed_at=PARSED_AT,
        )
        assert result.fallback_strategy is FallbackStrategy.NONE
        assert result.reading.value_of("exhaustTempF") == 950
        assert result.reading.value_of("inletPpm") == 12.3

    def test_empty_text_exhausts_aggressive_cascade(self, orchestrator):
        result = orchestrator.handle("", "14:00", FallbackLevel.AGGRESSIVE, parsed_at=PARSED_AT)
        assert result.fallback_strategy is FallbackStrategy.PARTIAL_EXTRACTION
        assert result.confidence == 0.0
        assert result.fallback_reason.startswith(EXHAUSTED_REASON)
        assert result.best_attempt is FallbackStrategy.NONE
        assert [a.strategy for a in result.attempts] == list(
            CASCADES[FallbackLevel.AGGRESSIVE]
        )
        assert not any(a.accepted for a in result.attempts)

    def test_invalid_hour_short_circuits(self):
        calls = []

        def primary(text, hour, *, parsed_at):
            calls.append(hour)
            raise AssertionError("primary must not run")

        orchestrator = FallbackOrchestrator(primary_parser=primary)
        result = orchestrator.handle(HOURLY_TABLE, "25:99", parsed_at=PARSED_AT)
        assert result.fallback_reason == INVALID_HOUR_REASON
        assert result.fallback_strategy is FallbackStrategy.ERROR
        assert result.confidence == 0.0
        assert result.reading.field_matches == ()
        assert result.attempts == ()
        assert calls == []

    def test_pattern_matching_rescues_weak_primary(self):
        primary = _stub_primary(
            0.5, vaporInletFpm=1200, exhaustTempF=1450, inletPpm=8300.0, outletPpm=14.8,
            spherePressurePsi=12.5,
        )
        orchestrator = FallbackOrchestrator(primary_parser=primary)
        result = orchestrator.handle(
            UNIT_NOTES, "14:00", FallbackLevel.MODERATE, parsed_at=PARSED_AT
        )
        assert result.fallback_strategy is FallbackStrategy.PATTERN_MATCHING
        assert result.fallback_reason == FALLBACK_REASONS[FallbackStrategy.PATTERN_MATCHING]
        assert result.confidence == pytest.approx(0.6)
        assert result.reading.valid_field_count == 5
        assert [a.strategy for a in result.attempts] == [
            FallbackStrategy.TEXT_PREPROCESSING,
            FallbackStrategy.PATTERN_MATCHING,
        ]
        assert result.attempts[-1].accepted

    def test_exhaustion_returns_best_attempt(self):
        primary = _stub_primary(0.5, vaporInletFpm=1200, exhaustTempF=1450, inletPpm=8300.0)
        orchestrator = FallbackOrchestrator(primary_parser=primary)
        result = orchestrator.handle(
            "Sphere 12.5 PSI\nTotalizer 1235600 SCF",
            "14:00",
            FallbackLevel.CONSERVATIVE,
            parsed_at=PARSED_AT,
        )
        assert result.fallback_strategy is FallbackStrategy.PARTIAL_EXTRACTION
        assert result.best_attempt is FallbackStrategy.PATTERN_MATCHING
        assert result.confidence == pytest.approx(0.6)
        assert result.reading.value_of("totalizerScf") == 1235600
        assert "patternMatching" in result.fallback_reason
        assert result.fallback_reason.startswith(EXHAUSTED_REASON)

    def test_exhaustion_combines_complementary_candidates(self):
        primary = _stub_primary(0.7, exhaustTempF=1450, inletPpm=8300.0)
        orchestrator = FallbackOrchestrator(primary_parser=primary, field_extractor=_no_fields)
        result = orchestrator.handle(
            "Sphere 12.5 PSI\nTotalizer 1235600 SCF",
            "14:00",
            FallbackLevel.MODERATE,
            parsed_at=PARSED_AT,
        )
        assert result.fallback_strategy is FallbackStrategy.PARTIAL_EXTRACTION
        assert result.best_attempt is FallbackStrategy.NONE
        assert result.fallback_reason.startswith(COMBINED_REASON)
        assert EXHAUSTED_REASON not in result.fallback_reason
        assert result.reading.valid_field_count == 4
        assert result.confidence == pytest.approx(1.25 / (1 + 1 / 2 + 1 / 3))
        assert result.reading.value_of("spherePressurePsi") == 12.5

    def test_failing_strategy_does_not_abort_cascade(self, caplog):
        def broken_extractor(text):
            raise RuntimeError("extractor offline")

        primary = _stub_primary(0.5, exhaustTempF=1450)
        orchestrator = FallbackOrchestrator(primary_parser=primary, field_extractor=broken_extractor)
        result = orchestrator.handle("", "14:00", FallbackLevel.MODERATE, parsed_at=PARSED_AT)

        by_strategy = {a.strategy: a for a in result.attempts}
        assert by_strategy[FallbackStrategy.FIELD_EXTRACTION].error == "extractor offline"
        assert FallbackStrategy.TEMPLATE_MATCHING in by_strategy
        assert result.fallback_strategy is FallbackStrategy.PARTIAL_EXTRACTION
        assert any(
            getattr(record, "error_code", None) == "FIELD_EXTRACTOR_FAILED"
            for record in caplog.records
        )

    def test_failing_primary_is_treated_as_empty(self):
        def primary(text, hour, *, parsed_at):
            raise ValueError("bad input")

        orchestrator = FallbackOrchestrator(primary_parser=primary)
        result = orchestrator.handle(UNIT_NOTES, "14:00", FallbackLevel.MODERATE, parsed_at=PARSED_AT)
        assert result.fallback_strategy is FallbackStrategy.PATTERN_MATCHING

    def test_overflowing_number_keeps_primary_parse(self, orchestrator, caplog):
        text = "Exhaust Temp: 950 F\nInlet PPM: 12.3\nTotalizer: " + "9" * 400
        result = orchestrator.handle(text, "14:00", FallbackLevel.AGGRESSIVE, parsed_at=PARSED_AT)
        assert result.fallback_strategy is FallbackStrategy.NONE
        assert result.reading.value_of("exhaustTempF") == 950
        assert not any(
            getattr(record, "error_code", None) == "PRIMARY_PARSE_FAILED"
            for record in caplog.records
        )

    def test_idempotent(self, orchestrator):
        first = orchestrator.handle(UNIT_NOTES, "14:00", FallbackLevel.AGGRESSIVE, parsed_at=PARSED_AT)
        second = orchestrator.handle(UNIT_NOTES, "14:00", FallbackLevel.AGGRESSIVE, parsed_at=PARSED_AT)
        assert first.model_dump() == second.model_dump()

    def test_input_text_preserved(self, orchestrator):
        result = orchestrator.handle(HOURLY_TABLE, "14:00", parsed_at=PARSED_AT)
        assert result.reading.raw_ocr_text == HOURLY_TABLE

    def test_default_level_from_environment(self, monkeypatch):
        monkeypatch.setenv("THERMOLOG_FALLBACK_LEVEL", "conservative")
        orchestrator = FallbackOrchestrator(ThermologConfig())
        result = orchestrator.handle("", "14:00", parsed_at=PARSED_AT)
        assert [a.strategy for a in result.attempts] == list(
            CASCADES[FallbackLevel.CONSERVATIVE]
        )

    def test_confidence_duplicates_reading_confidence(self, orchestrator):
        for level in FallbackLevel:
            result = orchestrator.handle(UNIT_NOTES, "14:00", level, parsed_at=PARSED_AT)
            assert result.confidence == result.reading.overall_confidence
            assert 0.0 <= result.confidence <= 1.0


class TestParseWithFallback:
    def test_wrapper(self):
        result = parse_with_fallback(
            HOURLY_TABLE, "15:00", FallbackLevel.MODERATE, parsed_at=PARSED_AT
        )
        assert result.fallback_strategy is FallbackStrategy.NONE
        assert result.reading.value_of("totalizerScf") == 1236700
