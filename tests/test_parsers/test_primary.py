"""Tests for the classification-driven primary parse."""

from datetime import datetime, timezone

from thermolog.parsers.primary import parse_intelligently

PARSED_AT = datetime(2026, 3, 1, 14, 5, tzinfo=timezone.utc)


class TestParseIntelligently:
    def test_table_dispatch(self):
        text = (
            "Time 13:00 14:00 15:00\n"
            "Vapor Inlet 1180 1200 1210\n"
            "Exhaust Temp 1440 1450 1460\n"
        )
        reading = parse_intelligently(text, "14:00", parsed_at=PARSED_AT)
        assert reading.value_of("vaporInletFpm") == 1200
        assert reading.value_of("exhaustTempF") == 1450

    def test_free_form_dispatch(self):
        reading = parse_intelligently("Exhaust Temp: 950 F\nInlet PPM: 12.3", "14:00")
        assert reading.value_of("exhaustTempF") == 950
        assert reading.value_of("inletPpm") == 12.3

    def test_empty_text_goes_hybrid(self):
        reading = parse_intelligently("", "14:00", parsed_at=PARSED_AT)
        assert reading.field_matches == ()
        assert reading.overall_confidence == 0.0

    def test_deterministic(self):
        text = "Exhaust Temp: 950 F\nInlet PPM: 12.3"
        first = parse_intelligently(text, "14:00", parsed_at=PARSED_AT)
        second = parse_intelligently(text, "14:00", parsed_at=PARSED_AT)
        assert first == second
