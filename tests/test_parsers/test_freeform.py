"""Tests for the free-form parser."""

import pytest

from thermolog.parsers.freeform import parse_free_form


class TestParseFreeForm:
    def test_label_value_pairs(self):
        reading = parse_free_form("Exhaust Temp: 950 F\nInlet PPM: 12.3", "14:00")
        assert reading.value_of("exhaustTempF") == 950
        assert reading.value_of("inletPpm") == 12.3
        assert reading.overall_confidence == pytest.approx(0.9)

    def test_explicit_unit_kept_else_registry_unit(self):
        reading = parse_free_form("Exhaust Temp: 950 F\nInlet PPM: 12.3", "14:00")
        assert reading.get("exhaustTempF").unit == "F"
        assert reading.get("inletPpm").unit == "PPM"

    def test_in_range_value_has_no_warnings(self):
        match = parse_free_form("Exhaust Temp: 950 F", "14:00").get("exhaustTempF")
        assert match.validation.is_valid
        assert match.validation.warnings == ()

    def test_time_label_ignored(self):
        reading = parse_free_form("Time: 14:00\nOutlet PPM: 4.2", "14:00")
        assert [m.name for m in reading.field_matches] == ["outletPpm"]

    def test_ocr_digits_repaired(self):
        reading = parse_free_form("Vapor Flow: 12O0 FPM", "14:00")
        assert reading.value_of("vaporInletFpm") == 1200

    def test_position_is_value_offset(self):
        text = "Operator: JD\nSphere Pressure: 12.5 PSI"
        match = parse_free_form(text, "14:00").get("spherePressurePsi")
        assert text[match.position : match.position + 4] == "12.5"

    def test_no_pairs(self):
        reading = parse_free_form("nothing to see", "14:00")
        assert reading.field_matches == ()
        assert reading.overall_confidence == 0.0

    def test_overflowing_number_skipped(self):
        reading = parse_free_form("Exhaust Temp: 950\nTotalizer: " + "9" * 400, "14:00")
        assert reading.value_of("exhaustTempF") == 950
        assert reading.get("totalizerScf") is None
