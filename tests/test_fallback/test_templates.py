"""Tests for the layout template library."""

import pytest

from thermolog.analysis.classifier import FormatType
from thermolog.fallback.templates import TEMPLATES, best_template


class TestTemplateScore:
    def test_standard_table_full_match(self):
        text = "Time 13:00 14:00\nVapor Inlet 1180 1200\nExhaust Temp 1440 1450"
        standard = TEMPLATES[0]
        assert standard.score(text) == pytest.approx(0.8)

    def test_partial_match_scales_base(self):
        standard = TEMPLATES[0]
        assert standard.score("13:00 Exhaust Temp") == pytest.approx(0.8 * 2 / 3)


class TestBestTemplate:
    def test_first_template_above_threshold(self):
        found = best_template("13:00 Exhaust Temp", 0.5)
        assert found is not None
        template, score = found
        assert template.name == "Standard Table"
        assert template.layout is FormatType.TABLE_STRUCTURED
        assert score == pytest.approx(0.8 * 2 / 3)

    def test_key_value_notes(self):
        found = best_template("Exhaust temp: 1450\nInlet ppm: 8300", 0.5)
        assert found[0].name == "Key-Value Notes"

    def test_threshold_is_strict(self):
        # Column Format: 2 of 3 fingerprints give 0.467.
        assert best_template("flow 1200 temp 1450", 0.5) is None

    def test_no_match(self):
        assert best_template("", 0.5) is None
