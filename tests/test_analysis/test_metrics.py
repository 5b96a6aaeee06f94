"""Tests for structural text metrics."""

from thermolog.analysis.metrics import TextMetrics, analyze_text


class TestAnalyzeText:
    def test_empty_text_is_zeroed(self):
        assert analyze_text("") == TextMetrics()
        assert analyze_text("\n   \n") == TextMetrics()

    def test_table_like_text(self):
        text = (
            "Time 13:00 14:00 15:00\n"
            "Vapor Inlet 1180 1200 1210\n"
            "Exhaust Temp 1440 1450 1460\n"
        )
        metrics = analyze_text(text)
        assert metrics.line_count == 3
        assert metrics.time_column_count == 3
        assert metrics.has_time_headers
        assert metrics.has_field_labels
        # "13:00" contributes two numeric tokens.
        assert metrics.numeric_column_count == 6

    def test_round_flow_readings_are_not_time_headers(self):
        metrics = analyze_text("Vapor Inlet 1000 1100 1010\nDilution Air 0100 0110 0101")
        assert metrics.time_column_count == 0
        assert not metrics.has_time_headers

    def test_free_form_text(self):
        metrics = analyze_text("Exhaust Temp: 950 F\nInlet PPM: 12.3")
        assert metrics.time_column_count == 0
        assert not metrics.has_time_headers
        assert metrics.has_field_labels
        assert metrics.numeric_column_count == 1

    def test_key_value_counts_as_label(self):
        metrics = analyze_text("Widget: 42")
        assert metrics.has_field_labels

    def test_line_length_statistics(self):
        metrics = analyze_text("abcd\nab")
        assert metrics.avg_line_length == 3.0
        assert metrics.line_length_variance == 1.0

    def test_consistent_spacing(self):
        text = "aa bb cc\ndd ee ff\ngg hh ii\n"
        assert analyze_text(text).has_consistent_spacing

    def test_two_lines_never_consistent(self):
        assert not analyze_text("aa bb\ncc dd").has_consistent_spacing

    def test_inconsistent_spacing(self):
        text = "aa bb cc\ndddddddd\neeeeeeee\n"
        assert not analyze_text(text).has_consistent_spacing
