"""Unit tests for request payload validators."""

from __future__ import annotations

import pytest
from fastapi import HTTPException

from thermolog.api.validators import validate_ocr_text
from thermolog.config.settings import APIConfig


def test_text_within_limit_passes() -> None:
    validate_ocr_text("x" * 10, APIConfig(max_ocr_chars=10))


def test_oversized_text_rejected() -> None:
    with pytest.raises(HTTPException) as exc:
        validate_ocr_text("x" * 11, APIConfig(max_ocr_chars=10))

    assert exc.value.status_code == 413
    assert exc.value.detail == "ocr_text exceeds 10 characters."
