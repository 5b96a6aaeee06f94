"""Validation helpers for API request payloads."""

from __future__ import annotations

from fastapi import HTTPException

from thermolog.config.settings import APIConfig


def validate_ocr_text(ocr_text: str, config: APIConfig) -> None:
    """Reject OCR payloads larger than the configured limit."""
    if len(ocr_text) > config.max_ocr_chars:
        raise HTTPException(
            status_code=413,
            detail=f"ocr_text exceeds {config.max_ocr_chars} characters.",
        )
