"""Structured error telemetry helpers."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Canonical error codes for operational telemetry."""

    PARSER_FAILED = "PARSER_FAILED"
    PRIMARY_PARSE_FAILED = "PRIMARY_PARSE_FAILED"
    STRATEGY_FAILED = "STRATEGY_FAILED"
    FIELD_EXTRACTOR_FAILED = "FIELD_EXTRACTOR_FAILED"
    ORCHESTRATION_FAILED = "ORCHESTRATION_FAILED"


def emit_structured_error(
    logger: logging.Logger,
    *,
    code: ErrorCode,
    message: str,
    suppressed: bool,
    target_hour: str | None = None,
    strategy: str | None = None,
    details: dict[str, Any] | None = None,
) -> None:
    """Emit a structured telemetry event via logging."""
    logger.error(
        "thermolog_error",
        extra={
            "error_code": code,
            "error_message": message,
            "suppressed": suppressed,
            "target_hour": target_hour,
            "strategy": strategy,
            "details": details or {},
        },
    )
