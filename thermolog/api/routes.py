"""REST API routes for Thermolog.

Provides endpoints for:
- Parsing one OCR text block into an hourly reading
- Inspecting the acceptance thresholds and cascades per fallback level
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel

from thermolog.api.auth import get_app_config, require_api_auth
from thermolog.api.validators import validate_ocr_text
from thermolog.config.settings import AcceptanceThresholds, ThermologConfig
from thermolog.fallback.orchestrator import CASCADES, FallbackOrchestrator
from thermolog.readings.models import FallbackLevel, FallbackStrategy, HourlyReadingWithFallback

router = APIRouter()


def _get_orchestrator(request: Request) -> FallbackOrchestrator:
    return request.app.state.orchestrator


# --- Request/Response Models ---


class ParseRequest(BaseModel):
    """Request to parse one OCR text block."""

    ocr_text: str
    target_hour: str
    fallback_level: FallbackLevel | None = None


class LevelInfo(BaseModel):
    """Acceptance rules for one fallback level."""

    level: FallbackLevel
    thresholds: AcceptanceThresholds
    cascade: list[FallbackStrategy]


# --- Endpoints ---


@router.post(
    "/readings/parse",
    response_model=HourlyReadingWithFallback,
    dependencies=[Depends(require_api_auth)],
)
def parse_reading(
    request: ParseRequest,
    config: ThermologConfig = Depends(get_app_config),
    orchestrator: FallbackOrchestrator = Depends(_get_orchestrator),
) -> HourlyReadingWithFallback:
    validate_ocr_text(request.ocr_text, config.api)
    return orchestrator.handle(
        request.ocr_text,
        request.target_hour,
        request.fallback_level,
    )


@router.get(
    "/readings/levels",
    response_model=list[LevelInfo],
    dependencies=[Depends(require_api_auth)],
)
async def list_levels(
    orchestrator: FallbackOrchestrator = Depends(_get_orchestrator),
) -> list[LevelInfo]:
    return [
        LevelInfo(
            level=level,
            thresholds=orchestrator.thresholds_for(level),
            cascade=list(CASCADES[level]),
        )
        for level in FallbackLevel
    ]
