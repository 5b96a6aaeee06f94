"""Bearer-token guard for the Thermolog API.

The expected token comes from the application's ``APIConfig``. An empty token
leaves the API open, which is the development setup.
"""

from __future__ import annotations

import secrets

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from thermolog.config.settings import ThermologConfig

_bearer = HTTPBearer(auto_error=False)


def get_app_config(request: Request) -> ThermologConfig:
    return request.app.state.config


async def require_api_auth(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer),
    config: ThermologConfig = Depends(get_app_config),
) -> str | None:
    """Return the presented token, or None when the API is open."""
    expected = config.api.api_token
    if not expected:
        return None
    presented = credentials.credentials if credentials is not None else ""
    if not secrets.compare_digest(presented.encode(), expected.encode()):
        raise HTTPException(
            status_code=401,
            detail="Invalid or missing API token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return presented
