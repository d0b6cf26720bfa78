"""Shared-secret API key check."""

from __future__ import annotations

import hmac

from fastapi import Request

from mindmapgen.config import Settings
from mindmapgen.errors import AuthenticationError
from mindmapgen.logging import get_logger

logger = get_logger(__name__)

API_KEY_HEADER = "x-api-key"
PUBLIC_PATHS = ("/", "/health")
PUBLIC_PREFIX = "/public"


def is_public_path(path: str) -> bool:
    return path in PUBLIC_PATHS or path.startswith(PUBLIC_PREFIX)


def check_api_key(settings: Settings, provided: str | None) -> None:
    """Raise `AuthenticationError` unless `provided` matches the configured key.

    Without a usable key configured, authentication is off.
    """

    if not settings.api_auth_enabled:
        return
    if not provided:
        raise AuthenticationError("API key missing", 401)
    expected = (settings.api_key or "").encode("utf-8")
    if not hmac.compare_digest(provided.encode("utf-8"), expected):
        raise AuthenticationError("Invalid API key", 403)


def require_api_key(request: Request) -> None:
    """FastAPI dependency guarding non-public routes."""

    if is_public_path(request.url.path):
        return
    settings: Settings = request.app.state.settings
    check_api_key(settings, request.headers.get(API_KEY_HEADER))
