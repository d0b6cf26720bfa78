"""HTTP API."""

from __future__ import annotations

from mindmapgen.api.app import create_app

__all__ = ["create_app"]
