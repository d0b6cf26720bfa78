"""Batch orchestration."""

from __future__ import annotations

from mindmapgen.orchestrator.runner import (
    MindMapService,
    ReportDeliveryError,
    checkpoint_path,
    chunk_ranges,
    create_service,
)
from mindmapgen.orchestrator.state import BatchState

__all__ = [
    "BatchState",
    "MindMapService",
    "ReportDeliveryError",
    "checkpoint_path",
    "chunk_ranges",
    "create_service",
]
