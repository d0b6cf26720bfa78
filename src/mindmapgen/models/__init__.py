"""Pydantic models used across the project."""

from __future__ import annotations

from mindmapgen.models.batch import InputRow, Outcome, Status
from mindmapgen.models.mindmap import MindMap, MindMapNode, RawDocument, RawNode
from mindmapgen.models.page import Page

__all__ = [
    "InputRow",
    "MindMap",
    "MindMapNode",
    "Outcome",
    "Page",
    "RawDocument",
    "RawNode",
    "Status",
]
