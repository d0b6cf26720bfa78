"""Text-generation adapters."""

from __future__ import annotations

from mindmapgen.llm.client import (
    ChatMessage,
    MindMapGenerator,
    OpenAIMindMapGenerator,
    parse_mind_map_content,
)

__all__ = ["ChatMessage", "MindMapGenerator", "OpenAIMindMapGenerator", "parse_mind_map_content"]
