from __future__ import annotations

from mindmapgen.prompts.mindmap import MIND_MAP_SYSTEM_PROMPT, build_mind_map_prompt

__all__ = [
    "MIND_MAP_SYSTEM_PROMPT",
    "build_mind_map_prompt",
]
