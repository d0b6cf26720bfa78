"""OpenAI-backed mind map generator.

This wraps the `openai` async SDK: one chat completion in, one validated `MindMap` out, or a
typed failure. Retries are not done here; the batch wraps every call in its retry policy.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal, Protocol, Sequence

from openai import AsyncOpenAI

from mindmapgen.config import Settings
from mindmapgen.errors import ConfigurationError, ExternalAPIError, ValidationError
from mindmapgen.logging import get_logger
from mindmapgen.models import MindMap
from mindmapgen.prompts import MIND_MAP_SYSTEM_PROMPT, build_mind_map_prompt
from mindmapgen.utils.json_extract import extract_json_object
from mindmapgen.validation import build_mind_map, validate_document_or_raise, validate_raw_document

logger = get_logger(__name__)

Role = Literal["system", "user", "assistant"]


@dataclass(frozen=True)
class ChatMessage:
    """A chat message."""

    role: Role
    content: str


class MindMapGenerator(Protocol):
    """Turns a (subject, topic) pair into a validated mind map.

    Raises `ExternalAPIError` for communication failures (transient) and `ValidationError`
    when the model answer cannot be turned into a mind map (non-transient).
    """

    async def generate(self, subject: str, topic: str) -> MindMap:
        ...


def parse_mind_map_content(content: str) -> dict[str, Any]:
    """Extract and structurally check the raw document in a model answer."""

    data = extract_json_object(content)
    if data is None:
        raise ValidationError(
            "No valid JSON structure found in OpenAI response",
            context={"content": content[:400]},
        )
    if not validate_raw_document(data):
        raise ValidationError(
            "Extracted JSON does not match the mind map structure",
            context={"content": content[:400]},
        )
    return data


class OpenAIMindMapGenerator:
    """Mind map generator using the OpenAI Chat Completions API."""

    def __init__(self, settings: Settings, *, client: AsyncOpenAI | None = None) -> None:
        self._settings = settings
        if client is None:
            if not settings.openai_api_key:
                raise ConfigurationError(
                    "Missing MINDMAPGEN_OPENAI_API_KEY. "
                    "Set it in environment variables or a .env file."
                )
            client = AsyncOpenAI(
                api_key=settings.openai_api_key,
                base_url=settings.openai_base_url,
                max_retries=0,
            )
        self._client = client

    def build_messages(self, subject: str, topic: str) -> Sequence[ChatMessage]:
        return [
            ChatMessage(role="system", content=MIND_MAP_SYSTEM_PROMPT),
            ChatMessage(role="user", content=build_mind_map_prompt(subject, topic)),
        ]

    async def complete(self, messages: Sequence[ChatMessage]) -> str | None:
        """Send one chat completion and return the assistant content."""

        payload: list[dict[str, str]] = [{"role": m.role, "content": m.content} for m in messages]
        resp = await self._client.chat.completions.create(
            model=self._settings.openai_model,
            messages=payload,
            temperature=self._settings.openai_temperature,
            timeout=self._settings.openai_timeout_s,
        )
        if not resp.choices:
            return None
        choice = resp.choices[0]
        if not choice.message:
            return None
        return choice.message.content

    async def generate(self, subject: str, topic: str) -> MindMap:
        """Generate a mind map.

        Args:
            subject: Subject the topic belongs to.
            topic: Topic the mind map focuses on.

        Returns:
            A validated mind map with fresh ids.
        """

        logger.info("Generating mind map", extra={"subject": subject, "topic": topic})
        context = {"subject": subject, "topic": topic}

        try:
            content = await self.complete(self.build_messages(subject, topic))
        except Exception as e:
            logger.error(
                "OpenAI request failed",
                extra={"error_type": type(e).__name__, "error": str(e), **context},
            )
            raise ExternalAPIError("OpenAI", str(e) or "Failed to communicate with OpenAI API", e, context) from e

        if not content:
            logger.error("No content returned from OpenAI", extra=context)
            raise ExternalAPIError("OpenAI", "No content returned from API", context=context)

        data = parse_mind_map_content(content)
        mind_map = build_mind_map(subject, topic, data)
        validate_document_or_raise(mind_map)

        logger.info("Mind map generated", extra={"mind_map_id": mind_map.id, **context})
        return mind_map
