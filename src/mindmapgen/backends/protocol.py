"""Protocol definitions for pluggable mind map stores."""

from __future__ import annotations

import re
from abc import ABC, abstractmethod

from mindmapgen.errors import ValidationError
from mindmapgen.models import MindMap, Page

STORAGE_KEY_EXTENSION = ".json"
DEFAULT_PAGE_LIMIT = 100

_UNSAFE = re.compile(r"[^\w.-]+")


def _key_token(value: str) -> str:
    # Path separators, whitespace and other unsafe runs become "_"; no leading dots.
    return _UNSAFE.sub("_", value).lstrip(".")


def storage_key(subject: str, topic: str, mind_map_id: str) -> str:
    """Content-addressed key: the same document always lands on the same key.

    The key is a single filename-safe component, never a path.
    """

    return f"{_key_token(subject)}_{_key_token(topic)}_{_key_token(mind_map_id)}{STORAGE_KEY_EXTENSION}"


def check_page_limit(limit: int) -> None:
    if limit < 1:
        raise ValidationError(f"limit must be at least 1, got {limit}")


def storage_key_for(mind_map: MindMap) -> str:
    return storage_key(mind_map.subject, mind_map.topic, mind_map.id)


class MindMapStore(ABC):
    """Durable storage for generated mind maps.

    There is no index: listing re-reads whatever keys the backing store holds.
    """

    @abstractmethod
    async def init(self) -> None:
        """Ensure the bucket or directory exists. Idempotent."""

    @abstractmethod
    async def store(self, mind_map: MindMap) -> str:
        """Persist a mind map and return its storage key. Overwrites the same key."""

    @abstractmethod
    async def list(self, page_token: str | None = None, limit: int = DEFAULT_PAGE_LIMIT) -> Page:
        """Return one page of stored mind maps.

        Items that cannot be read or parsed are skipped with a warning.
        """
