"""LocalMindMapStore: mind maps as JSON files in a local directory."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

from pydantic import ValidationError as PydanticValidationError

from mindmapgen.backends.protocol import (
    DEFAULT_PAGE_LIMIT,
    STORAGE_KEY_EXTENSION,
    MindMapStore,
    check_page_limit,
    storage_key_for,
)
from mindmapgen.errors import StorageError
from mindmapgen.logging import get_logger
from mindmapgen.models import MindMap, Page

logger = get_logger(__name__)


class LocalMindMapStore(MindMapStore):
    """Store that reads and writes mind maps under a root directory.

    Page tokens are stringified offsets into the sorted list of file names.
    """

    def __init__(self, root_dir: str | Path) -> None:
        """Initialize local store.

        Args:
            root_dir: Directory holding one JSON file per mind map.
        """
        self.root_dir = Path(root_dir)
        logger.info("Local mind map store configured", extra={"path": str(self.root_dir)})

    async def init(self) -> None:
        await asyncio.to_thread(self._init_sync)

    def _init_sync(self) -> None:
        try:
            existed = self.root_dir.is_dir()
            self.root_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.exception("Failed to initialize storage directory", extra={"path": str(self.root_dir)})
            raise StorageError("init", f"cannot create {self.root_dir}", e) from e
        if existed:
            logger.info("Storage directory already exists", extra={"path": str(self.root_dir)})
        else:
            logger.info("Storage directory created", extra={"path": str(self.root_dir)})

    async def store(self, mind_map: MindMap) -> str:
        key = storage_key_for(mind_map)
        await asyncio.to_thread(self._write_sync, key, mind_map.to_json())
        return key

    def _write_sync(self, key: str, content: str) -> None:
        path = self.root_dir / key
        if path.resolve().parent != self.root_dir.resolve():
            raise StorageError("store", f"key {key!r} escapes {self.root_dir}", context={"key": key})
        try:
            self.root_dir.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        except OSError as e:
            logger.exception("Failed to store mind map", extra={"path": str(path)})
            raise StorageError("store", f"cannot write {path}", e, {"key": key}) from e

    async def list(self, page_token: str | None = None, limit: int = DEFAULT_PAGE_LIMIT) -> Page:
        check_page_limit(limit)
        return await asyncio.to_thread(self._list_sync, page_token, limit)

    def _parse_offset(self, page_token: str | None) -> int:
        if not page_token:
            return 0
        try:
            offset = int(page_token)
        except ValueError:
            offset = -1
        if offset < 0:
            logger.warning("Invalid page token, defaulting to offset 0", extra={"page_token": page_token})
            return 0
        return offset

    def _list_sync(self, page_token: str | None, limit: int) -> Page:
        offset = self._parse_offset(page_token)
        if not self.root_dir.is_dir():
            logger.warning("Storage path does not exist", extra={"path": str(self.root_dir)})
            return Page(items=[], total=0)

        try:
            names = sorted(
                p.name
                for p in self.root_dir.iterdir()
                if p.is_file() and p.name.endswith(STORAGE_KEY_EXTENSION)
            )
        except OSError as e:
            raise StorageError("list", f"cannot read {self.root_dir}", e) from e

        total = len(names)
        start = min(offset, total)
        selected = names[start : start + limit]

        items: list[MindMap] = []
        for name in selected:
            path = self.root_dir / name
            try:
                items.append(MindMap.model_validate(json.loads(path.read_text(encoding="utf-8"))))
            except (OSError, UnicodeDecodeError, json.JSONDecodeError, PydanticValidationError) as e:
                logger.warning(
                    "Skipping unreadable mind map file",
                    extra={"path": str(path), "error_type": type(e).__name__, "error": str(e)},
                )

        next_offset = start + len(selected)
        next_token = str(next_offset) if next_offset < total else None
        return Page(items=items, next_page_token=next_token, total=total)
