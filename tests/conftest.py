"""Shared test doubles."""

from __future__ import annotations

import asyncio
import random
import sys
from pathlib import Path
from typing import Any, Callable, Sequence

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from mindmapgen.backends.protocol import MindMapStore, storage_key_for
from mindmapgen.core.retry import RetryPolicy
from mindmapgen.models import MindMap, Outcome, Page
from mindmapgen.orchestrator.runner import MindMapService
from mindmapgen.validation import build_mind_map

SIMPLE_DOCUMENT = {"root": {"text": "Algebra", "children": [{"text": "Equations"}]}}


class FakeGenerator:
    """Generator whose behaviour per topic is scripted.

    `script[topic]` is a list consumed one entry per call; an exception entry is raised, anything
    else is treated as a raw document. Topics without a script succeed with a small document.
    """

    def __init__(
        self,
        script: dict[str, list[Any]] | None = None,
        delay: Callable[[str], float] | None = None,
    ) -> None:
        self.script = script or {}
        self.delay = delay
        self.calls: list[tuple[str, str]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def generate(self, subject: str, topic: str) -> MindMap:
        self.calls.append((subject, topic))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay is not None:
                await asyncio.sleep(self.delay(topic))
            else:
                await asyncio.sleep(0)
            steps = self.script.get(topic)
            step: Any = steps.pop(0) if steps else SIMPLE_DOCUMENT
            if isinstance(step, BaseException):
                raise step
            return build_mind_map(subject, topic, step)
        finally:
            self.in_flight -= 1


class MemoryStore(MindMapStore):
    """In-memory store keeping every stored document in insertion order."""

    def __init__(self, fail_for: set[str] | None = None) -> None:
        self.documents: dict[str, MindMap] = {}
        self.store_calls = 0
        self.init_calls = 0
        self.fail_for = fail_for or set()

    async def init(self) -> None:
        self.init_calls += 1

    async def store(self, mind_map: MindMap) -> str:
        self.store_calls += 1
        if mind_map.topic in self.fail_for:
            raise RuntimeError("disk full")
        key = storage_key_for(mind_map)
        self.documents[key] = mind_map
        return key

    async def list(self, page_token: str | None = None, limit: int = 100) -> Page:
        items = list(self.documents.values())
        start = int(page_token) if page_token else 0
        end = start + limit
        return Page(
            items=items[start:end],
            next_page_token=str(end) if end < len(items) else None,
            total=len(items),
        )


class ListReader:
    """Row reader over an in-memory list."""

    def __init__(self, rows: list[dict[str, Any]], error: BaseException | None = None) -> None:
        self.rows = rows
        self.error = error

    async def aread(self, path: str | Path) -> list[dict[str, Any]]:
        if self.error is not None:
            raise self.error
        return [dict(r) for r in self.rows]


class RecordingWriter:
    """Report writer that records every write instead of touching disk."""

    def __init__(self, fail_paths: Callable[[str], bool] | None = None) -> None:
        self.writes: list[tuple[str, list[Outcome]]] = []
        self.fail_paths = fail_paths

    async def awrite(self, path: str | Path, outcomes: Sequence[Outcome]) -> None:
        if self.fail_paths is not None and self.fail_paths(str(path)):
            raise OSError(f"cannot write {path}")
        self.writes.append((str(path), list(outcomes)))


NO_WAIT = RetryPolicy(retries=3, min_timeout=0.0, max_timeout=0.0)


def make_service(
    rows: list[dict[str, Any]],
    *,
    generator: FakeGenerator | None = None,
    store: MemoryStore | None = None,
    writer: RecordingWriter | None = None,
    reader: ListReader | None = None,
    retry_policy: RetryPolicy = NO_WAIT,
    call_timeout_s: float | None = 5.0,
) -> MindMapService:
    return MindMapService(
        reader=reader or ListReader(rows),
        writer=writer or RecordingWriter(),
        generator=generator or FakeGenerator(),
        store=store or MemoryStore(),
        retry_policy=retry_policy,
        call_timeout_s=call_timeout_s,
    )


def random_delay(seed: int = 7) -> Callable[[str], float]:
    rng = random.Random(seed)
    return lambda _topic: rng.uniform(0.0, 0.02)


@pytest.fixture
def sample_mind_map() -> MindMap:
    return build_mind_map("Math", "Linear Algebra", SIMPLE_DOCUMENT)
