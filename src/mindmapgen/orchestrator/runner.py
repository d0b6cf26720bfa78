"""Batch mind map generation.

Rows are read up front, split into sequential chunks, and the rows of each chunk are processed
concurrently behind a shared limiter. Every row yields exactly one outcome, stored at the row's
input index. After each chunk the cumulative report is checkpointed next to the output file;
the final report is written once all chunks are done.
"""

from __future__ import annotations

import json
import uuid
from datetime import UTC, datetime
from functools import partial
from pathlib import Path
from typing import Any, Iterator, Mapping, Protocol, Sequence

from mindmapgen.backends import MindMapStore, create_store
from mindmapgen.backends.protocol import DEFAULT_PAGE_LIMIT
from mindmapgen.config import Settings
from mindmapgen.core.concurrency import ConcurrencyLimiter, gather_limited, with_timeout
from mindmapgen.core.retry import FailedAttempt, RetryPolicy, run_with_retry
from mindmapgen.errors import AppError, ValidationError
from mindmapgen.llm.client import MindMapGenerator, OpenAIMindMapGenerator
from mindmapgen.logging import get_logger, run_context
from mindmapgen.models import MindMap, Outcome, Page
from mindmapgen.orchestrator.state import BatchState
from mindmapgen.tabular import CsvReportWriter, CsvRowReader
from mindmapgen.validation import is_usable_input_row, validate_document_or_raise

logger = get_logger(__name__)

UNKNOWN_TOPIC = "Unknown"


class RowReader(Protocol):
    async def aread(self, path: str | Path) -> list[Mapping[str, Any]]:
        ...


class ReportWriter(Protocol):
    async def awrite(self, path: str | Path, outcomes: Sequence[Outcome]) -> None:
        ...


class ReportDeliveryError(AppError):
    """The final report could not be written.

    The in-memory report is still accurate and travels with the error.
    """

    def __init__(self, output_path: str, report: list[Outcome], cause: BaseException) -> None:
        super().__init__(
            f"Failed to write final report to {output_path}: {cause}",
            500,
            True,
            cause,
            {"output_path": output_path, "row_count": len(report)},
        )
        self.report = report


def checkpoint_path(output_path: str | Path, processed: int) -> Path:
    """Where the partial report covering the first `processed` rows goes."""

    return Path(f"{output_path}.partial.{processed}")


def chunk_ranges(total: int, batch_size: int | None) -> Iterator[range]:
    """Split `range(total)` into consecutive chunks of at most `batch_size` indices.

    No `batch_size` means a single chunk. No rows means no chunks.
    """

    if batch_size is not None and batch_size < 1:
        raise ValueError("batch_size must be at least 1")
    size = batch_size or total
    for start in range(0, total, max(size, 1)):
        yield range(start, min(start + size, total))


def new_run_id() -> str:
    # Time-based for readability plus a short random suffix to avoid collisions.
    ts = datetime.now(UTC).strftime("%Y%m%dT%H%M%SZ")
    return f"{ts}_{uuid.uuid4().hex[:8]}"


def _error_message(error: BaseException) -> str:
    return str(error) or type(error).__name__


class MindMapService:
    """Drives batch generation and the read path over stored mind maps."""

    def __init__(
        self,
        *,
        reader: RowReader,
        writer: ReportWriter,
        generator: MindMapGenerator,
        store: MindMapStore,
        retry_policy: RetryPolicy | None = None,
        call_timeout_s: float | None = 30.0,
    ) -> None:
        """Initialize the service.

        Args:
            reader: Input row source.
            writer: Report sink, used for checkpoints and the final report.
            generator: Text-generation adapter.
            store: Mind map store.
            retry_policy: Retry policy around each generation call.
            call_timeout_s: Hard timeout for a single generation attempt. None disables it.
        """
        self._reader = reader
        self._writer = writer
        self._generator = generator
        self._store = store
        self._retry_policy = retry_policy or RetryPolicy()
        self._call_timeout_s = call_timeout_s

    async def init(self) -> None:
        """Initialize the service and its store."""

        logger.info("Initializing mind map service")
        await self._store.init()
        logger.info("Mind map service initialized")

    async def process_mind_maps(
        self,
        input_path: str | Path,
        output_path: str | Path,
        max_concurrent: int = 5,
        batch_size: int | None = None,
    ) -> list[Outcome]:
        """Generate a mind map for every row of `input_path` and write the report.

        Args:
            input_path: CSV file with `subject` and `topic` columns.
            output_path: Where the final report goes. Checkpoints are written beside it.
            max_concurrent: Maximum rows in flight at once.
            batch_size: Rows per checkpointed chunk. None processes everything as one chunk.

        Returns:
            One outcome per input row, in input order.

        Raises:
            FileSystemError: The input could not be read.
            ValidationError: The input is not valid CSV.
            ReportDeliveryError: The final report could not be written.
        """

        run_id = new_run_id()
        with run_context(run_id=run_id):
            logger.info(
                "Starting mind map generation",
                extra={
                    "input_path": str(input_path),
                    "output_path": str(output_path),
                    "max_concurrent": max_concurrent,
                    "batch_size": batch_size,
                },
            )

            rows = await self._reader.aread(input_path)
            logger.info("Loaded input rows", extra={"row_count": len(rows)})

            state = BatchState(run_id=run_id, row_count=len(rows))
            limiter = ConcurrencyLimiter(max_concurrent)

            for chunk in chunk_ranges(len(rows), batch_size):
                outcomes = await gather_limited(
                    [partial(self.process_row, rows[i]) for i in chunk],
                    limiter=limiter,
                )
                for index, outcome in zip(chunk, outcomes):
                    state.record(index, outcome)
                state.processed = chunk.stop
                state.chunk_index += 1
                logger.info("Chunk complete", extra=state.snapshot())
                await self._checkpoint(output_path, state)

            report = state.covered()
            try:
                await self._writer.awrite(output_path, report)
            except Exception as e:
                logger.error(
                    "Failed to write final report",
                    extra={"output_path": str(output_path), "error": _error_message(e)},
                )
                raise ReportDeliveryError(str(output_path), report, e) from e

            logger.info("Mind map generation complete", extra=state.snapshot())
            return report

    async def _checkpoint(self, output_path: str | Path, state: BatchState) -> None:
        """Write the cumulative report so far. Failures are logged, never raised."""

        path = checkpoint_path(output_path, state.processed)
        try:
            await self._writer.awrite(path, state.covered())
        except Exception as e:
            logger.warning(
                "Checkpoint write failed; continuing",
                extra={"path": str(path), "error_type": type(e).__name__, "error": _error_message(e)},
            )
            return
        logger.info("Checkpoint written", extra={"path": str(path), "processed": state.processed})

    async def process_row(self, row: Mapping[str, Any]) -> Outcome:
        """Turn one input row into exactly one outcome. Never raises for row-level failures."""

        raw_topic = row.get("topic") if isinstance(row, Mapping) else None
        topic = raw_topic if isinstance(raw_topic, str) and raw_topic else UNKNOWN_TOPIC

        with run_context(topic=topic):
            if not is_usable_input_row(row):
                logger.warning("Invalid input row", extra={"row": dict(row) if isinstance(row, Mapping) else row})
                return Outcome.failure(topic, "Invalid CSV input row structure")

            subject = row["subject"].strip()
            clean_topic = row["topic"].strip()

            try:
                mind_map = await self._generate(subject, clean_topic)
            except Exception as e:
                logger.error(
                    "Failed to generate mind map",
                    extra={"subject": subject, "error_type": type(e).__name__, "error": _error_message(e)},
                )
                return Outcome.failure(topic, _error_message(e))

            try:
                validate_document_or_raise(mind_map)
            except ValidationError as e:
                # The adapter already validated; reaching this is a bug, not bad input.
                logger.error(
                    "Generated mind map failed final validation",
                    extra={"subject": subject, "internal": True, "errors": e.errors},
                )
                return Outcome.failure(
                    topic, f"Invalid mind map structure: {json.dumps(e.errors, default=str)}"
                )

            try:
                key = await self._store.store(mind_map)
            except Exception as e:
                logger.error(
                    "Failed to store mind map",
                    extra={"mind_map_id": mind_map.id, "error_type": type(e).__name__, "error": _error_message(e)},
                )
                return Outcome.failure(topic, _error_message(e))

            logger.info("Mind map stored", extra={"key": key})
            return Outcome.success(topic)

    async def _generate(self, subject: str, topic: str) -> MindMap:
        def on_failed_attempt(attempt: FailedAttempt) -> None:
            logger.warning(
                "Generation attempt failed",
                extra={
                    "attempt": attempt.attempt_number,
                    "retries_left": attempt.retries_left,
                    "error": attempt.message,
                },
            )

        async def attempt() -> MindMap:
            return await with_timeout(
                self._generator.generate(subject, topic),
                self._call_timeout_s,
                operation="generate mind map",
            )

        return await run_with_retry(
            attempt,
            policy=self._retry_policy,
            on_failed_attempt=on_failed_attempt,
        )

    async def get_all_mind_maps(
        self,
        page_token: str | None = None,
        limit: int = DEFAULT_PAGE_LIMIT,
    ) -> Page:
        """Fetch one page of stored mind maps."""

        logger.info("Fetching mind maps", extra={"limit": limit, "page_token": page_token})
        page = await self._store.list(page_token, limit)
        logger.info(
            "Retrieved mind maps",
            extra={"count": len(page.items), "total": page.total, "has_more": page.next_page_token is not None},
        )
        return page


def create_service(
    settings: Settings,
    *,
    generator: MindMapGenerator | None = None,
    store: MindMapStore | None = None,
) -> MindMapService:
    """Wire a service from settings. Collaborators can be swapped in, e.g. for tests."""

    return MindMapService(
        reader=CsvRowReader(),
        writer=CsvReportWriter(),
        generator=generator or OpenAIMindMapGenerator(settings),
        store=store or create_store(settings),
        retry_policy=settings.retry_policy(),
        call_timeout_s=settings.call_timeout_s,
    )
