"""Tests for batch orchestration."""

from __future__ import annotations

import asyncio

import pytest

from conftest import (
    FakeGenerator,
    ListReader,
    MemoryStore,
    RecordingWriter,
    make_service,
    random_delay,
)
from mindmapgen.core.retry import RetryPolicy
from mindmapgen.errors import ExternalAPIError, FileSystemError, ValidationError
from mindmapgen.models import Outcome
from mindmapgen.orchestrator.runner import ReportDeliveryError, checkpoint_path, chunk_ranges


def test_single_row_success_stores_once() -> None:
    """A good row yields one Success outcome and exactly one stored document."""
    store = MemoryStore()
    writer = RecordingWriter()
    service = make_service([{"subject": "Math", "topic": "Algebra"}], store=store, writer=writer)

    report = asyncio.run(service.process_mind_maps("in.csv", "out.csv"))

    assert report == [Outcome.success("Algebra")]
    assert store.store_calls == 1
    (stored,) = store.documents.values()
    assert stored.subject == "Math"
    assert stored.topic == "Algebra"
    assert writer.writes[-1] == ("out.csv", report)


def test_generation_failure_without_retries() -> None:
    """With retries=0 an upstream error fails the row after one call and nothing is stored."""
    generator = FakeGenerator({"Algebra": [ExternalAPIError("OpenAI", "Service unavailable")]})
    store = MemoryStore()
    service = make_service(
        [{"subject": "Math", "topic": "Algebra"}],
        generator=generator,
        store=store,
        retry_policy=RetryPolicy(retries=0, min_timeout=0.0, max_timeout=0.0),
    )

    report = asyncio.run(service.process_mind_maps("in.csv", "out.csv"))

    assert len(report) == 1
    assert report[0].status == "Failure"
    assert "Service unavailable" in (report[0].error or "")
    assert len(generator.calls) == 1
    assert store.store_calls == 0


def test_transient_failures_are_retried_until_success() -> None:
    """Two upstream failures followed by success cost three calls and end in Success."""
    generator = FakeGenerator(
        {"Algebra": [ExternalAPIError("OpenAI", "boom"), ExternalAPIError("OpenAI", "boom")]}
    )
    service = make_service([{"subject": "Math", "topic": "Algebra"}], generator=generator)

    report = asyncio.run(service.process_mind_maps("in.csv", "out.csv"))

    assert report[0].ok
    assert len(generator.calls) == 3


def test_validation_failure_is_not_retried() -> None:
    """A malformed model answer fails the row on the first attempt."""
    generator = FakeGenerator({"Algebra": [ValidationError("Invalid mind map structure")]})
    store = MemoryStore()
    service = make_service([{"subject": "Math", "topic": "Algebra"}], generator=generator, store=store)

    report = asyncio.run(service.process_mind_maps("in.csv", "out.csv"))

    assert report[0].status == "Failure"
    assert report[0].error == "Invalid mind map structure"
    assert len(generator.calls) == 1
    assert store.store_calls == 0


def test_timeout_counts_as_transient_failure() -> None:
    """A call exceeding the hard timeout is retried and finally reported as a timeout."""
    generator = FakeGenerator(delay=lambda _topic: 0.2)
    service = make_service(
        [{"subject": "Math", "topic": "Algebra"}],
        generator=generator,
        retry_policy=RetryPolicy(retries=1, min_timeout=0.0, max_timeout=0.0),
        call_timeout_s=0.01,
    )

    report = asyncio.run(service.process_mind_maps("in.csv", "out.csv"))

    assert report[0].status == "Failure"
    assert "timed out" in (report[0].error or "")
    assert len(generator.calls) == 2


def test_invalid_rows_fail_without_calling_the_model() -> None:
    """Rows with a blank or missing field fail in place; the topic falls back to Unknown."""
    generator = FakeGenerator()
    rows = [
        {"subject": "Math", "topic": None},
        {"subject": "  ", "topic": "Geometry"},
        {"subject": "Physics", "topic": "Optics"},
    ]
    service = make_service(rows, generator=generator)

    report = asyncio.run(service.process_mind_maps("in.csv", "out.csv"))

    assert [o.topic for o in report] == ["Unknown", "Geometry", "Optics"]
    assert [o.status for o in report] == ["Failure", "Failure", "Success"]
    assert report[0].error == "Invalid CSV input row structure"
    assert generator.calls == [("Physics", "Optics")]


def test_store_failure_fails_only_that_row() -> None:
    """A storage error becomes a Failure outcome and the batch carries on."""
    store = MemoryStore(fail_for={"Algebra"})
    rows = [{"subject": "Math", "topic": "Algebra"}, {"subject": "Math", "topic": "Calculus"}]
    service = make_service(rows, store=store)

    report = asyncio.run(service.process_mind_maps("in.csv", "out.csv"))

    assert [o.status for o in report] == ["Failure", "Success"]
    assert report[0].error == "disk full"
    assert len(store.documents) == 1


def test_report_order_matches_input_under_random_latency() -> None:
    """Outcomes line up with input rows whatever order the calls complete in."""
    topics = [f"Topic {i}" for i in range(20)]
    generator = FakeGenerator(
        {"Topic 3": [ValidationError("bad")], "Topic 11": [ValidationError("bad")]},
        delay=random_delay(),
    )
    service = make_service([{"subject": "S", "topic": t} for t in topics], generator=generator)

    report = asyncio.run(service.process_mind_maps("in.csv", "out.csv", max_concurrent=4, batch_size=6))

    assert [o.topic for o in report] == topics
    assert [i for i, o in enumerate(report) if not o.ok] == [3, 11]


def test_concurrency_is_bounded() -> None:
    """No more than max_concurrent generation calls are ever in flight."""
    generator = FakeGenerator(delay=lambda _topic: 0.005)
    rows = [{"subject": "S", "topic": f"T{i}"} for i in range(12)]
    service = make_service(rows, generator=generator)

    asyncio.run(service.process_mind_maps("in.csv", "out.csv", max_concurrent=3))

    assert 1 <= generator.max_in_flight <= 3
    assert len(generator.calls) == 12


def test_checkpoints_per_chunk_then_final_report() -> None:
    """batch_size=1 over two rows writes two cumulative checkpoints and one final report."""
    writer = RecordingWriter()
    rows = [{"subject": "Math", "topic": "Algebra"}, {"subject": "Math", "topic": "Calculus"}]
    service = make_service(rows, writer=writer)

    report = asyncio.run(service.process_mind_maps("in.csv", "out.csv", batch_size=1))

    paths = [path for path, _ in writer.writes]
    assert paths == ["out.csv.partial.1", "out.csv.partial.2", "out.csv"]
    assert len(writer.writes[0][1]) == 1
    assert len(writer.writes[1][1]) == 2
    assert writer.writes[1][1] == report
    assert writer.writes[2][1] == report


def test_without_batch_size_one_checkpoint_covers_everything() -> None:
    """A single implicit chunk produces a single checkpoint named after the row count."""
    writer = RecordingWriter()
    rows = [{"subject": "S", "topic": f"T{i}"} for i in range(3)]
    service = make_service(rows, writer=writer)

    asyncio.run(service.process_mind_maps("in.csv", "out.csv"))

    assert [path for path, _ in writer.writes] == ["out.csv.partial.3", "out.csv"]


def test_empty_input_writes_only_the_final_report() -> None:
    """No rows means no checkpoint and a single, empty final report."""
    writer = RecordingWriter()
    service = make_service([], writer=writer)

    report = asyncio.run(service.process_mind_maps("in.csv", "out.csv", batch_size=5))

    assert report == []
    assert writer.writes == [("out.csv", [])]


def test_checkpoint_failure_is_swallowed() -> None:
    """A failing checkpoint write does not stop the batch or the final report."""
    writer = RecordingWriter(fail_paths=lambda p: ".partial." in p)
    rows = [{"subject": "Math", "topic": "Algebra"}, {"subject": "Math", "topic": "Calculus"}]
    service = make_service(rows, writer=writer)

    report = asyncio.run(service.process_mind_maps("in.csv", "out.csv", batch_size=1))

    assert [o.status for o in report] == ["Success", "Success"]
    assert [path for path, _ in writer.writes] == ["out.csv"]


def test_final_report_failure_raises_with_report_attached() -> None:
    """Failing to write the final report surfaces as ReportDeliveryError carrying the report."""
    writer = RecordingWriter(fail_paths=lambda p: p == "out.csv")
    service = make_service([{"subject": "Math", "topic": "Algebra"}], writer=writer)

    with pytest.raises(ReportDeliveryError) as exc_info:
        asyncio.run(service.process_mind_maps("in.csv", "out.csv"))

    assert exc_info.value.report == [Outcome.success("Algebra")]
    assert exc_info.value.status_code == 500


def test_unreadable_input_propagates() -> None:
    """Input errors abort the batch before any row is processed."""
    generator = FakeGenerator()
    writer = RecordingWriter()
    service = make_service(
        [],
        generator=generator,
        writer=writer,
        reader=ListReader([], error=FileSystemError("read", "missing.csv")),
    )

    with pytest.raises(FileSystemError):
        asyncio.run(service.process_mind_maps("missing.csv", "out.csv"))

    assert generator.calls == []
    assert writer.writes == []


def test_list_delegates_to_store() -> None:
    """get_all_mind_maps returns the store's page untouched."""
    store = MemoryStore()
    service = make_service([{"subject": "S", "topic": f"T{i}"} for i in range(3)], store=store)
    asyncio.run(service.process_mind_maps("in.csv", "out.csv"))

    first = asyncio.run(service.get_all_mind_maps(limit=2))
    second = asyncio.run(service.get_all_mind_maps(first.next_page_token, 2))

    assert len(first.items) == 2
    assert first.next_page_token == "2"
    assert len(second.items) == 1
    assert second.next_page_token is None


def test_chunk_ranges() -> None:
    """Chunks are consecutive, bounded by batch_size, and cover every row once."""
    assert [list(r) for r in chunk_ranges(5, 2)] == [[0, 1], [2, 3], [4]]
    assert [list(r) for r in chunk_ranges(3, None)] == [[0, 1, 2]]
    assert list(chunk_ranges(0, 4)) == []
    with pytest.raises(ValueError):
        list(chunk_ranges(3, 0))


def test_checkpoint_path() -> None:
    """Checkpoints sit next to the output, suffixed with the processed count."""
    assert str(checkpoint_path("/tmp/out.csv", 7)) == "/tmp/out.csv.partial.7"
