"""Structural validation and translation of mind map documents.

The compiled validators below are built once at import time and only ever read afterwards, so
they are safe to share between concurrent rows and requests.
"""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from mindmapgen.errors import ValidationError
from mindmapgen.models import InputRow, MindMap, MindMapNode, RawDocument

_RAW_DOCUMENT = TypeAdapter(RawDocument)
_MIND_MAP = TypeAdapter(MindMap)
_INPUT_ROW = TypeAdapter(InputRow)


def validate_raw_document(data: Any) -> bool:
    """Check the shape `{root: {text, children?: [...]}}` at any depth. Never raises."""

    if not isinstance(data, Mapping) or not isinstance(data.get("root"), Mapping):
        return False
    try:
        _RAW_DOCUMENT.validate_python(data)
    except PydanticValidationError:
        return False
    return True


def translate(raw: Mapping[str, Any]) -> MindMapNode:
    """Turn a raw node into a persisted node, assigning fresh ids throughout.

    Children without a string `text` are dropped.
    """

    children = raw.get("children")
    translated: list[MindMapNode] | None = None
    if isinstance(children, list) and children:
        translated = [
            translate(child)
            for child in children
            if isinstance(child, Mapping) and isinstance(child.get("text"), str)
        ]
    return MindMapNode(id=str(uuid.uuid4()), text=raw["text"], children=translated)


def build_mind_map(subject: str, topic: str, raw_document: Mapping[str, Any]) -> MindMap:
    """Assemble the persisted document from a validated raw document."""

    return MindMap(
        id=str(uuid.uuid4()),
        subject=subject,
        topic=topic,
        root=translate(raw_document["root"]),
        created_at=datetime.now(UTC).isoformat().replace("+00:00", "Z"),
    )


def _as_document_payload(doc: Any) -> Any:
    if isinstance(doc, MindMap):
        return doc.to_dict()
    return doc


def _document_errors(doc: Any) -> list[dict[str, Any]]:
    try:
        _MIND_MAP.validate_python(_as_document_payload(doc))
    except PydanticValidationError as e:
        return e.errors(include_url=False, include_context=False)
    return []


def validate_document(doc: Any) -> bool:
    """Check the full persisted shape: id, subject, topic, root and createdAt."""

    return not _document_errors(doc)


def validate_document_or_raise(doc: Any) -> None:
    """Like `validate_document`, raising `ValidationError` with the diagnostics."""

    errors = _document_errors(doc)
    if errors:
        raise ValidationError("Invalid mind map structure", errors=errors)


def validate_input_row(row: Any) -> bool:
    """Strict public schema: non-empty `subject` and `topic` strings, nothing else."""

    try:
        _INPUT_ROW.validate_python(row)
    except PydanticValidationError:
        return False
    return True


def validate_input_row_or_raise(row: Any) -> InputRow:
    try:
        return _INPUT_ROW.validate_python(row)
    except PydanticValidationError as e:
        raise ValidationError(
            "Invalid CSV input row structure",
            errors=e.errors(include_url=False, include_context=False),
        ) from e


def is_usable_input_row(row: Any) -> bool:
    """Lenient check used by the batch: both fields present and non-blank."""

    if not isinstance(row, Mapping):
        return False
    subject, topic = row.get("subject"), row.get("topic")
    return (
        isinstance(subject, str)
        and isinstance(topic, str)
        and bool(subject.strip())
        and bool(topic.strip())
    )
