"""Mind map document models."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator


class RawNode(BaseModel):
    """A node as produced by the text-generation model. Untrusted."""

    text: str
    # May be omitted, but an explicit null is rejected.
    children: list[RawNode] = Field(default_factory=list)


class RawDocument(BaseModel):
    """Top-level shape the model is asked to produce."""

    root: RawNode


class MindMapNode(BaseModel):
    """A node of a persisted mind map."""

    model_config = ConfigDict(frozen=True)

    id: str
    text: str
    children: list[MindMapNode] | None = None


class MindMap(BaseModel):
    """A persisted mind map.

    Serialized with `createdAt` so documents on disk, in the bucket and over HTTP share one
    field naming.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    subject: str
    topic: str
    root: MindMapNode
    created_at: str = Field(alias="createdAt")

    @field_validator("created_at")
    @classmethod
    def _iso_timestamp(cls, value: str) -> str:
        datetime.fromisoformat(value)
        return value

    def to_json(self) -> str:
        """Pretty JSON as stored."""

        return self.model_dump_json(by_alias=True, exclude_none=True, indent=2)

    def to_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
