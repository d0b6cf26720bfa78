"""Batch input rows and per-row outcomes."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class InputRow(BaseModel):
    """One generation request, as accepted by the public schema."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    subject: str = Field(min_length=1)
    topic: str = Field(min_length=1)


class Status(str, Enum):
    """Per-row result."""

    SUCCESS = "Success"
    FAILURE = "Failure"


class Outcome(BaseModel):
    """Result of processing one input row."""

    model_config = ConfigDict(use_enum_values=True)

    topic: str
    status: Status
    error: str | None = None

    @classmethod
    def success(cls, topic: str) -> Outcome:
        return cls(topic=topic, status=Status.SUCCESS)

    @classmethod
    def failure(cls, topic: str, error: str) -> Outcome:
        return cls(topic=topic, status=Status.FAILURE, error=error)

    @property
    def ok(self) -> bool:
        return self.status == Status.SUCCESS.value
