"""Paginated listing result."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from mindmapgen.models.mindmap import MindMap


class Page(BaseModel):
    """One page of stored mind maps.

    `next_page_token` is opaque: a numeric offset for local storage, the provider's
    continuation token for cloud storage. It is absent on the last page.
    """

    model_config = ConfigDict(populate_by_name=True)

    items: list[MindMap] = Field(default_factory=list, alias="mindMaps")
    next_page_token: str | None = Field(default=None, alias="nextPageToken")
    total: int | None = None
