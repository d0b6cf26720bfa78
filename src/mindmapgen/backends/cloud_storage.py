"""Google Cloud Storage mind map store."""

from __future__ import annotations

import asyncio
import json
from typing import Any

from google.cloud import storage
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


class GCSMindMapStore(MindMapStore):
    """Mind maps as JSON blobs in a GCS bucket.

    Page tokens are GCS continuation tokens, passed through untouched.
    """

    def __init__(
        self,
        bucket_name: str,
        project: str | None = None,
        credentials_path: str | None = None,
        prefix: str = "",
        client: Any | None = None,
    ):
        """Initialize GCS store.

        Args:
            bucket_name: Bucket name.
            project: GCP project id.
            credentials_path: Service account JSON file. Default credentials when omitted.
            prefix: Blob name prefix.
            client: Pre-built `storage.Client`, mostly for tests.
        """
        if client is None:
            if credentials_path:
                client = storage.Client.from_service_account_json(credentials_path, project=project)
            else:
                client = storage.Client(project=project)

        self.client = client
        self.bucket_name = bucket_name
        self.prefix = prefix.strip("/")
        self.bucket = self.client.bucket(bucket_name)

    def _get_blob_name(self, key: str) -> str:
        """Get blob name for a storage key."""
        if self.prefix:
            return f"{self.prefix}/{key}"
        return key

    async def init(self) -> None:
        await asyncio.to_thread(self._init_sync)

    def _init_sync(self) -> None:
        try:
            if not self.bucket.exists():
                self.client.create_bucket(self.bucket_name)
                logger.info("Bucket created", extra={"bucket": self.bucket_name})
        except Exception as e:
            logger.exception("Failed to initialize GCS bucket", extra={"bucket": self.bucket_name})
            raise StorageError(
                "init", "Failed to initialize GCS bucket", e, {"bucket": self.bucket_name}
            ) from e

    async def store(self, mind_map: MindMap) -> str:
        key = storage_key_for(mind_map)
        await asyncio.to_thread(self._upload_sync, key, mind_map)
        return key

    def _upload_sync(self, key: str, mind_map: MindMap) -> None:
        try:
            blob = self.bucket.blob(self._get_blob_name(key))
            blob.metadata = {"subject": mind_map.subject, "topic": mind_map.topic}
            blob.upload_from_string(mind_map.to_json(), content_type="application/json")
        except Exception as e:
            logger.exception("Failed to store mind map in GCS", extra={"key": key})
            raise StorageError(
                "store",
                "Failed to store mind map in GCS",
                e,
                {"bucket": self.bucket_name, "mind_map_id": mind_map.id},
            ) from e

    async def list(self, page_token: str | None = None, limit: int = DEFAULT_PAGE_LIMIT) -> Page:
        check_page_limit(limit)
        logger.info(
            "Fetching mind maps from GCS",
            extra={"limit": limit, "page_token": "provided" if page_token else "first page"},
        )
        try:
            blobs, next_token = await asyncio.to_thread(self._list_blobs_sync, page_token, limit)
        except Exception as e:
            logger.exception("Failed to list GCS objects", extra={"bucket": self.bucket_name})
            raise StorageError(
                "list",
                "Failed to retrieve mind maps from GCS",
                e,
                {"bucket": self.bucket_name, "page_token": page_token, "limit": limit},
            ) from e

        json_blobs = [b for b in blobs if b.name.endswith(STORAGE_KEY_EXTENSION)]
        downloaded = await asyncio.gather(*(asyncio.to_thread(self._download_sync, b) for b in json_blobs))
        items = [m for m in downloaded if m is not None]
        return Page(items=items, next_page_token=next_token or None)

    def _list_blobs_sync(self, page_token: str | None, limit: int) -> tuple[list[Any], str | None]:
        iterator = self.client.list_blobs(
            self.bucket_name,
            prefix=self.prefix + "/" if self.prefix else None,
            max_results=limit,
            page_token=page_token,
        )
        page = next(iterator.pages, None)
        blobs = list(page) if page is not None else []
        return blobs, iterator.next_page_token

    def _download_sync(self, blob: Any) -> MindMap | None:
        try:
            return MindMap.model_validate(json.loads(blob.download_as_text()))
        except (json.JSONDecodeError, PydanticValidationError) as e:
            logger.warning(
                "Skipping invalid mind map blob",
                extra={"blob": blob.name, "error_type": type(e).__name__, "error": str(e)},
            )
        except Exception as e:
            logger.warning(
                "Skipping mind map blob that failed to download",
                extra={"blob": blob.name, "error_type": type(e).__name__, "error": str(e)},
            )
        return None
