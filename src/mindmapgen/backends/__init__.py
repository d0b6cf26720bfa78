"""Mind map stores.

Two variants share the `MindMapStore` interface; `create_store` picks one from settings.
"""

from __future__ import annotations

from mindmapgen.backends.cloud_storage import GCSMindMapStore
from mindmapgen.backends.filesystem import LocalMindMapStore
from mindmapgen.backends.protocol import MindMapStore, storage_key, storage_key_for
from mindmapgen.config import Settings
from mindmapgen.errors import ConfigurationError


def create_store(settings: Settings) -> MindMapStore:
    """Factory to create the configured mind map store."""

    if settings.storage_backend == "local":
        return LocalMindMapStore(settings.local_storage_path)

    if not settings.gcp_project_id or not settings.gcp_bucket_name:
        raise ConfigurationError(
            "GCP configuration missing: MINDMAPGEN_GCP_PROJECT_ID and "
            "MINDMAPGEN_GCP_BUCKET_NAME are required when storage_backend=gcs"
        )
    return GCSMindMapStore(
        bucket_name=settings.gcp_bucket_name,
        project=settings.gcp_project_id,
        credentials_path=settings.gcp_key_filename,
        prefix=settings.gcp_prefix,
    )


__all__ = [
    "GCSMindMapStore",
    "LocalMindMapStore",
    "MindMapStore",
    "create_store",
    "storage_key",
    "storage_key_for",
]
