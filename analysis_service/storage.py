"""Read-only boundary to the object store holding uploaded artifacts.

Ownership is checked by the HTTP layer before anything reaches here; this
module only fetches bytes. Uploads, listing and deletes live elsewhere.
"""

from __future__ import annotations

import asyncio
from typing import Protocol

from google.api_core import exceptions as gcs_exceptions
from google.cloud import storage

from analysis_service.errors import ArtifactNotFound
from analysis_service.extraction.types import ArtifactRef


class ArtifactStorage(Protocol):
    async def get_bytes(self, ref: ArtifactRef) -> bytes: ...


def download_bytes(client: storage.Client, bucket: str, name: str) -> bytes:
    b = client.bucket(bucket)
    blob = b.blob(name)
    return blob.download_as_bytes()


class GcsArtifactStorage:
    def __init__(self, *, client: storage.Client, bucket: str) -> None:
        if not bucket:
            raise ValueError("ANALYSIS_STORAGE_BUCKET is required")
        self._client = client
        self._bucket = bucket

    async def get_bytes(self, ref: ArtifactRef) -> bytes:
        # Blocking I/O -> run in thread to not block event loop
        try:
            return await asyncio.to_thread(download_bytes, self._client, self._bucket, ref.key)
        except gcs_exceptions.NotFound as e:
            raise ArtifactNotFound(ref.key) from e
