from __future__ import annotations

import threading
import uuid

from taskstore.errors import BlobNotFoundError, WriteConflictError

from .interface import Blob, BlobStore


class MemoryBlobStore(BlobStore):
    """Thread-safe in-process BlobStore for local runs and tests.

    Honours the same conditional-write contract as S3: every put produces a
    fresh ETag, `if_match` must equal the current one and `create_only`
    requires that nothing is stored yet.
    """

    def __init__(self, data: bytes | None = None) -> None:
        self._lock = threading.RLock()
        self._data: bytes | None = None
        self._etag: str | None = None
        self.puts = 0
        if data is not None:
            self._store(data)

    def _store(self, data: bytes) -> str:
        self._data = bytes(data)
        self._etag = f'"{uuid.uuid4().hex}"'
        return self._etag

    @property
    def data(self) -> bytes | None:
        with self._lock:
            return self._data

    def get(self) -> Blob:
        with self._lock:
            if self._data is None:
                raise BlobNotFoundError("memory://tasks does not exist")
            return Blob(data=self._data, etag=self._etag)

    def put(
        self,
        data: bytes,
        *,
        content_type: str = "application/json",
        if_match: str | None = None,
        create_only: bool = False,
    ) -> str | None:
        with self._lock:
            if if_match is not None and if_match != self._etag:
                raise WriteConflictError("memory://tasks changed since it was read")
            if create_only and self._data is not None:
                raise WriteConflictError("memory://tasks already exists")
            self.puts += 1
            return self._store(data)


__all__ = ["MemoryBlobStore"]
