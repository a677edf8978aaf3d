from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


@dataclass(slots=True)
class Blob:
    data: bytes
    etag: str | None = None


class BlobStore(Protocol):
    """Single-object blob store holding the task collection.

    Keep this tiny so S3 and in-process stores stay interchangeable.
    """

    def get(self) -> Blob:
        """Return the current object. Raises BlobNotFoundError when it does not exist."""

    def put(
        self,
        data: bytes,
        *,
        content_type: str = "application/json",
        if_match: str | None = None,
        create_only: bool = False,
    ) -> str | None:
        """Overwrite the object and return its new ETag when known.

        `if_match` makes the write conditional on the current ETag and
        `create_only` on the object not existing yet. A failed condition
        raises WriteConflictError.
        """


__all__ = ["Blob", "BlobStore"]
