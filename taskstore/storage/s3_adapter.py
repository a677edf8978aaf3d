from __future__ import annotations

from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from taskstore.errors import BlobNotFoundError, StorageError, WriteConflictError
from taskstore.observability import get_json_logger

from .interface import Blob, BlobStore

_MISSING_CODES = {"NoSuchKey", "NotFound", "404"}
_CONFLICT_CODES = {"PreconditionFailed", "ConditionalRequestConflict", "412", "409"}


def _error_code(exc: ClientError) -> str:
    return str(exc.response.get("Error", {}).get("Code", ""))


class S3BlobStore(BlobStore):
    """S3-backed BlobStore holding the collection at `s3://{bucket}/{key}`.

    - get: GetObject, NoSuchKey maps to BlobNotFoundError
    - put: PutObject, with IfMatch / IfNoneMatch for conditional writes
    Works against S3-compatible endpoints (MinIO, LocalStack) via `endpoint_url`.
    """

    def __init__(
        self,
        bucket: str,
        key: str,
        *,
        region: str | None = None,
        endpoint_url: str | None = None,
        access_key_id: str | None = None,
        secret_access_key: str | None = None,
        client: Any | None = None,
    ) -> None:
        if not bucket:
            raise ValueError("bucket must be non-empty")
        if not key:
            raise ValueError("key must be non-empty")
        self._bucket = bucket
        self._key = key
        if client is not None:
            self._s3 = client
        else:
            # Explicit credentials are optional; boto3 falls back to its default chain
            session = boto3.Session(
                aws_access_key_id=access_key_id,
                aws_secret_access_key=secret_access_key,
                region_name=region,
            )
            self._s3 = session.client("s3", endpoint_url=endpoint_url)
        self._logger = get_json_logger("taskstore.storage")

    @property
    def location(self) -> str:
        return f"s3://{self._bucket}/{self._key}"

    def get_client(self) -> Any:
        return self._s3

    def get(self) -> Blob:
        try:
            resp = self._s3.get_object(Bucket=self._bucket, Key=self._key)
            data = resp["Body"].read()
        except ClientError as exc:
            if _error_code(exc) in _MISSING_CODES:
                raise BlobNotFoundError(f"{self.location} does not exist") from exc
            self._log_error("get", exc)
            raise StorageError(str(exc)) from exc
        except BotoCoreError as exc:
            self._log_error("get", exc)
            raise StorageError(str(exc)) from exc
        return Blob(data=data, etag=resp.get("ETag"))

    def put(
        self,
        data: bytes,
        *,
        content_type: str = "application/json",
        if_match: str | None = None,
        create_only: bool = False,
    ) -> str | None:
        params: dict[str, Any] = {
            "Bucket": self._bucket,
            "Key": self._key,
            "Body": data,
            "ContentType": content_type,
        }
        if if_match is not None:
            params["IfMatch"] = if_match
        elif create_only:
            params["IfNoneMatch"] = "*"
        try:
            resp = self._s3.put_object(**params)
        except ClientError as exc:
            if _error_code(exc) in _CONFLICT_CODES:
                raise WriteConflictError(f"{self.location} changed since it was read") from exc
            self._log_error("put", exc)
            raise StorageError(str(exc)) from exc
        except BotoCoreError as exc:
            self._log_error("put", exc)
            raise StorageError(str(exc)) from exc
        return resp.get("ETag")

    def _log_error(self, op: str, exc: Exception) -> None:
        self._logger.error(
            "storage error",
            extra={
                "event": "storage_error",
                "op": op,
                "attributes": {"location": self.location, "error": str(exc)[:200]},
            },
        )


__all__ = ["S3BlobStore"]
