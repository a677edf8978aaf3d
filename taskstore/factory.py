from __future__ import annotations

from taskstore.config import TaskStoreConfig
from taskstore.observability import get_json_logger
from taskstore.service import TaskService
from taskstore.storage.interface import BlobStore
from taskstore.storage.memory import MemoryBlobStore
from taskstore.storage.s3_adapter import S3BlobStore


def build_store(cfg: TaskStoreConfig) -> BlobStore:
    if cfg.backend == "memory":
        return MemoryBlobStore()
    if not cfg.bucket:
        raise ValueError("S3_BUCKET_NAME is required when TASKSTORE_BACKEND=s3")
    return S3BlobStore(
        cfg.bucket,
        cfg.key,
        region=cfg.region,
        endpoint_url=cfg.endpoint_url,
        access_key_id=cfg.access_key_id,
        secret_access_key=cfg.secret_access_key,
    )


def build_service(cfg: TaskStoreConfig, store: BlobStore | None = None) -> TaskService:
    """Construct the storage client once and inject it into the service."""
    service = TaskService(
        store if store is not None else build_store(cfg),
        concurrency=cfg.concurrency,
        max_retries=cfg.max_retries,
    )
    get_json_logger("taskstore").info(
        "service configured",
        extra={
            "event": "service_configured",
            "attributes": {
                "backend": cfg.backend,
                "bucket": cfg.bucket,
                "key": cfg.key,
                "region": cfg.region,
                "endpoint_url": cfg.endpoint_url,
                "concurrency": cfg.concurrency,
            },
        },
    )
    return service


__all__ = ["build_service", "build_store"]
