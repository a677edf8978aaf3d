from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Literal, cast

ConcurrencyMode = Literal["none", "lock", "optimistic"]
Backend = Literal["s3", "memory"]

_CONCURRENCY_MODES = ("none", "lock", "optimistic")
_BACKENDS = ("s3", "memory")


@dataclass(slots=True)
class TaskStoreConfig:
    host: str
    port: int
    backend: Backend
    bucket: str | None
    key: str
    region: str | None
    endpoint_url: str | None
    access_key_id: str | None
    secret_access_key: str | None = field(repr=False)
    concurrency: ConcurrencyMode
    max_retries: int
    cors_origins: list[str]


def _int(raw: str | None, default: int) -> int:
    raw = (raw or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _choice(raw: str | None, choices: tuple[str, ...], default: str) -> str:
    value = (raw or "").strip().lower()
    return value if value in choices else default


def _csv(raw: str | None, default: list[str]) -> list[str]:
    items = [p.strip() for p in (raw or "").split(",") if p.strip()]
    return items or default


def _opt(raw: str | None) -> str | None:
    value = (raw or "").strip()
    return value or None


def load_config(env: dict[str, str] | None = None) -> TaskStoreConfig:
    e: dict[str, Any] = dict(os.environ)
    if env:
        e.update(env)
    port = _int(e.get("PORT"), 5000)
    if not 0 < port < 65536:
        port = 5000
    return TaskStoreConfig(
        host=_opt(e.get("HOST")) or "0.0.0.0",
        port=port,
        backend=cast(Backend, _choice(e.get("TASKSTORE_BACKEND"), _BACKENDS, "s3")),
        bucket=_opt(e.get("S3_BUCKET_NAME")),
        key=_opt(e.get("TASK_FILE_NAME")) or "tasks.json",
        region=_opt(e.get("AWS_REGION")),
        endpoint_url=_opt(e.get("S3_ENDPOINT_URL")),
        access_key_id=_opt(e.get("AWS_ACCESS_KEY_ID")),
        secret_access_key=_opt(e.get("AWS_SECRET_ACCESS_KEY")),
        concurrency=cast(
            ConcurrencyMode, _choice(e.get("TASKSTORE_CONCURRENCY"), _CONCURRENCY_MODES, "none")
        ),
        max_retries=max(1, _int(e.get("TASKSTORE_MAX_RETRIES"), 5)),
        cors_origins=_csv(e.get("CORS_ALLOW_ORIGINS"), ["*"]),
    )


__all__ = ["Backend", "ConcurrencyMode", "TaskStoreConfig", "load_config"]
