from __future__ import annotations

import pytest

from taskstore.config import load_config
from taskstore.factory import build_service, build_store
from taskstore.storage.memory import MemoryBlobStore
from taskstore.storage.s3_adapter import S3BlobStore

_ENV_KEYS = (
    "PORT",
    "HOST",
    "TASKSTORE_BACKEND",
    "S3_BUCKET_NAME",
    "TASK_FILE_NAME",
    "AWS_REGION",
    "S3_ENDPOINT_URL",
    "AWS_ACCESS_KEY_ID",
    "AWS_SECRET_ACCESS_KEY",
    "TASKSTORE_CONCURRENCY",
    "TASKSTORE_MAX_RETRIES",
    "CORS_ALLOW_ORIGINS",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def test_defaults() -> None:
    cfg = load_config()
    assert cfg.host == "0.0.0.0"
    assert cfg.port == 5000
    assert cfg.backend == "s3"
    assert cfg.bucket is None
    assert cfg.key == "tasks.json"
    assert cfg.concurrency == "none"
    assert cfg.max_retries == 5
    assert cfg.cors_origins == ["*"]


def test_reads_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PORT", "8080")
    monkeypatch.setenv("S3_BUCKET_NAME", "my-bucket")
    monkeypatch.setenv("TASK_FILE_NAME", "team/tasks.json")
    monkeypatch.setenv("AWS_REGION", "eu-west-1")
    monkeypatch.setenv("TASKSTORE_CONCURRENCY", "Optimistic")
    monkeypatch.setenv("CORS_ALLOW_ORIGINS", "http://a.test, http://b.test")

    cfg = load_config()

    assert cfg.port == 8080
    assert cfg.bucket == "my-bucket"
    assert cfg.key == "team/tasks.json"
    assert cfg.region == "eu-west-1"
    assert cfg.concurrency == "optimistic"
    assert cfg.cors_origins == ["http://a.test", "http://b.test"]


def test_overrides_win_over_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TASKSTORE_BACKEND", "s3")
    cfg = load_config({"TASKSTORE_BACKEND": "memory"})
    assert cfg.backend == "memory"


@pytest.mark.parametrize(
    ("env", "attr", "expected"),
    [
        ({"PORT": "abc"}, "port", 5000),
        ({"PORT": "70000"}, "port", 5000),
        ({"TASKSTORE_MAX_RETRIES": "0"}, "max_retries", 1),
        ({"TASKSTORE_MAX_RETRIES": "many"}, "max_retries", 5),
        ({"TASKSTORE_CONCURRENCY": "mutex"}, "concurrency", "none"),
        ({"TASKSTORE_BACKEND": "dynamo"}, "backend", "s3"),
    ],
)
def test_invalid_values_fall_back(env: dict[str, str], attr: str, expected: object) -> None:
    assert getattr(load_config(env), attr) == expected


def test_secret_is_hidden_from_repr() -> None:
    cfg = load_config({"AWS_SECRET_ACCESS_KEY": "shh-very-secret"})
    assert "shh-very-secret" not in repr(cfg)


def test_build_store_requires_bucket_for_s3() -> None:
    with pytest.raises(ValueError, match="S3_BUCKET_NAME"):
        build_store(load_config())


def test_build_store_selects_backend() -> None:
    assert isinstance(build_store(load_config({"TASKSTORE_BACKEND": "memory"})), MemoryBlobStore)
    s3 = build_store(
        load_config(
            {
                "S3_BUCKET_NAME": "b",
                "AWS_REGION": "us-east-1",
                "AWS_ACCESS_KEY_ID": "testing",
                "AWS_SECRET_ACCESS_KEY": "testing",
            }
        )
    )
    assert isinstance(s3, S3BlobStore)
    assert s3.location == "s3://b/tasks.json"


def test_build_service_applies_concurrency() -> None:
    cfg = load_config({"TASKSTORE_BACKEND": "memory", "TASKSTORE_CONCURRENCY": "lock"})
    assert build_service(cfg).concurrency == "lock"
