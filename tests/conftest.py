from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

import pytest

from taskstore.observability import reset_metrics
from taskstore.service import TaskService
from taskstore.storage.memory import MemoryBlobStore


@pytest.fixture(autouse=True)
def _fresh_metrics() -> None:
    reset_metrics()


@pytest.fixture()
def seed() -> Callable[[list[dict[str, Any]]], bytes]:
    def _seed(tasks: list[dict[str, Any]]) -> bytes:
        return json.dumps(tasks).encode("utf-8")

    return _seed


@pytest.fixture()
def store() -> MemoryBlobStore:
    return MemoryBlobStore()


@pytest.fixture()
def service(store: MemoryBlobStore) -> TaskService:
    return TaskService(store)
