from __future__ import annotations

import asyncio
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, TypeVar

from taskstore.config import ConcurrencyMode
from taskstore.errors import BlobNotFoundError, TaskNotFoundError, WriteConflictError
from taskstore.models.task import Task, decode_collection, encode_collection
from taskstore.observability import get_json_logger, get_metrics
from taskstore.storage.interface import BlobStore

R = TypeVar("R")

# A mutation returns the collection to persist (None skips the write) and its result
Mutation = Callable[[list[Task]], tuple[list[Task] | None, R]]


@dataclass(slots=True)
class _Snapshot:
    tasks: list[Task]
    etag: str | None
    exists: bool


class TaskService:
    """CRUD over a task collection stored as one JSON blob.

    Every operation reads the whole collection and every mutation writes the
    whole collection back. The blob calls run in a worker thread so the event
    loop keeps serving other requests while waiting on storage.

    Concurrency modes:
    - "none": unconditional overwrite; concurrent mutations can lose updates
    - "lock": one in-process asyncio.Lock serialises every mutation
    - "optimistic": ETag-conditional writes, retrying the cycle on conflict
    """

    def __init__(
        self,
        store: BlobStore,
        *,
        concurrency: ConcurrencyMode = "none",
        max_retries: int = 5,
    ) -> None:
        if concurrency not in ("none", "lock", "optimistic"):
            raise ValueError(f"unknown concurrency mode: {concurrency}")
        self._store = store
        self._mode: ConcurrencyMode = concurrency
        self._max_retries = max(1, int(max_retries))
        self._lock = asyncio.Lock()
        self._logger = get_json_logger("taskstore.service")
        self._metrics = get_metrics()

    @property
    def concurrency(self) -> ConcurrencyMode:
        return self._mode

    # ----------------------------
    # Collection I/O
    # ----------------------------
    async def _read_snapshot(self) -> _Snapshot:
        try:
            blob = await asyncio.to_thread(self._store.get)
        except BlobNotFoundError:
            return _Snapshot(tasks=[], etag=None, exists=False)
        return _Snapshot(tasks=decode_collection(blob.data), etag=blob.etag, exists=True)

    async def _write(self, tasks: list[Task], snapshot: _Snapshot | None = None) -> None:
        data = encode_collection(tasks)
        if_match: str | None = None
        create_only = False
        if snapshot is not None and self._mode == "optimistic":
            if snapshot.exists:
                if_match = snapshot.etag
            else:
                create_only = True
        await asyncio.to_thread(
            self._store.put, data, if_match=if_match, create_only=create_only
        )

    async def read_collection(self) -> list[Task]:
        """Return the stored collection; a blob that does not exist yet reads as empty."""
        snapshot = await self._read_snapshot()
        return snapshot.tasks

    async def write_collection(self, tasks: list[Task]) -> None:
        """Overwrite the stored collection unconditionally."""
        await self._write(list(tasks))

    # ----------------------------
    # Read-modify-write
    # ----------------------------
    async def _cycle(self, mutation: Mutation[R]) -> R:
        snapshot = await self._read_snapshot()
        updated, result = mutation(list(snapshot.tasks))
        if updated is not None:
            await self._write(updated, snapshot)
        return result

    async def _mutate(self, op: str, mutation: Mutation[R]) -> R:
        if self._mode == "lock":
            async with self._lock:
                return await self._cycle(mutation)
        if self._mode != "optimistic":
            return await self._cycle(mutation)
        attempt = 1
        while True:
            try:
                return await self._cycle(mutation)
            except WriteConflictError:
                self._metrics.increment("taskstore_conflicts", {"op": op})
                self._logger.warning(
                    "write conflict",
                    extra={"event": "write_conflict", "op": op, "attempt": attempt},
                )
                if attempt >= self._max_retries:
                    raise
                attempt += 1

    def _record(self, op: str, started: float, task_id: str | None = None, **attrs: Any) -> None:
        self._metrics.increment("taskstore_ops", {"op": op})
        extra: dict[str, Any] = {
            "event": f"task_{op}",
            "op": op,
            "duration_ms": round((time.perf_counter() - started) * 1000.0, 3),
        }
        if task_id is not None:
            extra["task_id"] = task_id
        if attrs:
            extra["attributes"] = attrs
        self._logger.info(f"task {op}", extra=extra)

    # ----------------------------
    # Operations
    # ----------------------------
    async def list_tasks(self) -> list[Task]:
        started = time.perf_counter()
        tasks = await self.read_collection()
        self._record("list", started, count=len(tasks))
        return tasks

    async def create_task(self, fields: Mapping[str, Any]) -> Task:
        started = time.perf_counter()

        def _append(tasks: list[Task]) -> tuple[list[Task], Task]:
            task = Task.create(fields)
            return [*tasks, task], task

        task = await self._mutate("create", _append)
        self._record("create", started, task.id)
        return task

    async def update_task(self, task_id: str, fields: Mapping[str, Any]) -> Task:
        """Shallow-merge `fields` into the task; raises TaskNotFoundError without writing."""
        started = time.perf_counter()

        def _merge(tasks: list[Task]) -> tuple[list[Task], Task]:
            merged: Task | None = None
            out: list[Task] = []
            for t in tasks:
                if t.id == task_id:
                    t = t.merged(fields)
                    merged = t
                out.append(t)
            if merged is None:
                raise TaskNotFoundError(task_id)
            return out, merged

        task = await self._mutate("update", _merge)
        self._record("update", started, task_id, fields=sorted(fields))
        return task

    async def delete_task(self, task_id: str) -> None:
        """Remove the task. Unknown ids succeed without touching storage."""
        started = time.perf_counter()

        def _remove(tasks: list[Task]) -> tuple[list[Task] | None, bool]:
            kept = [t for t in tasks if t.id != task_id]
            if len(kept) == len(tasks):
                return None, False
            return kept, True

        removed = await self._mutate("delete", _remove)
        self._record("delete", started, task_id, removed=removed)


__all__ = ["TaskService"]
