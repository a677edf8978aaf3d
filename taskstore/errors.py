from __future__ import annotations


class TaskStoreError(Exception):
    """Base class for every failure surfaced by the task store."""


class BlobNotFoundError(TaskStoreError):
    """The collection blob does not exist yet."""


class StorageError(TaskStoreError):
    """The blob store could not be read or written."""


class WriteConflictError(StorageError):
    """A conditional write was rejected because the blob changed since it was read."""


class DataIntegrityError(TaskStoreError):
    """The stored blob is not a valid task collection."""


class TaskNotFoundError(TaskStoreError):
    def __init__(self, task_id: str) -> None:
        super().__init__("Task not found")
        self.task_id = task_id


__all__ = [
    "TaskStoreError",
    "BlobNotFoundError",
    "StorageError",
    "WriteConflictError",
    "DataIntegrityError",
    "TaskNotFoundError",
]
