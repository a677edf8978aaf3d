from __future__ import annotations

import json
import uuid
from collections.abc import Mapping, Sequence
from typing import Any

from pydantic import BaseModel, ConfigDict, TypeAdapter, ValidationError

from taskstore.errors import DataIntegrityError


def new_task_id() -> str:
    return str(uuid.uuid4())


class Task(BaseModel):
    """A task in the collection.

    - `id` is assigned by the service and never changes
    - Every other key is caller-defined and kept in `model_extra`
    """

    model_config = ConfigDict(extra="allow")

    id: str

    @property
    def extra_fields(self) -> dict[str, Any]:
        return dict(self.model_extra or {})

    @classmethod
    def create(cls, fields: Mapping[str, Any]) -> Task:
        # The generated id always wins over a caller-supplied one
        return cls.model_validate({**fields, "id": new_task_id()})

    def merged(self, fields: Mapping[str, Any]) -> Task:
        """Shallow-merge `fields` over this task, keeping the stored id."""
        return Task.model_validate({**self.to_json(), **fields, "id": self.id})

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


_COLLECTION: TypeAdapter[list[Task]] = TypeAdapter(list[Task])


def _reject_constant(token: str) -> Any:
    raise ValueError(f"non-standard JSON token {token}")


def decode_collection(data: bytes) -> list[Task]:
    try:
        raw = json.loads(data, parse_constant=_reject_constant)
    except ValueError as exc:
        raise DataIntegrityError(f"stored task collection is not valid JSON: {exc}") from exc
    try:
        return _COLLECTION.validate_python(raw)
    except ValidationError as exc:
        first = exc.errors()[0]
        loc = ".".join(str(p) for p in first["loc"]) or "<root>"
        raise DataIntegrityError(
            f"stored task collection is invalid at {loc}: {first['msg']}"
        ) from exc


def encode_collection(tasks: Sequence[Task]) -> bytes:
    return json.dumps([t.to_json() for t in tasks], indent=2, ensure_ascii=False).encode("utf-8")


__all__ = ["Task", "new_task_id", "decode_collection", "encode_collection"]
