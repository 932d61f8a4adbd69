import uuid
from typing import Any, Type, TypeVar

import pydantic

from termin_manager.core.errors import NotFound, ValidationError

M = TypeVar("M", bound=pydantic.BaseModel)


def parse(model: Type[M], data: Any) -> M:
    """Validates store input with the request schema; failures become ValidationError."""
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except pydantic.ValidationError as exc:
        errors = [
            {"loc": [str(p) for p in e["loc"]], "msg": e["msg"], "type": e["type"]}
            for e in exc.errors()
        ]
        raise ValidationError("invalid input", errors=errors) from exc


def as_uuid(value: Any, what: str) -> uuid.UUID:
    # a malformed id can't name any row, ours or another team's
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        raise NotFound(f"{what} not found")
