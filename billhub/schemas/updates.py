"""
Partial updates: a PATCH body is checked against the whole record before it is written.
"""
from typing import Any, Dict, Type, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as SchemaError

from ..errors import ValidationError

M = TypeVar("M", bound=BaseModel)


def apply_update(model: Type[M], current: Dict[str, Any], fields: Dict[str, Any]) -> M:
    """The record ``current`` would become with ``fields`` applied; raises ValidationError if that is invalid."""
    try:
        return model(**{**current, **fields})
    except SchemaError as e:
        problems = ", ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise ValidationError(f"invalid update: {problems}")
