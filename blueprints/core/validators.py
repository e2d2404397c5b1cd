from __future__ import annotations
import json
from typing import Any, Type, TypeVar

from flask import request
from pydantic import BaseModel, ValidationError as SchemaError

from .errors import ValidationError

M = TypeVar("M", bound=BaseModel)

def parse_payload(model: Type[M], payload: Any = None) -> M:
    """Тело запроса → pydantic-модель; ошибки схемы → ValidationError (422)."""
    if payload is None:
        payload = request.get_json(silent=True) or {}
    try:
        return model.model_validate(payload)
    except SchemaError as ve:
        # .json() корректно сериализует ctx (исключения из валидаторов)
        raise ValidationError("Invalid request body", {"errors": json.loads(ve.json())}) from ve
