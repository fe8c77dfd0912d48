# -*- coding: utf-8 -*-
"""Request schemas (pydantic) and the helper that turns their errors into API errors."""
from typing import Any, Type, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from weddingpay.errors import ValidationError

M = TypeVar("M", bound=BaseModel)


def validate_payload(model: Type[M], data: Any) -> M:
    """Validate ``data`` against ``model`` or raise a 400 ``ValidationError``."""
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        details = [
            f"{'.'.join(str(part) for part in err['loc']) or 'body'}: {err['msg']}"
            for err in e.errors()
        ]
        raise ValidationError("Invalid request data", details=details) from e
