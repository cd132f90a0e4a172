"""
Request validation with pydantic.

A schema set is any object (usually a ``validations/<Name>Schema.py``
module) exposing up to three pydantic models:

- ``query``  - GET query string
- ``create`` - POST body
- ``update`` - PUT/PATCH body

``validation_middleware(schemas)`` turns it into a named middleware. Other
methods pass through untouched. Unknown keys are ignored.
"""

from __future__ import annotations

import re
from typing import Annotated, Any, Dict, List, Optional, Type

from pydantic import AfterValidator, BaseModel, StringConstraints, ValidationError

from .faults import ValidationFault
from .request import Request
from .response import Response

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[A-Za-z0-9-]{2,}$")


def _check_email(value: str) -> str:
    if not EMAIL_PATTERN.match(value):
        raise ValueError("must be a valid email")
    return value


TrimmedStr = Annotated[str, StringConstraints(strip_whitespace=True)]
Email = Annotated[str, StringConstraints(strip_whitespace=True), AfterValidator(_check_email)]
Password = Annotated[str, StringConstraints(min_length=6)]

_METHOD_SCHEMAS = {
    "GET": "query",
    "POST": "create",
    "PUT": "update",
    "PATCH": "update",
}


def error_details(error: ValidationError) -> List[Dict[str, Any]]:
    """``[{field, message}]`` from a pydantic ValidationError."""
    return [
        {"field": ".".join(str(part) for part in item["loc"]), "message": item["msg"]}
        for item in error.errors()
    ]


def _schema(schemas: Any, name: str) -> Optional[Type[BaseModel]]:
    if isinstance(schemas, dict):
        return schemas.get(name)
    return getattr(schemas, name, None)


async def validate_request(request: Request, schemas: Any) -> Optional[Dict[str, Any]]:
    """
    Validate ``request`` against the schema for its method.

    Returns the validated payload (also stored on ``request.validated``) or
    ``None`` when the method has no schema.

    Raises:
        ValidationFault: The payload does not satisfy the schema
    """
    name = _METHOD_SCHEMAS.get(request.method)
    model = _schema(schemas, name) if name else None
    if model is None:
        return None

    data = dict(request.query) if name == "query" else await request.json()
    try:
        instance = model.model_validate(data)
    except ValidationError as e:
        raise ValidationFault(error_details(e))

    request.validated = instance.model_dump(exclude_unset=name != "create")
    return request.validated


def validation_middleware(schemas: Any):
    """Build ``middleware(request, next, ctx)`` validating against ``schemas``."""

    async def middleware(request: Request, next, ctx) -> Response:
        await validate_request(request, schemas)
        return await next(request)

    return middleware
