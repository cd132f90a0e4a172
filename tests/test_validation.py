"""
Request validation (validation.py).
"""

from typing import Optional

import pytest
from pydantic import BaseModel

from waypoint.faults import ValidationFault
from waypoint.response import Response
from waypoint.validation import Email, Password, TrimmedStr, validate_request, validation_middleware

from tests.conftest import make_request


class UserCreate(BaseModel):
    name: TrimmedStr
    email: Email
    password: Password
    age: int = 18


class UserUpdate(BaseModel):
    name: Optional[TrimmedStr] = None
    email: Optional[Email] = None


class UserQuery(BaseModel):
    page: Optional[int] = None
    name: Optional[str] = None


SCHEMAS = {"create": UserCreate, "update": UserUpdate, "query": UserQuery}


class TestValidateRequest:

    @pytest.mark.asyncio
    async def test_create(self):
        request = make_request("POST", "/", body=b'{"name": " Ada ", "email": "ada@example.com", "password": "secret1"}')
        data = await validate_request(request, SCHEMAS)
        assert data == {"name": "Ada", "email": "ada@example.com", "password": "secret1", "age": 18}
        assert request.validated == data

    @pytest.mark.asyncio
    async def test_create_errors(self):
        request = make_request("POST", "/", body=b'{"email": "nope", "password": "123"}')
        with pytest.raises(ValidationFault) as exc_info:
            await validate_request(request, SCHEMAS)
        fault = exc_info.value
        assert fault.status == 400
        assert fault.message == "Validation failed"
        fields = {d["field"] for d in fault.details}
        assert fields == {"name", "email", "password"}
        email = next(d for d in fault.details if d["field"] == "email")
        assert "must be a valid email" in email["message"]

    @pytest.mark.asyncio
    async def test_update_keeps_only_sent_fields(self):
        request = make_request("PUT", "/", body=b'{"name": "Grace"}')
        assert await validate_request(request, SCHEMAS) == {"name": "Grace"}

    @pytest.mark.asyncio
    async def test_patch_uses_update(self):
        request = make_request("PATCH", "/", body=b'{"email": "bad"}')
        with pytest.raises(ValidationFault):
            await validate_request(request, SCHEMAS)

    @pytest.mark.asyncio
    async def test_query(self):
        request = make_request("GET", "/", query_string="page=2&unknown=x")
        assert await validate_request(request, SCHEMAS) == {"page": 2}

    @pytest.mark.asyncio
    async def test_query_error(self):
        request = make_request("GET", "/", query_string="page=abc")
        with pytest.raises(ValidationFault) as exc_info:
            await validate_request(request, SCHEMAS)
        assert exc_info.value.details[0]["field"] == "page"

    @pytest.mark.asyncio
    async def test_other_methods_pass(self):
        request = make_request("DELETE", "/")
        assert await validate_request(request, SCHEMAS) is None
        assert request.validated is None

    @pytest.mark.asyncio
    async def test_missing_schema_passes(self):
        request = make_request("POST", "/", body=b"{}")
        assert await validate_request(request, {"query": UserQuery}) is None

    @pytest.mark.asyncio
    async def test_schema_object(self):
        class Schemas:
            create = UserCreate

        request = make_request("POST", "/", body=b'{"name": "Ada", "email": "a@b.io", "password": "secret1"}')
        assert (await validate_request(request, Schemas))["name"] == "Ada"


class TestValidationMiddleware:

    @pytest.mark.asyncio
    async def test_valid_request_reaches_next(self):
        middleware = validation_middleware(SCHEMAS)

        async def handler(request):
            return Response.json(request.validated)

        request = make_request("PUT", "/", body=b'{"name": "Grace"}')
        response = await middleware(request, handler, None)
        assert response.json_body() == {"name": "Grace"}

    @pytest.mark.asyncio
    async def test_invalid_request_stops(self):
        middleware = validation_middleware(SCHEMAS)
        called = []

        async def handler(request):
            called.append(True)
            return Response.json({})

        with pytest.raises(ValidationFault):
            await middleware(make_request("POST", "/", body=b"{}"), handler, None)
        assert called == []
