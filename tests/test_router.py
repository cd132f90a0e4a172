"""
Router assembly and dispatch (routing/assembler.py, routing/router.py).
"""

import pytest

from waypoint.controller import ControllerModule
from waypoint.faults import (
    InvalidApiVersionFault,
    MissingMiddlewareFault,
    NotFoundFault,
    ValidationFault,
)
from waypoint.log import SEPARATOR
from waypoint.response import Response
from waypoint.routing import Dispatcher, RouterAssembler, to_response
from waypoint.routing.patterns import PathPattern, under_prefix
from waypoint.routing.router import method_matches

from tests.conftest import make_request


def recorder(calls, label):
    async def middleware(request, next, ctx):
        calls.append((label, ctx))
        return await next(request)
    return middleware


@pytest.fixture
def dispatcher(ctx):
    return Dispatcher(ctx)


@pytest.fixture
def assembler(registry, ctx, versions, dispatcher):
    return RouterAssembler(registry, ctx, versions, dispatcher)


# ============================================================================
# Path patterns
# ============================================================================

class TestPathPattern:

    def test_literal(self):
        pattern = PathPattern.compile("/Public/v1.0/test")
        assert pattern.match("/Public/v1.0/test") == {}
        assert pattern.match("/Public/v1.0/test/") == {}
        assert pattern.match("/Public/v1.0/testing") is None

    def test_params(self):
        pattern = PathPattern.compile("/User/v1.0/:id")
        assert pattern.match("/User/v1.0/42") == {"id": "42"}
        assert pattern.match("/User/v1.0/a%20b") == {"id": "a b"}
        assert pattern.match("/User/v1.0/42/posts") is None
        assert pattern.params == ("id",)

    def test_root_sub_path(self):
        pattern = PathPattern.compile("/User/v1.0/")
        assert pattern.match("/User/v1.0") == {}
        assert pattern.match("/User/v1.0/") == {}

    def test_dots_are_literal(self):
        assert PathPattern.compile("/User/v1.0/").match("/User/v1x0/") is None

    def test_openapi_path(self):
        assert PathPattern.compile("/User/v1.0/:id").openapi_path == "/User/v1.0/{id}"

    def test_under_prefix(self):
        assert under_prefix("/User", "/User")
        assert under_prefix("/User/v1.0/", "/User")
        assert not under_prefix("/Users/v1.0/", "/User")

    def test_literals_ignore_case(self):
        pattern = PathPattern.compile("/User/v1.0/:id")
        assert pattern.match("/user/V1.0/AbC") == {"id": "AbC"}
        assert under_prefix("/user/v1.0/", "/User")


class TestHelpers:

    def test_method_matches(self):
        assert method_matches("get", "GET")
        assert method_matches("get", "HEAD")
        assert method_matches("all", "DELETE")
        assert not method_matches("post", "GET")
        assert not method_matches("head", "GET")

    def test_to_response(self):
        assert to_response({"a": 1}).json_body() == {"a": 1}
        assert to_response([1, 2]).json_body() == [1, 2]
        assert to_response(None).status == 204
        assert to_response("hi").body == b"hi"
        assert to_response(b"raw").body == b"raw"
        response = Response.text("x", status=202)
        assert to_response(response) is response

    def test_to_response_rejects_unknown(self):
        with pytest.raises(TypeError):
            to_response(object())


# ============================================================================
# Assembly
# ============================================================================

class TestAssembly:

    def test_declared_order_preserved(self, assembler):
        async def list_users(request, ctx):
            return []

        async def create_user(request, ctx):
            return {}

        ctrl = ControllerModule("user", lambda ctx: {
            "/": {"method": "get", "handler": list_users},
            "POST /": {"handler": create_user},
        })
        routes = assembler.resolve_routes(ctrl)
        assert [(r.method, r.path) for r in routes] == [("get", "/User/v1.0/"), ("post", "/User/v1.0/")]
        assert routes[0].handler is list_users
        assert routes[1].handler is create_user

    def test_disabled_routes_omitted(self, assembler):
        ctrl = ControllerModule("user", lambda ctx: {
            "/:id": {"method": "get", "handler": lambda r, c: None, "enabled": False},
            "POST /": {"handler": lambda r, c: None},
        })
        assert [r.route_key for r in assembler.resolve_routes(ctrl)] == ["POST /"]

    def test_routes_receive_context(self, assembler, ctx):
        seen = []

        def routes(c):
            seen.append(c)
            return {}

        assembler.assemble(ControllerModule("user", routes))
        assert seen == [ctx]

    def test_mount_logs_each_route(self, assembler, dispatcher, waypoint_logs):
        ctrl = ControllerModule("user", lambda ctx: {
            "GET /": {"handler": lambda r, c: None},
            "DELETE /:id": {"handler": lambda r, c: None},
        })
        assembler.mount(ctrl)
        messages = [r.getMessage() for r in waypoint_logs.records]
        assert "Added | \t GET  /User/v1.0/" in messages
        assert "Added | \t DELETE  /User/v1.0/:id" in messages
        assert messages.count(SEPARATOR) == 2
        assert [r.path for r in dispatcher.routes] == ["/User/v1.0/", "/User/v1.0/:id"]

    def test_mount_logs_in_declaration_order(self, assembler, waypoint_logs):
        ctrl = ControllerModule("user", lambda ctx: {
            "GET /": {"handler": lambda r, c: None},
            "GET /legacy": {"handler": lambda r, c: None, "enabled": False},
            "DELETE /:id": {"handler": lambda r, c: None},
        })
        assembler.mount(ctrl)
        messages = [r.getMessage() for r in waypoint_logs.records if r.getMessage() != SEPARATOR]
        assert messages == [
            "Added | \t GET  /User/v1.0/",
            'Disabled endpoint HTTP method: "GET" at controllers/user at route: "/legacy"',
            "Added | \t DELETE  /User/v1.0/:id",
        ]

    def test_failed_mount_logs_nothing(self, assembler, waypoint_logs):
        ctrl = ControllerModule("user", lambda ctx: {
            "GET /": {"handler": lambda r, c: None},
            "GET /legacy": {"handler": lambda r, c: None, "enabled": False},
            "GET /:id": {"handler": lambda r, c: None, "version": "v9.0"},
        })
        with pytest.raises(InvalidApiVersionFault):
            assembler.mount(ctrl)
        assert "Added |" not in waypoint_logs.text
        assert "Disabled endpoint" not in waypoint_logs.text

    def test_bad_route_mounts_nothing(self, assembler, dispatcher):
        ctrl = ControllerModule("user", lambda ctx: {
            "GET /": {"handler": lambda r, c: None},
            "GET /:id": {"handler": lambda r, c: None, "version": "v9.0"},
        })
        with pytest.raises(InvalidApiVersionFault):
            assembler.mount(ctrl)
        assert dispatcher.mounts == []

    def test_missing_local_middleware_mounts_nothing(self, assembler, dispatcher):
        ctrl = ControllerModule("user", lambda ctx: {
            "GET /": {"handler": lambda r, c: None},
            "POST /": {"handler": lambda r, c: None, "local_middlewares": ["userValidate"]},
        })
        with pytest.raises(MissingMiddlewareFault, match='controllers/user at route: "POST /"'):
            assembler.mount(ctrl)
        assert dispatcher.routes == []

    def test_missing_global_middleware_mounts_nothing(self, assembler, dispatcher):
        ctrl = ControllerModule("user", lambda ctx: {"GET /": {"handler": lambda r, c: None}},
                                global_middlewares=["auth"])
        with pytest.raises(MissingMiddlewareFault, match='"auth" at controllers/user'):
            assembler.mount(ctrl)
        assert dispatcher.mounts == []

    def test_mount_requires_dispatcher(self, registry, ctx, versions):
        with pytest.raises(RuntimeError):
            RouterAssembler(registry, ctx, versions).mount(ControllerModule("user", lambda c: {}))


# ============================================================================
# Dispatch
# ============================================================================

class TestDispatch:

    @pytest.mark.asyncio
    async def test_global_then_local_then_handler(self, assembler, registry, dispatcher, ctx):
        calls = []
        registry.register_middleware("g1", recorder(calls, "g1"))
        registry.register_middleware("g2", recorder(calls, "g2"))
        registry.register_middleware("l1", recorder(calls, "l1"))
        registry.register_middleware("l2", recorder(calls, "l2"))

        async def handler(request, c):
            calls.append(("handler", c))
            return {"id": request.params["id"]}

        assembler.mount(ControllerModule("user", lambda c: {
            "GET /:id": {"handler": handler, "local_middlewares": ["l1", "l2"]},
        }, global_middlewares=["g1", "g2"]))

        response = await dispatcher(make_request("GET", "/User/v1.0/7"))

        assert response.status == 200
        assert response.json_body() == {"id": "7"}
        assert [label for label, _ in calls] == ["g1", "g2", "l1", "l2", "handler"]
        assert all(c is ctx for _, c in calls)

    @pytest.mark.asyncio
    async def test_first_match_wins(self, assembler, dispatcher):
        assembler.mount(ControllerModule("user", lambda c: {
            "GET /:id": {"handler": lambda r, c: {"route": "param"}},
            "GET /me": {"handler": lambda r, c: {"route": "literal"}},
        }))
        response = await dispatcher(make_request("GET", "/User/v1.0/me"))
        assert response.json_body() == {"route": "param"}

    @pytest.mark.asyncio
    async def test_method_filters_routes(self, assembler, dispatcher):
        assembler.mount(ControllerModule("user", lambda c: {
            "GET /": {"handler": lambda r, c: {"m": "get"}},
            "POST /": {"handler": lambda r, c: {"m": "post"}},
        }))
        response = await dispatcher(make_request("POST", "/User/v1.0/"))
        assert response.json_body() == {"m": "post"}

    @pytest.mark.asyncio
    async def test_fall_through_to_next_mount(self, assembler, registry, dispatcher):
        calls = []
        registry.register_middleware("g", recorder(calls, "g"))
        assembler.mount(ControllerModule("user", lambda c: {
            "GET /a": {"handler": lambda r, c: {"from": "user"}},
        }, global_middlewares=["g"]))
        assembler.mount(ControllerModule("User", lambda c: {
            "GET /b": {"handler": lambda r, c: {"from": "User"}},
        }))

        response = await dispatcher(make_request("GET", "/User/v1.0/b"))

        assert response.json_body() == {"from": "User"}
        assert [label for label, _ in calls] == ["g"]

    @pytest.mark.asyncio
    async def test_not_found_envelope(self, dispatcher):
        response = await dispatcher(make_request("GET", "/nope"))
        assert response.status == 404
        assert response.json_body() == {"success": False, "error": "Cannot GET /nope"}

    @pytest.mark.asyncio
    async def test_request_fault_envelope(self, assembler, dispatcher):
        async def handler(request, ctx):
            raise ValidationFault([{"field": "email", "message": "Field required"}])

        assembler.mount(ControllerModule("user", lambda c: {"POST /": {"handler": handler}}))
        response = await dispatcher(make_request("POST", "/User/v1.0/"))
        assert response.status == 400
        assert response.json_body() == {
            "success": False,
            "error": "Validation failed",
            "details": [{"field": "email", "message": "Field required"}],
        }

    @pytest.mark.asyncio
    async def test_unhandled_exception_is_500(self, assembler, dispatcher):
        async def handler(request, ctx):
            raise RuntimeError("boom")

        assembler.mount(ControllerModule("user", lambda c: {"GET /": {"handler": handler}}))
        response = await dispatcher(make_request("GET", "/User/v1.0/"))
        assert response.status == 500
        assert response.json_body() == {"success": False, "error": "Internal server error"}

    @pytest.mark.asyncio
    async def test_debug_includes_exception_text(self, registry, ctx, versions):
        dispatcher = Dispatcher(ctx, debug=True)

        async def handler(request, c):
            raise RuntimeError("boom")

        RouterAssembler(registry, ctx, versions, dispatcher).mount(
            ControllerModule("user", lambda c: {"GET /": {"handler": handler}}),
        )
        response = await dispatcher(make_request("GET", "/User/v1.0/"))
        assert response.json_body()["details"] == [{"field": None, "message": "boom"}]

    @pytest.mark.asyncio
    async def test_process_wide_middlewares_run_first(self, assembler, registry, dispatcher):
        calls = []
        registry.register_middleware("g", recorder(calls, "g"))
        dispatcher.use(recorder(calls, "http1"), "http1")
        dispatcher.use(recorder(calls, "http2"), "http2")
        assembler.mount(ControllerModule("user", lambda c: {"GET /": {"handler": lambda r, c: []}},
                                         global_middlewares=["g"]))

        await dispatcher(make_request("GET", "/User/v1.0/"))
        assert [label for label, _ in calls] == ["http1", "http2", "g"]

    @pytest.mark.asyncio
    async def test_process_wide_middlewares_see_error_envelopes(self, assembler, dispatcher):
        seen = []

        async def stamp(request, next, ctx):
            response = await next(request)
            seen.append(response.status)
            response.headers["x-stamp"] = "1"
            return response

        async def handler(request, ctx):
            raise ValidationFault([])

        dispatcher.use(stamp, "stamp")
        assembler.mount(ControllerModule("user", lambda c: {"POST /": {"handler": handler}}))

        invalid = await dispatcher(make_request("POST", "/User/v1.0/"))
        missing = await dispatcher(make_request("GET", "/nope"))

        assert seen == [400, 404]
        assert invalid.headers["x-stamp"] == "1"
        assert missing.headers["x-stamp"] == "1"
        assert missing.json_body() == {"success": False, "error": "Cannot GET /nope"}

    @pytest.mark.asyncio
    async def test_failing_process_wide_middleware_is_500(self, dispatcher):
        async def broken(request, next, ctx):
            raise RuntimeError("broken middleware")

        dispatcher.use(broken, "broken")
        response = await dispatcher(make_request("GET", "/nope"))
        assert response.status == 500
        assert response.json_body() == {"success": False, "error": "Internal server error"}

    @pytest.mark.asyncio
    async def test_framework_routes_before_mounts(self, dispatcher):
        async def docs(request):
            return Response.text("docs")

        dispatcher.add_route("get", "/api-docs", docs)
        response = await dispatcher(make_request("GET", "/api-docs"))
        assert response.body == b"docs"

        with pytest.raises(NotFoundFault):
            await dispatcher._dispatch(make_request("GET", "/api-docs"), 0)
