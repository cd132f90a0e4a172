"""
Public endpoints, mounted at /Public/<version>/.
"""

from waypoint import Route


async def hello(request, ctx):
    return {"ok": True, "message": "hello world"}


async def status(request, ctx):
    return {
        "ok": True,
        "app": ctx.config.CONSTANTS["APP_NAME"],
        "services": sorted(ctx.services),
    }


async def legacy(request, ctx):
    return {"ok": False}


def routes(ctx):
    return {
        "GET /test": {"handler": hello},
        "/status": Route(handler=status, method="get", version="v2.0"),
        "GET /legacy": {"handler": legacy, "enabled": False},
    }
