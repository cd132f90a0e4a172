"""
Controller for User.

Mounted at /User/<version>/.
"""

from waypoint import ConflictFault, NotFoundFault, Response
from waypoint.store import DuplicateKeyError

global_middlewares = []


async def list_user(request, ctx):
    query = request.validated if request.validated is not None else request.query
    items = await ctx.services.UserService.find_all(query)
    return {"success": True, "data": items}


async def get_user(request, ctx):
    item = await ctx.services.UserService.find_by_id(request.params["id"])
    if item is None:
        raise NotFoundFault()
    return {"success": True, "data": item}


async def create_user(request, ctx):
    data = request.validated if request.validated is not None else await request.json()
    try:
        item = await ctx.services.UserService.create(data)
    except DuplicateKeyError:
        raise ConflictFault()
    return Response.json({"success": True, "data": item}, status=201)


async def update_user(request, ctx):
    data = request.validated if request.validated is not None else await request.json()
    try:
        item = await ctx.services.UserService.update(request.params["id"], data)
    except DuplicateKeyError:
        raise ConflictFault()
    if item is None:
        raise NotFoundFault()
    return {"success": True, "data": item}


async def delete_user(request, ctx):
    result = await ctx.services.UserService.delete(request.params["id"])
    if result is None:
        raise NotFoundFault()
    return {"success": True, "message": "Item deleted successfully"}


def routes(ctx):
    return {
        "/": {
            "method": "get",
            "handler": list_user,
            "local_middlewares": ["userValidate"],
        },
        "/:id": {
            "method": "get",
            "handler": get_user,
        },
        "POST /": {
            "handler": create_user,
            "local_middlewares": ["userValidate"],
        },
        "PUT /:id": {
            "handler": update_user,
            "local_middlewares": ["userValidate"],
        },
        "DELETE /:id": {
            "handler": delete_user,
        },
    }
