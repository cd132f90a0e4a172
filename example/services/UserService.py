"""
UserService - persistence operations for User.
"""

import math

depends_on = ["Database"]


class UserService:
    def __init__(self, collection):
        self.collection = collection

    async def find_all(self, query=None):
        query = dict(query or {})
        page = int(query.pop("page", None) or 1)
        limit = int(query.pop("limit", None) or 10)
        sort_by = query.pop("sortBy", None) or "createdAt"
        sort_order = query.pop("sortOrder", None) or "desc"
        filters = {key: value for key, value in query.items() if value is not None}

        items = await self.collection.find(
            filters,
            sort=[(sort_by, -1 if sort_order == "desc" else 1)],
            skip=(page - 1) * limit,
            limit=limit,
        )
        total = await self.collection.count(filters)
        return {
            "items": items,
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "pages": math.ceil(total / limit),
            },
        }

    async def find_by_id(self, object_id):
        return await self.collection.find_by_id(object_id)

    async def create(self, data):
        return await self.collection.insert_one({'age': 18} | data)

    async def update(self, object_id, data):
        return await self.collection.update_by_id(object_id, data)

    async def delete(self, object_id):
        return await self.collection.delete_by_id(object_id)


async def provide(ctx):
    collection = ctx.services.Database.collection(
        "users", unique=['email'], timestamps=True,
    )
    return UserService(collection)
