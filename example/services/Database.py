"""
Database - document store shared by the generated services.

Swap MemoryDocumentStore for a driver-backed DocumentStore in production.
"""

import logging

from waypoint.store import MemoryDocumentStore

logger = logging.getLogger("waypoint.example")


async def provide(ctx):
    logger.info("Database configured for %s", ctx.config.mongo.host or "in-memory store")
    return MemoryDocumentStore()
