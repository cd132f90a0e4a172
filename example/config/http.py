"""
Process-wide middlewares, applied to every request in this order.
"""

from waypoint import BodyLimitMiddleware, CompressionMiddleware, CORSMiddleware, LoggingMiddleware

middlewares = [
    LoggingMiddleware(),
    BodyLimitMiddleware(limit=50 * 1024 * 1024),
    CompressionMiddleware(),
    CORSMiddleware(allow_origins=["http://localhost:3000"], permissive=True),
]
