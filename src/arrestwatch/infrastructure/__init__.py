"""
Infrastructure Package.

Provides browser sessions, request pacing and the pending request queue
for listing crawls.
"""

from .session_pool import (
    SessionPool,
    Session,
    SessionHealth,
    SessionMetrics,
    PoolStatus,
)
from .rate_limiter import (
    RequestThrottle,
    ThrottleConfig,
    ThrottleMetrics,
)
from .request_queue import RequestQueue

__all__ = [
    # Session Pool
    "SessionPool",
    "Session",
    "SessionHealth",
    "SessionMetrics",
    "PoolStatus",
    # Throttle
    "RequestThrottle",
    "ThrottleConfig",
    "ThrottleMetrics",
    # Queue
    "RequestQueue",
]
