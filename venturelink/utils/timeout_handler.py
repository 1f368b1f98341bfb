"""
Timeout handler utilities for remote calls
"""

import asyncio
from typing import Any, Awaitable, Optional
import logging

from venturelink.core.exceptions import RemoteTimeoutError

logger = logging.getLogger(__name__)


class TimeoutConfig:
    """Configuration for different service timeouts"""
    DEFAULT_TIMEOUT = 30  # seconds

    TIMEOUTS = {
        "supabase": 10,  # Database should be fast
        "default": 30
    }

    @classmethod
    def get_timeout(cls, service: str) -> float:
        """Get timeout for a specific service"""
        return cls.TIMEOUTS.get(service.lower(), cls.DEFAULT_TIMEOUT)


async def run_with_timeout(
    awaitable: Awaitable[Any],
    operation: str,
    timeout_seconds: Optional[float] = None,
    service: str = "supabase",
) -> Any:
    """
    Await a remote call with a bounded timeout

    Args:
        awaitable: The coroutine to await
        operation: Name reported in the timeout error
        timeout_seconds: Timeout in seconds (overrides service default)
        service: Service name to get default timeout
    """
    if timeout_seconds is None:
        timeout_seconds = TimeoutConfig.get_timeout(service)

    try:
        return await asyncio.wait_for(awaitable, timeout=timeout_seconds)
    except asyncio.TimeoutError:
        logger.error(f"Operation {operation} timed out after {timeout_seconds} seconds")
        raise RemoteTimeoutError(operation, timeout_seconds)
