"""
Color Analyzer Reliability & Timeout Management
Error taxonomy for remote calls and request timeouts.
"""
import asyncio
from contextlib import asynccontextmanager
from typing import Dict, Optional

from coloranalyzer.utils.logging import get_logger


class AnalysisServiceError(Exception):
    """Base for every failure talking to the remote service."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class TransportError(AnalysisServiceError):
    """Network unreachable, connection dropped, or similar."""
    pass


class RequestTimeoutError(TransportError):
    """A request did not complete within the configured timeout."""
    pass


class MalformedResponseError(TransportError):
    """The service answered 2xx with a body that cannot be interpreted."""
    pass


class ServiceError(AnalysisServiceError):
    """The service answered with a non-2xx status."""

    def __init__(self, message: str, status_code: int):
        self.status_code = status_code
        super().__init__(message)


class TimeoutManager:
    """Manages timeouts for the remote operations."""

    def __init__(self, default_timeout: float = 30.0, timeouts: Optional[Dict[str, float]] = None):
        self.default_timeout = default_timeout
        self.timeouts: Dict[str, float] = dict(timeouts or {})
        self.logger = get_logger()

    def timeout_for(self, operation: str) -> float:
        return self.timeouts.get(operation, self.default_timeout)

    @asynccontextmanager
    async def timeout(self, operation: str, custom_timeout: Optional[float] = None):
        """Context manager raising RequestTimeoutError when the block overruns."""
        timeout_value = custom_timeout or self.timeout_for(operation)

        try:
            async with asyncio.timeout(timeout_value):
                yield
        except TimeoutError:
            self.logger.error(f"Timeout in {operation} after {timeout_value}s")
            raise RequestTimeoutError(f"Request {operation} timed out after {timeout_value}s")

