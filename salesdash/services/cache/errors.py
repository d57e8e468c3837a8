"""Error classification and timeout helpers for cache fetch cycles."""

import asyncio
from collections.abc import Awaitable
from typing import TypeVar

import httpx

T = TypeVar("T")

NETWORK_ERROR_MARKERS = (
    "network",
    "timeout",
    "timed_out",
    "timed out",
    "connection",
    "disconnected",
    "abort",
    "failed to fetch",
    "err_connection",
    "networkerror",
    "name or service not known",
    "dns",
)


class FetchTimeoutError(TimeoutError):
    """A fetch step exceeded its time budget."""

    def __init__(self, label: str, timeout_seconds: float):
        super().__init__(f"Timeout: {label} took longer than {timeout_seconds:g} seconds")
        self.label = label
        self.timeout_seconds = timeout_seconds


def is_network_error(error: BaseException | None) -> bool:
    """True for connectivity problems, as opposed to the server rejecting a request."""
    if error is None:
        return False
    if isinstance(error, TimeoutError | asyncio.TimeoutError | ConnectionError | httpx.TransportError):
        return True
    message = str(error).lower()
    return any(marker in message for marker in NETWORK_ERROR_MARKERS)


async def with_timeout(awaitable: Awaitable[T], timeout_seconds: float, label: str) -> T:
    """Race an awaitable against a timer."""
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout_seconds)
    except FetchTimeoutError:
        # An inner step already timed out; keep its label
        raise
    except TimeoutError as e:
        raise FetchTimeoutError(label, timeout_seconds) from e
