"""Transport-level failure patterns."""
import asyncio
import socket
from dataclasses import dataclass, field
from typing import Any, List, Tuple

import aiohttp
import requests

from ..exceptions import NetworkError, ResilienceError


@dataclass
class ErrorPattern:
    """Pattern definition for recognizing a transport failure."""

    name: str
    indicators: List[str]  # Lowercase message fragments
    exception_types: Tuple[type, ...] = field(default_factory=tuple)

    def matches(self, failure: Any, message: str) -> bool:
        """Check the failure's type, then its message.

        Package errors are matched by type only; their messages are
        written by callers and carry no transport meaning.
        """
        if self.exception_types and isinstance(failure, self.exception_types):
            return True
        if isinstance(failure, ResilienceError):
            return False
        lowered = message.lower()
        return any(indicator in lowered for indicator in self.indicators)


CONNECTION_PATTERN = ErrorPattern(
    name="connection",
    indicators=[
        "connection refused",
        "connection reset",
        "connection aborted",
        "econnrefused",
        "econnreset",
        "network",
        "unreachable",
        "broken pipe",
    ],
    exception_types=(
        ConnectionError,
        NetworkError,
        aiohttp.ClientConnectionError,
        requests.exceptions.ConnectionError,
    ),
)

DNS_PATTERN = ErrorPattern(
    name="dns",
    indicators=[
        "dns",
        "getaddrinfo",
        "name resolution",
        "name or service not known",
        "nodename nor servname",
        "enotfound",
    ],
    exception_types=(socket.gaierror,),
)

ABORT_PATTERN = ErrorPattern(
    name="abort",
    indicators=["fetch", "aborted", "abort", "timed out", "timeout"],
    exception_types=(
        TimeoutError,
        asyncio.TimeoutError,
        aiohttp.ServerTimeoutError,
        requests.exceptions.Timeout,
    ),
)

TRANSPORT_PATTERNS: List[ErrorPattern] = [
    CONNECTION_PATTERN,
    DNS_PATTERN,
    ABORT_PATTERN,
]
