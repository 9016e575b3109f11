"""
JSON API client whose requests run through the resilience strategies.

Transport failures (connection errors, timeouts) are left to the classifier;
HTTP error statuses are raised as typed errors carrying the status code so
retry and circuit breaking treat them the same way as any other failure.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

import aiohttp

from .classification import ErrorClassifier
from .exceptions import (
    AuthenticationError,
    AuthorizationError,
    ExternalServiceError,
    ResilienceError,
    ValidationError,
)
from .strategies.base import run_operation
from .strategies.circuit_breaker import CircuitBreaker
from .strategies.retry import RetryExecutor
from .types import Notifier, RandomSource, RetryPolicy, Sleeper

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


@dataclass
class ApiResponse:
    """Decoded response of a successful request."""
    data: Any
    status: int
    headers: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


def error_for_status(status: int, data: Any, url: str, service: str = "api") -> ResilienceError:
    """Map a non-2xx response to the matching typed error."""
    message = None
    if isinstance(data, Mapping):
        message = data.get("message") or data.get("error")
    if not isinstance(message, str) or not message:
        message = f"HTTP {status} from {url}"

    metadata = {"url": url}
    if status == 401:
        return AuthenticationError(message, status_code=status, metadata=metadata)
    if status == 403:
        return AuthorizationError(message, resource=url, status_code=status, metadata=metadata)
    if status in (400, 422):
        return ValidationError(message, status_code=status, metadata=metadata)
    return ExternalServiceError(message, service=service, status_code=status, metadata=metadata)


class ResilientHttpClient:
    """
    aiohttp client with retries and an optional circuit breaker.

    Every attempt of a request goes through the breaker, so an open circuit
    ends the retry loop at once. The session is created lazily unless one
    is passed in; an injected session is never closed by the client.
    """

    def __init__(
        self,
        base_url: str = "",
        timeout: float = DEFAULT_TIMEOUT,
        default_headers: Optional[Mapping[str, str]] = None,
        retry_policy: Optional[RetryPolicy] = None,
        circuit_breaker: Optional[CircuitBreaker] = None,
        session: Optional[aiohttp.ClientSession] = None,
        service: str = "api",
        classifier: Optional[ErrorClassifier] = None,
        logger: Optional[logging.Logger] = None,
        rng: Optional[RandomSource] = None,
        sleep: Optional[Sleeper] = None,
        notifier: Optional[Notifier] = None,
    ):
        if timeout <= 0:
            raise ValueError(f"timeout must be > 0, got {timeout}")
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.service = service
        self.default_headers: Dict[str, str] = {
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        self.default_headers.update(default_headers or {})
        self.circuit_breaker = circuit_breaker
        self.logger = logger or logging.getLogger(__name__)
        self.classifier = classifier or ErrorClassifier()
        self.retry = RetryExecutor(
            retry_policy,
            classifier=self.classifier,
            logger=self.logger,
            rng=rng,
            sleep=sleep,
            notifier=notifier,
        )
        self._session = session
        self._owns_session = session is None
        self._access_token: Optional[str] = None
        self._token_type = "Bearer"

    async def __aenter__(self) -> "ResilientHttpClient":
        self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Close the HTTP session if this client created it."""
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
        if self._owns_session:
            self._session = None

    def set_auth_tokens(self, access_token: str, token_type: str = "Bearer") -> None:
        self._access_token = access_token
        self._token_type = token_type

    def clear_auth_tokens(self) -> None:
        self._access_token = None
        self._token_type = "Bearer"

    @property
    def has_auth_token(self) -> bool:
        return self._access_token is not None

    def build_url(self, path: str) -> str:
        if path.startswith(("http://", "https://")) or not self.base_url:
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    def build_headers(
        self,
        headers: Optional[Mapping[str, str]] = None,
        skip_auth: bool = False,
    ) -> Dict[str, str]:
        merged = dict(self.default_headers)
        merged.update(headers or {})
        if not skip_auth and self._access_token:
            merged["Authorization"] = f"{self._token_type} {self._access_token}"
        return merged

    async def get(self, path: str, **kwargs: Any) -> ApiResponse:
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, data: Any = None, **kwargs: Any) -> ApiResponse:
        return await self.request("POST", path, data=data, **kwargs)

    async def put(self, path: str, data: Any = None, **kwargs: Any) -> ApiResponse:
        return await self.request("PUT", path, data=data, **kwargs)

    async def patch(self, path: str, data: Any = None, **kwargs: Any) -> ApiResponse:
        return await self.request("PATCH", path, data=data, **kwargs)

    async def delete(self, path: str, **kwargs: Any) -> ApiResponse:
        return await self.request("DELETE", path, **kwargs)

    async def request(
        self,
        method: str,
        path: str,
        data: Any = None,
        params: Optional[Mapping[str, Any]] = None,
        headers: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = None,
        skip_retry: bool = False,
        skip_auth: bool = False,
    ) -> ApiResponse:
        """
        Send a request and decode the response.

        Args:
            method: HTTP method
            path: Path joined onto ``base_url``, or an absolute URL
            data: Body; mappings and lists are sent as JSON, strings and bytes as-is
            params: Query parameters
            headers: Extra headers for this request
            timeout: Total timeout in seconds for each attempt
            skip_retry: Make a single attempt
            skip_auth: Do not send the bearer token

        Returns:
            ApiResponse with JSON, text or bytes data depending on content type

        Raises:
            ResilienceError: Typed error for error statuses, classified error otherwise
        """
        url = self.build_url(path)
        request_headers = self.build_headers(headers, skip_auth)
        attempt_timeout = timeout if timeout is not None else self.timeout

        async def attempt() -> ApiResponse:
            return await self._send(method, url, data, params, request_headers, attempt_timeout)

        if self.circuit_breaker is not None:
            breaker = self.circuit_breaker

            async def operation() -> ApiResponse:
                return await breaker.execute(attempt)
        else:
            operation = attempt

        context = f"{method} {url}"
        if skip_retry:
            try:
                return await run_operation(operation)
            except Exception as failure:
                error = self.classifier.to_error(failure)
                self.logger.error(f"Request failed [{context}]: {error}")
                if error is failure:
                    raise
                raise error from failure
        return await self.retry.execute(operation, context=context)

    async def _send(
        self,
        method: str,
        url: str,
        data: Any,
        params: Optional[Mapping[str, Any]],
        headers: Dict[str, str],
        timeout: float,
    ) -> ApiResponse:
        session = self._ensure_session()
        body: Dict[str, Any] = {}
        if data is not None and method != "GET":
            if isinstance(data, (str, bytes)):
                body["data"] = data
            else:
                body["json"] = data

        self.logger.debug(f"HTTP {method} {url}")
        async with session.request(
            method,
            url,
            params=params,
            headers=headers,
            timeout=aiohttp.ClientTimeout(total=timeout),
            **body,
        ) as response:
            payload = await self._read_body(response)
            response_headers = dict(response.headers)
            if not 200 <= response.status < 300:
                self.logger.debug(f"HTTP {method} {url} -> {response.status}")
                raise error_for_status(response.status, payload, url, self.service)
            return ApiResponse(payload, response.status, response_headers)

    @staticmethod
    async def _read_body(response: Any) -> Any:
        content_type = response.headers.get("Content-Type", "")
        if "application/json" in content_type:
            try:
                return await response.json()
            except (aiohttp.ContentTypeError, ValueError):
                return await response.text()
        if content_type.startswith("text/"):
            return await response.text()
        return await response.read()
