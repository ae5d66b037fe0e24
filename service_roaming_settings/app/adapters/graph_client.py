"""
Microsoft Graph client for user open extensions.
"""

import time
from typing import Any, Dict, Optional, TYPE_CHECKING

import httpx
from pydantic import BaseModel, Field

from shared.logging import get_logger
from shared.circuit_breaker import CircuitBreaker, CircuitBreakerOpenException
from shared.retry import retry_on_exception, RetryConfig, RetryError
from ..exceptions import GraphServiceError, ExtensionNotFoundError, SettingNotFoundError

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


OPEN_EXTENSION_ODATA_TYPE = "microsoft.graph.openTypeExtension"

# Properties Graph models explicitly; everything else lands in additional_data.
_MODELED_PROPERTIES = ("id", "extensionName", "@odata.type")


def is_transient_failure(error: BaseException) -> bool:
    """Whether a failed Graph call is worth retrying and counts against the circuit."""
    if isinstance(error, RetryError):
        return is_transient_failure(error.last_exception)
    if isinstance(error, GraphServiceError):
        return error.transient
    return isinstance(error, httpx.HTTPError)


def retry_after_hint(error: BaseException) -> Optional[float]:
    if isinstance(error, GraphServiceError):
        return error.retry_after
    return None


def parse_retry_after(value: Optional[str]) -> Optional[float]:
    """Seconds from a Retry-After header; Graph sends delta-seconds."""
    if not value:
        return None
    try:
        seconds = float(value)
    except ValueError:
        return None
    return seconds if seconds >= 0 else None


class ExtensionDocument(BaseModel):
    """An open extension on a Graph user."""

    id: Optional[str] = None
    extension_name: Optional[str] = None
    additional_data: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_response(cls, response: httpx.Response) -> "ExtensionDocument":
        """Build a document from a Graph response.

        Mirrors the Graph SDK: unmodeled body properties (including
        ``@odata.context``) go into additional_data together with the
        ``statusCode`` and ``responseHeaders`` of the response.
        """
        body = response.json() if response.content else {}
        additional_data = {
            key: value for key, value in body.items() if key not in _MODELED_PROPERTIES
        }
        additional_data["responseHeaders"] = dict(response.headers)
        additional_data["statusCode"] = response.status_code

        return cls(
            id=body.get("id"),
            extension_name=body.get("extensionName"),
            additional_data=additional_data,
        )


class GraphExtensionsClient:
    """Client for reading and writing open extensions on Graph users."""

    def __init__(
        self,
        base_url: str = "https://graph.microsoft.com/v1.0",
        access_token: Optional[str] = None,
        *,
        timeout: float = 10.0,
        retry_config: Optional[RetryConfig] = None,
        failure_threshold: int = 3,
        recovery_timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.base_url = base_url.rstrip('/')
        self.access_token = access_token
        self.timeout = timeout
        self.transport = transport
        self.metrics = metrics
        self.logger = get_logger("roaming.graph_client")

        self.circuit_breaker = CircuitBreaker(
            failure_threshold=failure_threshold,
            recovery_timeout=recovery_timeout,
            name="graph_api",
            is_failure=is_transient_failure
        )

        self.retry_config = retry_config or RetryConfig(
            max_attempts=3,
            base_delay=1.0,
            max_delay=10.0,
            exponential_base=2.0,
            jitter=True
        )

    def _extension_url(self, user_id: str, extension_id: Optional[str] = None) -> str:
        url = f"{self.base_url}/users/{user_id}/extensions"
        if extension_id is not None:
            url = f"{url}/{extension_id}"
        return url

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        return headers

    async def _request(self, method: str, url: str, operation: str,
                       json: Optional[Dict[str, Any]] = None) -> httpx.Response:
        """Send a request behind the circuit breaker.

        Transport errors, throttling (429) and 5xx responses are retried, honoring
        Graph's Retry-After, and count against the circuit. Other statuses are
        returned for the caller to interpret.
        """

        @retry_on_exception(
            (httpx.HTTPError, GraphServiceError),
            config=self.retry_config,
            retry_if=is_transient_failure,
            delay_hint=retry_after_hint
        )
        async def _send() -> httpx.Response:
            start_time = time.time()
            try:
                async with httpx.AsyncClient(
                    timeout=self.timeout,
                    headers=self._headers(),
                    transport=self.transport,
                ) as client:
                    response = await client.request(method, url, json=json)
            except httpx.HTTPError:
                self._record_request(method, "error", start_time)
                raise

            self._record_request(method, str(response.status_code), start_time)
            if response.status_code == 429 or response.status_code >= 500:
                self._raise_for_status(response, operation)
            return response

        try:
            return await self.circuit_breaker.call(_send)
        except CircuitBreakerOpenException as e:
            self.logger.warning("Graph request blocked by open circuit", method=method, url=url)
            raise GraphServiceError(
                "Graph API unavailable (circuit open)",
                details={"error": str(e), "circuit": self.circuit_breaker.get_state()},
                retry_after=e.retry_in
            )
        except RetryError as e:
            self.logger.error(
                "Graph request failed after retries",
                method=method,
                url=url,
                attempts=e.attempts,
                error=str(e.last_exception)
            )
            if isinstance(e.last_exception, GraphServiceError):
                raise e.last_exception
            raise GraphServiceError(
                "Graph API unavailable",
                details={"http_error": str(e.last_exception)}
            )

    def _record_request(self, method: str, status_code: str, start_time: float):
        if self.metrics is None:
            return
        self.metrics.increment_counter("graph_requests_total", method=method, status_code=status_code)
        self.metrics.observe_histogram(
            "graph_request_duration_seconds", time.time() - start_time, method=method
        )

    def _raise_for_status(self, response: httpx.Response, operation: str):
        self.logger.error(
            "Graph request failed",
            operation=operation,
            status_code=response.status_code,
        )
        try:
            error = response.json().get("error", {})
        except ValueError:
            error = {}
        raise GraphServiceError(
            f"{operation} failed with status {response.status_code}",
            details={"status_code": response.status_code, "graph_error": error},
            status_code=response.status_code,
            retry_after=parse_retry_after(response.headers.get("Retry-After"))
        )

    async def get_extension(self, user_id: str, extension_id: str) -> ExtensionDocument:
        """Retrieve a user extension."""
        response = await self._request("GET", self._extension_url(user_id, extension_id), "get_extension")

        if response.status_code == 200:
            return ExtensionDocument.from_response(response)
        if response.status_code == 404:
            raise ExtensionNotFoundError(user_id, extension_id)
        self._raise_for_status(response, "get_extension")

    async def create_extension(self, user_id: str, extension_id: str) -> ExtensionDocument:
        """Create a new open extension on a user."""
        payload = {
            "@odata.type": OPEN_EXTENSION_ODATA_TYPE,
            "extensionName": extension_id,
        }
        response = await self._request("POST", self._extension_url(user_id), "create_extension", json=payload)

        if response.status_code in (200, 201):
            self.logger.info("Created user extension", user_id=user_id, extension_id=extension_id)
            return ExtensionDocument.from_response(response)
        self._raise_for_status(response, "create_extension")

    async def delete_extension(self, user_id: str, extension_id: str) -> None:
        """Delete an open extension from a user."""
        response = await self._request("DELETE", self._extension_url(user_id, extension_id), "delete_extension")

        if response.status_code in (200, 204):
            self.logger.info("Deleted user extension", user_id=user_id, extension_id=extension_id)
            return
        self._raise_for_status(response, "delete_extension")

    async def set_value(self, user_id: str, extension_id: str, key: str, value: Any) -> None:
        """Set one key on a user extension, leaving other keys untouched."""
        payload = {
            "@odata.type": OPEN_EXTENSION_ODATA_TYPE,
            key: value,
        }
        response = await self._request("PATCH", self._extension_url(user_id, extension_id), "set_value", json=payload)

        if response.status_code in (200, 204):
            self.logger.debug("Updated extension value", user_id=user_id, extension_id=extension_id, key=key)
            return
        self._raise_for_status(response, "set_value")

    async def get_value(self, user_id: str, extension_id: str, key: str) -> Any:
        """Retrieve a single value from a user extension."""
        extension = await self.get_extension(user_id, extension_id)
        if key not in extension.additional_data:
            raise SettingNotFoundError(key, extension_id)
        return extension.additional_data[key]
