"""
Thin async client for the portal REST backend.

Every failure is mapped onto the domain error taxonomy so services never see
httpx types:

- 400 -> DomainValidationError (server-side field errors when present)
- 401 -> UnauthorizedError, 403 -> ForbiddenError
- 404 -> NotFoundError, 409 -> ConflictError
- 5xx and network errors -> ServiceUnavailableError
"""

from typing import Any

import httpx
import structlog

from school_health.config import PortalApiConfig
from school_health.domain.errors import (
    ConflictError,
    DomainValidationError,
    ForbiddenError,
    HealthCampaignError,
    NotFoundError,
    ServiceUnavailableError,
    UnauthorizedError,
)

logger = structlog.get_logger(__name__)


def _server_message(response: httpx.Response) -> str | None:
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict) and isinstance(body.get("message"), str):
        return body["message"]
    return None


def _field_errors(response: httpx.Response) -> dict[str, str]:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict) and isinstance(body.get("errors"), dict):
        return {str(k): str(v) for k, v in body["errors"].items()}
    message = _server_message(response) or "Invalid data provided"
    return {"request": message}


def error_for_response(response: httpx.Response, path: str) -> HealthCampaignError:
    """Translate a non-2xx response into a domain error."""
    status = response.status_code
    message = _server_message(response)
    detail = f"{response.request.method} {path} returned HTTP {status}"
    if message:
        detail = f"{detail}: {message}"

    if status == 400:
        return DomainValidationError(_field_errors(response))
    if status == 401:
        return UnauthorizedError(detail)
    if status == 403:
        return ForbiddenError(detail)
    if status == 404:
        return NotFoundError("resource", path)
    if status == 409:
        return ConflictError(detail, user_message=message) if message else ConflictError(detail)
    if status >= 500:
        return ServiceUnavailableError(
            detail,
            user_message="Server error: An internal server error occurred. Please try again later.",
        )
    return HealthCampaignError(detail)


class PortalApiClient:
    def __init__(
        self,
        config: PortalApiConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config
        self._transport = transport
        self.logger = logger.bind(component="portal_api", base_url=config.base_url)

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.config.auth_token:
            headers["Authorization"] = f"Bearer {self.config.auth_token}"
        return headers

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> Any:
        """Send one request and return the decoded JSON body (None for empty bodies)."""
        url = f"{self.config.base_url}{path}"
        try:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(self.config.timeout_seconds),
                headers=self._headers(),
                transport=self._transport,
            ) as client:
                resp = await client.request(method, url, params=params, json=json)
                resp.raise_for_status()
        except httpx.TimeoutException as e:
            self.logger.warning("portal_api_timeout", method=method, path=path)
            raise ServiceUnavailableError(
                f"{method} {path} timed out after {self.config.timeout_seconds}s"
            ) from e
        except httpx.RequestError as e:
            self.logger.warning("portal_api_network_error", method=method, path=path, error=str(e))
            raise ServiceUnavailableError(f"network error calling {method} {path}: {e}") from e
        except httpx.HTTPStatusError as e:
            self.logger.warning(
                "portal_api_http_error",
                method=method,
                path=path,
                status=e.response.status_code,
            )
            raise error_for_response(e.response, path) from e

        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise ServiceUnavailableError(f"{method} {path} returned a non-JSON body") from e

    async def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, json: Any = None) -> Any:
        return await self.request("POST", path, json=json)

    async def put(self, path: str, json: Any = None) -> Any:
        return await self.request("PUT", path, json=json)

    async def delete(self, path: str) -> Any:
        return await self.request("DELETE", path)

