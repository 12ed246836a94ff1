"""Async HTTP client for the admin console.

Every failure surfaces as a :class:`ConsoleError` subclass so page
controllers can funnel them into one notification path.
"""

import logging
from typing import Any, Optional

import httpx

logger = logging.getLogger(__name__)


class ConsoleError(Exception):
    title = "Error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NetworkError(ConsoleError):
    title = "Network error"


class ApiError(ConsoleError):
    def __init__(self, status_code: int, message: str, payload: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.payload = payload


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        message = body.get("error") or body.get("message") or body.get("detail")
        if isinstance(message, str) and message:
            return message
    text = (response.text or "").strip()
    return text[:200] or response.reason_phrase or f"Request failed with status {response.status_code}"


class ApiClient:
    def __init__(
        self,
        base_url: str,
        session=None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 15.0,
    ):
        self.session = session
        self._client = httpx.AsyncClient(base_url=base_url.rstrip("/"), transport=transport, timeout=timeout)

    async def request(
        self,
        method: str,
        path: str,
        json: Any = None,
        params: Optional[dict] = None,
    ) -> Any:
        headers = {"Accept": "application/json"}
        token = self.session.access_token() if self.session is not None else None
        if token:
            headers["Authorization"] = f"Bearer {token}"

        try:
            response = await self._client.request(method.upper(), path, json=json, params=params, headers=headers)
        except httpx.RequestError as exc:
            logger.warning("%s %s failed: %s", method.upper(), path, exc)
            raise NetworkError(str(exc) or "Unable to reach the server") from exc

        if self.session is not None:
            self.session.touch()

        if response.is_error:
            raise ApiError(response.status_code, _error_message(response), _safe_json(response))
        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            logger.warning("%s %s returned a non-JSON body (%s)", method.upper(), path, response.headers.get("content-type"))
            raise ApiError(response.status_code, "Invalid response from server") from exc

    async def get(self, path: str, params: Optional[dict] = None) -> Any:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, json: Any = None) -> Any:
        return await self.request("POST", path, json=json)

    async def patch(self, path: str, json: Any = None) -> Any:
        return await self.request("PATCH", path, json=json)

    async def delete(self, path: str) -> Any:
        return await self.request("DELETE", path)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()


def _safe_json(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None
