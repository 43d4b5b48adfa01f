# livequiz/api_client.py
# =====================================================================================
# PURPOSE
#   Reusable JSON-over-HTTP client (no UI code) that:
#     - Sends one request per call to a single service base URL
#     - Adds the bearer token from the SessionContext when the call needs auth
#     - Turns transport failures and error statuses into livequiz.errors types,
#       preferring the backend's own message when the body carries one
#     - Exposes `async request(...)` so screens and pollers can await it
#
# KEY TECHNOLOGIES
#   - requests: a Session per service keeps connections alive between polls
#   - asyncio.to_thread: only the blocking socket I/O leaves the event loop;
#     every result is handed back to the loop before any state is touched
# =====================================================================================
from __future__ import annotations

import asyncio
from typing import Any, Optional

import requests

from livequiz.common import SessionContext, logger
from livequiz.errors import (
    ConnectivityError,
    NotFoundError,
    QuizClientError,
    SessionStateError,
    Unauthorized,
    ValidationError,
)

_STATUS_ERRORS = {
    400: ValidationError,
    401: Unauthorized,
    403: Unauthorized,
    404: NotFoundError,
    409: SessionStateError,
    422: ValidationError,
}


def backend_message(body: Any) -> Optional[str]:
    """Pull a human-readable message out of an error body, if there is one."""
    if isinstance(body, dict):
        for key in ("message", "error", "detail"):
            value = body.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
    return None


class ApiClient:
    """Transport-only HTTP client for one service.

    Parameters
    ----------
    base_url : str
        Service root, e.g. http://localhost:8081
    context : SessionContext
        Source of the bearer token. Read on every request, so a logout takes
        effect immediately.
    timeout : float
        Per-request timeout in seconds.
    session : requests.Session, optional
        Injected in tests; a fresh Session otherwise.
    """

    def __init__(self, base_url: str, context: SessionContext, timeout: float = 10.0,
                 session: Optional[requests.Session] = None) -> None:
        self.base_url = base_url.rstrip("/")
        self.context = context
        self.timeout = timeout
        self.http = session if session is not None else requests.Session()
        self.http.headers.update({"Content-Type": "application/json"})

    async def request(self, method: str, path: str, *, json: Optional[dict] = None,
                      params: Optional[dict] = None, auth: bool = True) -> Any:
        """Send one request and return the decoded JSON body ({} when empty)."""
        headers = {}
        if auth and self.context.token:
            headers["Authorization"] = f"Bearer {self.context.token}"
        return await asyncio.to_thread(self._send, method.upper(), path, json, params, headers)

    async def get(self, path: str, **kwargs) -> Any:
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, **kwargs) -> Any:
        return await self.request("POST", path, **kwargs)

    def close(self) -> None:
        self.http.close()

    # ----- internals -------------------------------------------------------

    def _send(self, method: str, path: str, payload: Optional[dict],
              params: Optional[dict], headers: dict) -> Any:
        url = f"{self.base_url}{path}"
        logger.debug(f"API request [{method}] {url} params={params} body={payload}")
        try:
            response = self.http.request(method, url, json=payload, params=params,
                                         headers=headers, timeout=self.timeout)
        except (requests.ConnectionError, requests.Timeout) as e:
            logger.warning(f"API request [{method}] {url} got no response: {e}")
            raise ConnectivityError() from e
        except requests.RequestException as e:
            logger.error(f"API request [{method}] {url} failed: {e}")
            raise QuizClientError(str(e)) from e

        body = self._decode(response)
        logger.debug(f"API response [{method}] {url} status={response.status_code}")

        if response.status_code >= 400:
            error_cls = _STATUS_ERRORS.get(response.status_code, QuizClientError)
            message = backend_message(body)
            logger.info(f"API error [{method}] {url} status={response.status_code} message={message}")
            raise error_cls(message, status=response.status_code, detail=body)
        return body

    @staticmethod
    def _decode(response: requests.Response) -> Any:
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError:
            return {}
