"""HTTP client for the Ottowrite autosave endpoints."""

import asyncio
import logging
import os
from typing import Any, Optional

import httpx

logger = logging.getLogger(__name__)

# Retry configuration for transient failures (connection errors, timeouts, 5xx).
MAX_RETRIES = 3
RETRY_BASE_DELAY = 1.0  # seconds; exponential: 1s, 2s, 4s


class AutosaveError(Exception):
    """Base class for autosave failures surfaced to the editor."""


class AutosaveConflict(AutosaveError):
    """The server refused the save because another session wrote first.

    Carries the server's current content so the editor can offer
    keep-local / keep-server / keep-both.
    """

    def __init__(self, server_hash: str, document: dict[str, Any]):
        self.server_hash = server_hash
        self.document = document
        super().__init__("Document has been updated in another session")

    @property
    def html(self) -> str:
        return self.document.get("html") or ""

    @property
    def structure(self) -> list:
        return self.document.get("structure") or []


class AutosaveRejected(AutosaveError):
    """A 4xx other than 409: retrying the same request will not help."""

    def __init__(self, status_code: int, error: str, message: str):
        self.status_code = status_code
        self.error = error
        super().__init__(f"{status_code} {error}: {message}")


class AutosaveUnavailable(AutosaveError):
    """The server could not be reached (or kept failing) after all retries."""


class AutosaveAPIClient:
    """Async client for ``/api/documents/{id}/autosave``.

    Configuration via arguments or environment variables:
        OTTOWRITE_API_URL     Backend base URL (default: http://localhost:8000)
        OTTOWRITE_API_TOKEN   Optional Bearer token
        OTTOWRITE_API_TIMEOUT Request timeout in seconds (default: 30)

    ``transport`` lets tests plug in ``httpx.MockTransport``.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
        max_retries: int = MAX_RETRIES,
        retry_base_delay: float = RETRY_BASE_DELAY,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url or os.environ.get("OTTOWRITE_API_URL", "http://localhost:8000")
        self.token = token if token is not None else os.environ.get("OTTOWRITE_API_TOKEN", "")
        self.timeout = timeout or float(os.environ.get("OTTOWRITE_API_TIMEOUT", "30"))
        self.max_retries = max(1, max_retries)
        self.retry_base_delay = retry_base_delay
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            headers: dict[str, str] = {}
            if self.token:
                headers["Authorization"] = f"Bearer {self.token}"
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=headers,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def _request_with_retry(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """Execute a request, retrying connection errors, timeouts and 5xx.

        409 raises ``AutosaveConflict`` and other 4xx ``AutosaveRejected``,
        both without retrying. Exhausted retries raise ``AutosaveUnavailable``.
        """
        client = await self._get_client()
        last_exc: Optional[Exception] = None

        for attempt in range(self.max_retries):
            try:
                resp = await client.request(method, path, **kwargs)
                if resp.status_code < 400:
                    return resp
                if resp.status_code == 409:
                    raise self._conflict(resp)
                if resp.status_code < 500:
                    raise self._rejected(resp)
                last_exc = httpx.HTTPStatusError(
                    f"Server error {resp.status_code}",
                    request=resp.request,
                    response=resp,
                )
            except httpx.TransportError as exc:
                last_exc = exc

            if attempt < self.max_retries - 1:
                delay = self.retry_base_delay * (2 ** attempt)
                logger.warning(
                    "Request %s %s failed (attempt %d/%d), retrying in %.1fs: %s",
                    method, path, attempt + 1, self.max_retries, delay, last_exc,
                )
                await asyncio.sleep(delay)

        raise AutosaveUnavailable(f"{method} {path} failed after {self.max_retries} attempts: {last_exc}")

    @staticmethod
    def _error_body(resp: httpx.Response) -> dict[str, Any]:
        try:
            body = resp.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}

    def _conflict(self, resp: httpx.Response) -> AutosaveConflict:
        details = self._error_body(resp).get("details") or {}
        return AutosaveConflict(details.get("hash") or "", details.get("document") or {})

    def _rejected(self, resp: httpx.Response) -> AutosaveRejected:
        body = self._error_body(resp)
        return AutosaveRejected(
            resp.status_code,
            body.get("error") or "HTTP_ERROR",
            body.get("message") or resp.reason_phrase,
        )

    async def autosave(
        self,
        doc_id: str,
        html: str,
        structure: list,
        anchor_ids: list[str],
        word_count: int,
        base_hash: Optional[str],
        metadata: Optional[dict[str, Any]] = None,
        snapshot_only: bool = False,
    ) -> dict[str, Any]:
        """Save editor state. Maps to POST /api/documents/{doc_id}/autosave."""
        payload: dict[str, Any] = {
            "html": html,
            "structure": structure,
            "anchor_ids": anchor_ids,
            "word_count": word_count,
            "base_hash": base_hash,
            "snapshot_only": snapshot_only,
        }
        if metadata is not None:
            payload["metadata"] = metadata
        resp = await self._request_with_retry("POST", f"/api/documents/{doc_id}/autosave", json=payload)
        return resp.json()

    async def resolve(
        self,
        doc_id: str,
        strategy: str,
        server_hash: str,
        html: str,
        structure: list,
        anchor_ids: list[str],
    ) -> dict[str, Any]:
        """Settle a conflict. Maps to POST /api/documents/{doc_id}/autosave/resolve."""
        resp = await self._request_with_retry(
            "POST",
            f"/api/documents/{doc_id}/autosave/resolve",
            json={
                "strategy": strategy,
                "server_hash": server_hash,
                "html": html,
                "structure": structure,
                "anchor_ids": anchor_ids,
            },
        )
        return resp.json()

    async def fetch_document(self, doc_id: str) -> dict[str, Any]:
        """Current server document with its hash. Maps to GET /api/documents/{doc_id}."""
        resp = await self._request_with_retry("GET", f"/api/documents/{doc_id}")
        return resp.json()

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client and not self._client.is_closed:
            await self._client.aclose()
