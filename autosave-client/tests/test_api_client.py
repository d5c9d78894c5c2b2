"""Tests for the autosave HTTP client: retries, conflicts and rejections."""

import asyncio
import json

import httpx
import pytest

from ottowrite_autosave.api_client import (
    AutosaveAPIClient,
    AutosaveConflict,
    AutosaveRejected,
    AutosaveUnavailable,
)


def _client(handler, **kwargs) -> AutosaveAPIClient:
    return AutosaveAPIClient(
        base_url="http://ottowrite.test",
        token=kwargs.pop("token", ""),
        retry_base_delay=0,
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


def _save(client: AutosaveAPIClient) -> dict:
    async def run():
        try:
            return await client.autosave(
                "doc-1", html="<p>x</p>", structure=[], anchor_ids=[], word_count=1, base_hash="h0",
            )
        finally:
            await client.close()

    return asyncio.run(run())


class TestAutosaveRequest:

    def test_posts_payload_and_returns_body(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"status": "saved", "hash": "h1"})

        result = _save(_client(handler, token="tok"))
        assert result["hash"] == "h1"
        request = seen[0]
        assert request.url.path == "/api/documents/doc-1/autosave"
        assert request.headers["authorization"] == "Bearer tok"
        body = json.loads(request.content)
        assert body["base_hash"] == "h0"
        assert body["snapshot_only"] is False

    def test_conflict_carries_server_state(self):
        def handler(request):
            return httpx.Response(409, json={
                "error": "AUTOSAVE_CONFLICT",
                "message": "Document has been updated in another session.",
                "details": {"status": "conflict", "hash": "server-h", "document": {"html": "<p>srv</p>"}},
            })

        with pytest.raises(AutosaveConflict) as exc_info:
            _save(_client(handler))
        assert exc_info.value.server_hash == "server-h"
        assert exc_info.value.html == "<p>srv</p>"
        assert exc_info.value.structure == []

    def test_client_error_is_not_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(403, json={"error": "FORBIDDEN", "message": "nope"})

        with pytest.raises(AutosaveRejected) as exc_info:
            _save(_client(handler))
        assert exc_info.value.status_code == 403
        assert exc_info.value.error == "FORBIDDEN"
        assert len(calls) == 1

    def test_server_errors_are_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) < 3:
                return httpx.Response(503)
            return httpx.Response(200, json={"hash": "h1"})

        assert _save(_client(handler))["hash"] == "h1"
        assert len(calls) == 3

    def test_connection_errors_exhaust_retries(self):
        calls = []

        def handler(request):
            calls.append(request)
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(AutosaveUnavailable):
            _save(_client(handler, max_retries=2))
        assert len(calls) == 2
