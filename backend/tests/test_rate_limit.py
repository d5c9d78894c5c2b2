"""Tests for the rate limiting pure function and middleware integration."""

from starlette.requests import Request

from ottowrite.core.config import settings
from ottowrite.middleware.request_context import (
    RateLimitPolicy,
    check_rate_limit,
    client_key,
    policy_for_request,
)
from tests.conftest import bearer, create_document

POLICY = RateLimitPolicy(name="test", max_requests=60, burst=0)


def _request(headers: dict, client_host: str = "10.0.0.1") -> Request:
    return Request({
        "type": "http",
        "method": "GET",
        "path": "/api/documents",
        "headers": [(k.lower().encode(), v.encode()) for k, v in headers.items()],
        "client": (client_host, 1234),
    })


class TestCheckRateLimit:
    """Unit tests for the pure function: no middleware, no HTTP."""

    def test_allows_within_limit(self):
        bucket: dict = {}
        decision = check_rate_limit(bucket, "client-a", POLICY, now=0.0)
        assert decision.allowed is True
        assert decision.retry_after == 0.0
        assert decision.remaining == 59

    def test_denies_after_exhaustion(self):
        bucket: dict = {}
        for _ in range(60):
            check_rate_limit(bucket, "client-a", POLICY, now=0.0)

        decision = check_rate_limit(bucket, "client-a", POLICY, now=0.0)
        assert decision.allowed is False
        assert decision.retry_after > 0

    def test_burst_extends_capacity(self):
        policy = RateLimitPolicy(name="test", max_requests=10, burst=5)
        bucket: dict = {}
        results = [check_rate_limit(bucket, "c", policy, now=0.0) for _ in range(16)]
        assert all(r.allowed for r in results[:15])
        assert results[15].allowed is False
        assert results[0].used_burst is False
        assert results[14].used_burst is True

    def test_refills_over_time(self):
        bucket: dict = {}
        for _ in range(60):
            check_rate_limit(bucket, "client-a", POLICY, now=0.0)

        # 2 seconds later: ~2 tokens refilled at 1 token/second
        decision = check_rate_limit(bucket, "client-a", POLICY, now=2.0)
        assert decision.allowed is True

    def test_cost_spends_multiple_tokens(self):
        policy = RateLimitPolicy(name="merge", max_requests=3, cost=2.0)
        bucket: dict = {}
        assert check_rate_limit(bucket, "c", policy, now=0.0).allowed is True
        assert check_rate_limit(bucket, "c", policy, now=0.0).allowed is False

    def test_separate_keys_independent(self):
        bucket: dict = {}
        for _ in range(60):
            check_rate_limit(bucket, "client-a", POLICY, now=0.0)

        decision = check_rate_limit(bucket, "client-b", POLICY, now=0.0)
        assert decision.allowed is True

    def test_zero_limit_always_allows(self):
        bucket: dict = {}
        policy = RateLimitPolicy(name="off", max_requests=0)
        assert check_rate_limit(bucket, "any", policy, now=0.0).allowed is True


class TestPolicySelection:

    def test_autosave_post_uses_save_policy(self):
        assert policy_for_request("POST", "/api/documents/abc/autosave").name == "document_save"
        assert policy_for_request("POST", "/api/documents/abc/autosave/resolve").name == "document_save"

    def test_merge_post_uses_merge_policy(self):
        policy = policy_for_request("POST", "/api/branches/merge")
        assert policy.name == "branch_merge"
        assert policy.cost == 2.0

    def test_everything_else_is_general(self):
        assert policy_for_request("GET", "/api/documents/abc/autosave").name == "api_general"
        assert policy_for_request("GET", "/api/branches/merge").name == "api_general"
        assert policy_for_request("POST", "/api/documents").name == "api_general"


class TestClientKey:

    def test_falls_back_to_client_host(self):
        assert client_key(_request({})) == "ip:10.0.0.1"

    def test_proxy_header_order(self):
        headers = {
            "X-Forwarded-For": "1.1.1.1, 2.2.2.2",
            "X-Real-IP": "3.3.3.3",
            "CF-Connecting-IP": "4.4.4.4",
        }
        assert client_key(_request(headers)) == "ip:4.4.4.4"
        del headers["CF-Connecting-IP"]
        assert client_key(_request(headers)) == "ip:3.3.3.3"
        del headers["X-Real-IP"]
        assert client_key(_request(headers)) == "ip:1.1.1.1"

    def test_valid_token_keys_by_user(self, auth_enabled):
        assert client_key(_request(bearer("user-9"))) == "user:user-9"

    def test_invalid_token_keys_by_ip(self, auth_enabled):
        assert client_key(_request({"Authorization": "Bearer junk"})) == "ip:10.0.0.1"


class TestRateLimitMiddleware:

    def test_headers_on_allowed_request(self, client):
        resp = client.get("/api/documents")
        assert resp.status_code == 200
        assert resp.headers["x-ratelimit-limit"] == str(settings.rate_limit_per_minute)
        assert "x-ratelimit-remaining" in resp.headers

    def test_exceeding_limit_returns_429(self, client, monkeypatch):
        monkeypatch.setattr(settings, "rate_limit_per_minute", 2)
        monkeypatch.setattr(settings, "rate_limit_burst", 0)

        assert client.get("/api/documents").status_code == 200
        assert client.get("/api/documents").status_code == 200
        resp = client.get("/api/documents")

        assert resp.status_code == 429
        assert resp.json()["error"] == "RATE_LIMITED"
        assert resp.json()["details"]["limit"] == 2
        assert int(resp.headers["retry-after"]) >= 1
        assert resp.headers["x-ratelimit-remaining"] == "0"

    def test_autosave_bucket_is_separate(self, client, monkeypatch):
        doc = create_document(client)
        monkeypatch.setattr(settings, "rate_limit_save_per_minute", 1)
        monkeypatch.setattr(settings, "rate_limit_save_burst", 0)

        url = f"/api/documents/{doc['id']}/autosave"
        assert client.post(url, json={"html": "<p>a</p>", "snapshot_only": True}).status_code == 200
        resp = client.post(url, json={"html": "<p>b</p>", "snapshot_only": True})
        assert resp.status_code == 429
        assert "Autosave" in resp.json()["message"]

        # General traffic still flows.
        assert client.get(f"/api/documents/{doc['id']}").status_code == 200

    def test_health_is_exempt(self, client, monkeypatch):
        monkeypatch.setattr(settings, "rate_limit_per_minute", 1)
        monkeypatch.setattr(settings, "rate_limit_burst", 0)
        for _ in range(5):
            assert client.get("/health").status_code == 200

    def test_disabled_limiter_sets_no_headers(self, client, monkeypatch):
        monkeypatch.setattr(settings, "rate_limit_enabled", False)
        resp = client.get("/api/documents")
        assert resp.status_code == 200
        assert "x-ratelimit-limit" not in resp.headers
