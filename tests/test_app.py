"""Tests for app-wide behavior: health check, headers, JSON errors."""

import json


class TestHealth:
    def test_healthz(self, client):
        resp = client.get("/healthz")
        assert resp.status_code == 200
        assert json.loads(resp.data) == {"ok": True}


class TestSecurityHeaders:
    """Every response carries the security headers."""

    def test_headers_present(self, client):
        resp = client.get("/healthz")
        assert resp.headers["X-Content-Type-Options"] == "nosniff"
        assert resp.headers["X-Frame-Options"] == "DENY"
        assert resp.headers["Referrer-Policy"] == "strict-origin-when-cross-origin"
        assert "default-src 'none'" in resp.headers["Content-Security-Policy"]

    def test_no_cors_outside_api(self, client):
        resp = client.get("/healthz")
        assert "Access-Control-Allow-Origin" not in resp.headers


class TestCors:
    """The browser client calls /api/* cross-origin."""

    def test_api_response_allows_any_origin(self, client, seed_data):
        resp = client.get("/api/purchases?uid=uid_buyer")
        assert resp.headers["Access-Control-Allow-Origin"] == "*"

    def test_preflight(self, client):
        resp = client.options("/api/checkout")
        assert resp.status_code == 200
        assert resp.headers["Access-Control-Allow-Origin"] == "*"
        assert "POST" in resp.headers["Access-Control-Allow-Methods"]
        assert resp.headers["Access-Control-Allow-Headers"] == "Content-Type"

    def test_error_responses_keep_cors(self, client, seed_data):
        resp = client.post("/api/checkout", json={})
        assert resp.status_code == 400
        assert resp.headers["Access-Control-Allow-Origin"] == "*"


class TestJsonErrors:
    def test_unknown_route(self, client):
        resp = client.get("/api/nope")
        assert resp.status_code == 404
        assert json.loads(resp.data) == {"error": "Not found"}

    def test_wrong_method(self, client):
        resp = client.get("/api/checkout")
        assert resp.status_code == 405
        assert json.loads(resp.data) == {"error": "Method not allowed"}
