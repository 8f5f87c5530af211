"""Tests for the httpx backend client (MockTransport, no network)."""

import json
from collections.abc import Callable
from datetime import date

import httpx
import pytest

from dotoring.config.models import BackendConfig
from dotoring.infrastructure.backend import BackendClient, BackendError

BASE = "https://proj.example.co"


def _client(handler: Callable[[httpx.Request], httpx.Response], **kwargs: object) -> BackendClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return BackendClient(
        BackendConfig(url=BASE + "/", anon_key="anon"),
        bucket="coupon-images",
        client=http,
        **kwargs,  # type: ignore[arg-type]
    )


class TestFetchCandidates:
    async def test_query_shape(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=[{"id": "c1"}, "junk"])

        rows = await _client(handler, access_token="jwt").fetch_candidates(
            "u1", since=date(2026, 3, 1), limit=200
        )
        assert rows == [{"id": "c1"}]
        req = seen[0]
        assert req.url.path == "/rest/v1/coupons"
        params = req.url.params
        assert params["user_id"] == "eq.u1"
        assert params["status"] == "neq.used"
        assert params["expire_date"] == "gte.2026-03-01"
        assert params["order"] == "expire_date.asc"
        assert params["limit"] == "200"
        assert req.headers["apikey"] == "anon"
        assert req.headers["Authorization"] == "Bearer jwt"

    async def test_http_error_raises_backend_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503, text="unavailable")

        with pytest.raises(BackendError) as exc_info:
            await _client(handler).fetch_candidates("u1", since=date(2026, 3, 1), limit=10)
        assert exc_info.value.status_code == 503
        assert exc_info.value.operation == "fetch_candidates"

    async def test_transport_error_raises_backend_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("offline", request=request)

        with pytest.raises(BackendError, match="offline"):
            await _client(handler).fetch_candidates("u1", since=date(2026, 3, 1), limit=10)


class TestSettings:
    async def test_fetch_first_row(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.params["user_id"] == "eq.u1"
            return httpx.Response(200, json=[{"notif_enabled": False, "notify_lead_days": 7}])

        row = await _client(handler).fetch_settings("u1")
        assert row == {"notif_enabled": False, "notify_lead_days": 7}

    async def test_fetch_missing_row(self) -> None:
        client = _client(lambda request: httpx.Response(200, json=[]))
        assert await client.fetch_settings("u1") is None

    async def test_upsert(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(201)

        await _client(handler).upsert_settings("u1", {"notify_lead_days": 3})
        req = seen[0]
        assert req.method == "POST"
        assert req.url.params["on_conflict"] == "user_id"
        assert "merge-duplicates" in req.headers["Prefer"]
        assert json.loads(req.content) == {"user_id": "u1", "notify_lead_days": 3}


class TestCreateSignedUrls:
    async def test_batch_sign(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200,
                json=[
                    {"path": "coupons/a.jpg", "signedURL": "/object/sign/coupon-images/a?token=1"},
                    {"path": "coupons/b.jpg", "signedURL": None, "error": "not found"},
                ],
            )

        urls = await _client(handler).create_signed_urls(["coupons/a.jpg", "coupons/b.jpg"], 3600)
        assert urls == {
            "coupons/a.jpg": f"{BASE}/storage/v1/object/sign/coupon-images/a?token=1",
            "coupons/b.jpg": None,
        }
        assert len(seen) == 1
        assert seen[0].url.path == "/storage/v1/object/sign/coupon-images"
        assert json.loads(seen[0].content) == {
            "expiresIn": 3600,
            "paths": ["coupons/a.jpg", "coupons/b.jpg"],
        }

    async def test_absolute_signed_url_kept(self) -> None:
        client = _client(
            lambda request: httpx.Response(
                200, json=[{"path": "k", "signedUrl": "https://cdn.example/k?t=1"}]
            )
        )
        assert await client.create_signed_urls(["k"], 60) == {"k": "https://cdn.example/k?t=1"}

    async def test_empty_keys_skip_request(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise AssertionError("no request expected")

        assert await _client(handler).create_signed_urls([], 60) == {}
