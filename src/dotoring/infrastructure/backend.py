"""Hosted backend client (PostgREST tables + object storage signing) over httpx.

One :class:`BackendClient` satisfies the ``CouponQuery``, ``SettingsStore``
and ``UrlSigner`` protocols. Transport and HTTP status failures surface as
:class:`BackendError`; callers in the service layer decide whether to absorb.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import date
from typing import Any

import httpx

from dotoring.config.models import BackendConfig

COUPON_COLUMNS = "id,title,expire_date,status,image_url"
SETTINGS_COLUMNS = "notif_enabled,notify_lead_days"


class BackendError(RuntimeError):
    """A backend request failed (transport error or non-2xx response)."""

    def __init__(self, operation: str, message: str, *, status_code: int | None = None) -> None:
        super().__init__(f"{operation}: {message}")
        self.operation = operation
        self.status_code = status_code


class BackendClient:
    """Async client for the coupon backend.

    Args:
        config: ``[backend]`` section (base URL, anon key, timeout).
        bucket: Storage bucket holding coupon images.
        access_token: Signed-in user's JWT; falls back to the anon key.
        client: Optional pre-built ``httpx.AsyncClient`` (tests pass a
            ``MockTransport``-backed one).
    """

    def __init__(
        self,
        config: BackendConfig,
        *,
        bucket: str,
        access_token: str | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._base_url = config.url.rstrip("/")
        self._bucket = bucket
        headers = {
            "apikey": config.anon_key,
            "Authorization": f"Bearer {access_token or config.anon_key}",
            "Accept": "application/json",
        }
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=config.timeout_seconds)
        self._headers = headers

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _request(
        self,
        operation: str,
        method: str,
        path: str,
        *,
        params: Mapping[str, str] | None = None,
        json: Any = None,
        headers: Mapping[str, str] | None = None,
    ) -> httpx.Response:
        try:
            resp = await self._client.request(
                method,
                f"{self._base_url}{path}",
                params=params,
                json=json,
                headers={**self._headers, **(headers or {})},
            )
            resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise BackendError(
                operation, exc.response.text or str(exc), status_code=exc.response.status_code
            ) from exc
        except httpx.HTTPError as exc:
            raise BackendError(operation, str(exc)) from exc
        return resp

    # --- CouponQuery ---

    async def fetch_candidates(
        self, user_id: str, *, since: date, limit: int
    ) -> list[Mapping[str, Any]]:
        resp = await self._request(
            "fetch_candidates",
            "GET",
            "/rest/v1/coupons",
            params={
                "select": COUPON_COLUMNS,
                "user_id": f"eq.{user_id}",
                "status": "neq.used",
                "expire_date": f"gte.{since.isoformat()}",
                "order": "expire_date.asc",
                "limit": str(limit),
            },
        )
        rows = resp.json()
        return [row for row in rows if isinstance(row, dict)] if isinstance(rows, list) else []

    # --- SettingsStore ---

    async def fetch_settings(self, user_id: str) -> Mapping[str, Any] | None:
        resp = await self._request(
            "fetch_settings",
            "GET",
            "/rest/v1/user_settings",
            params={"select": SETTINGS_COLUMNS, "user_id": f"eq.{user_id}", "limit": "1"},
        )
        rows = resp.json()
        if isinstance(rows, list) and rows and isinstance(rows[0], dict):
            return rows[0]
        return None

    async def upsert_settings(self, user_id: str, values: Mapping[str, Any]) -> None:
        await self._request(
            "upsert_settings",
            "POST",
            "/rest/v1/user_settings",
            params={"on_conflict": "user_id"},
            json={"user_id": user_id, **values},
            headers={"Prefer": "resolution=merge-duplicates,return=minimal"},
        )

    # --- UrlSigner ---

    async def create_signed_urls(
        self, keys: Sequence[str], ttl_seconds: int
    ) -> dict[str, str | None]:
        """Sign *keys* in one round trip; keys the backend refuses map to None."""
        result: dict[str, str | None] = dict.fromkeys(keys)
        if not keys:
            return result
        resp = await self._request(
            "create_signed_urls",
            "POST",
            f"/storage/v1/object/sign/{self._bucket}",
            json={"expiresIn": ttl_seconds, "paths": list(keys)},
        )
        items = resp.json()
        if not isinstance(items, list):
            return result
        for item in items:
            if not isinstance(item, dict) or not item.get("path"):
                continue
            signed = item.get("signedURL") or item.get("signedUrl")
            result[item["path"]] = self._absolute(signed) if signed else None
        return result

    def _absolute(self, signed: str) -> str:
        # Storage returns signed URLs relative to /storage/v1.
        if signed.startswith(("http://", "https://")):
            return signed
        return f"{self._base_url}/storage/v1{signed if signed.startswith('/') else '/' + signed}"
