"""Signed-URL cache for coupon images kept in private object storage.

Coupons store an object *key* (``coupons/<id>_<ts>.jpg``); older rows may
hold a full public or signed URL instead. Resolution:

- absolute ``http(s)://`` input is returned as-is,
- anything else is normalized to a storage key and served from cache while
  ``now < expires_at``,
- misses are signed in one batched backend call per resolution request.

Cached URLs expire at ``cache_ttl_ratio`` (90%) of the signature lifetime
so a served URL never runs out mid-download. A failed signing call is
not cached; the next resolve retries.
"""

from __future__ import annotations

import asyncio
import logging
import re
import time
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from dotoring.domain.ports import UrlSigner
from dotoring.services.telemetry import traced

logger = logging.getLogger(__name__)

_HTTP_RE = re.compile(r"^https?://", re.IGNORECASE)
_OBJECT_MARKER = "/storage/v1/object/"


def is_absolute_url(raw: str) -> bool:
    return bool(_HTTP_RE.match(raw))


def normalize_storage_key(raw: str | None, bucket: str) -> str | None:
    """Reduce a raw key, public URL, or signed URL to the bare object key.

    Examples:
        >>> normalize_storage_key("/coupons/a.jpg", "coupon-images")
        'coupons/a.jpg'
        >>> normalize_storage_key(
        ...     "https://x.co/storage/v1/object/sign/coupon-images/coupons/a.jpg?token=t",
        ...     "coupon-images",
        ... )
        'coupons/a.jpg'
        >>> normalize_storage_key("https://cdn.example.com/a.jpg", "coupon-images") is None
        True
    """
    if not raw:
        return None
    if not raw.startswith("http"):
        return raw.lstrip("/") or None

    idx = raw.find(_OBJECT_MARKER)
    if idx < 0:
        return None
    # <visibility>/<bucket>/<key...>[?query], visibility = public | sign | authenticated
    parts = raw[idx + len(_OBJECT_MARKER) :].split("?", 1)[0].split("/")
    if bucket not in parts:
        return None
    key = "/".join(parts[parts.index(bucket) + 1 :])
    return key or None


@dataclass(frozen=True)
class CachedUrl:
    url: str
    expires_at: float


class SignedUrlCache:
    """Process-wide key -> signed URL cache with batched, coalesced signing.

    Args:
        signer: Backend that signs object keys.
        bucket: Bucket name used when normalizing URLs back to keys.
        signed_url_ttl_seconds: Lifetime requested for each signature.
        cache_ttl_ratio: Fraction of that lifetime a URL is served from cache.
        clock: Wall clock in seconds (injectable for tests).
    """

    def __init__(
        self,
        signer: UrlSigner,
        *,
        bucket: str,
        signed_url_ttl_seconds: int = 3600,
        cache_ttl_ratio: float = 0.9,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._signer = signer
        self._bucket = bucket
        self._signed_ttl = signed_url_ttl_seconds
        self._cache_ttl = signed_url_ttl_seconds * cache_ttl_ratio
        self._clock = clock
        self._entries: dict[str, CachedUrl] = {}
        self._inflight: dict[str, asyncio.Future[str | None]] = {}
        # Bumped by invalidate()/clear() so an in-flight response cannot resurrect a dropped key.
        self._generations: dict[str, int] = {}
        self._epoch = 0

    @property
    def size(self) -> int:
        return len(self._entries)

    def normalize(self, raw: str | None) -> str | None:
        return normalize_storage_key(raw, self._bucket)

    def get_cached(self, key: str) -> str | None:
        """Cached URL for *key*, evicting it if expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() < entry.expires_at:
            return entry.url
        del self._entries[key]
        return None

    def put(self, key: str, url: str) -> None:
        self._entries[key] = CachedUrl(url=url, expires_at=self._clock() + self._cache_ttl)

    async def resolve(self, raw: str | None) -> str | None:
        """Fetchable URL for a stored image reference, or None if none can be made now."""
        if not raw:
            return None
        if is_absolute_url(raw):
            return raw
        key = self.normalize(raw)
        if key is None:
            return None
        return (await self._sign([key])).get(key)

    @traced
    async def resolve_many(self, raws: Sequence[str | None]) -> list[str | None]:
        """Resolve a page of references with at most one signing round trip."""
        keys: list[str | None] = []
        for raw in raws:
            if not raw or is_absolute_url(raw):
                keys.append(None)
            else:
                keys.append(self.normalize(raw))

        resolved = await self._sign([k for k in keys if k is not None])

        urls: list[str | None] = []
        for raw, key in zip(raws, keys, strict=True):
            if raw and is_absolute_url(raw):
                urls.append(raw)
            else:
                urls.append(resolved.get(key) if key is not None else None)
        return urls

    async def attach_display_urls(
        self,
        rows: Iterable[Mapping[str, Any]],
        *,
        field: str = "image_url",
        target: str = "display_image_url",
    ) -> list[dict[str, Any]]:
        """Copies of *rows* with *target* set to the resolved URL of *field*."""
        materialized = [dict(row) for row in rows]
        urls = await self.resolve_many([row.get(field) for row in materialized])
        for row, url in zip(materialized, urls, strict=True):
            row[target] = url
        return materialized

    def invalidate(self, raw: str | None) -> None:
        """Forget one key (image deleted or replaced); the next resolve re-signs."""
        key = self.normalize(raw)
        if key is None:
            return
        self._entries.pop(key, None)
        self._inflight.pop(key, None)
        self._generations[key] = self._generations.get(key, 0) + 1

    def clear(self) -> None:
        """Drop every cached URL (logout, account deletion)."""
        self._entries.clear()
        self._inflight.clear()
        self._epoch += 1

    async def _sign(self, keys: Sequence[str]) -> dict[str, str | None]:
        results: dict[str, str | None] = {}
        waiting: dict[str, asyncio.Future[str | None]] = {}
        missing: list[str] = []
        for key in dict.fromkeys(keys):
            cached = self.get_cached(key)
            if cached is not None:
                results[key] = cached
            elif key in self._inflight:
                waiting[key] = self._inflight[key]
            else:
                missing.append(key)

        if missing:
            results.update(await self._sign_missing(missing))

        for key, fut in waiting.items():
            results[key] = await asyncio.shield(fut)
        return results

    async def _sign_missing(self, keys: list[str]) -> dict[str, str | None]:
        loop = asyncio.get_running_loop()
        owned = {key: loop.create_future() for key in keys}
        self._inflight.update(owned)
        epoch = self._epoch
        generations = {key: self._generations.get(key, 0) for key in keys}

        signed: dict[str, str | None] = {}
        try:
            signed = await self._signer.create_signed_urls(keys, self._signed_ttl)
        except Exception:
            logger.warning("Signing %d image keys failed", len(keys), exc_info=True)
        finally:
            for key, fut in owned.items():
                if self._inflight.get(key) is fut:
                    del self._inflight[key]
                if not fut.done():
                    fut.set_result(signed.get(key))

        if epoch == self._epoch:
            for key, url in signed.items():
                if url and self._generations.get(key, 0) == generations.get(key, 0):
                    self.put(key, url)
        return {key: signed.get(key) for key in keys}
