from __future__ import annotations

import logging
from dataclasses import dataclass

from fastapi import Depends, HTTPException, Request

from app.core.config import settings
from app.core.redis_client import get_redis


log = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimit:
    key: str
    limit: int
    window_seconds: int
    remaining: int


def _client_ip(request: Request) -> str:
    if settings.trust_proxy_headers:
        xri = str(request.headers.get("x-real-ip") or "").strip()
        if xri:
            return xri
        xff = request.headers.get("x-forwarded-for")
        if xff:
            ip = xff.split(",")[0].strip()
            if ip:
                return ip
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def rate_limit(*, key_prefix: str, limit: int, window_seconds: int):
    """Fixed-window limiter keyed by route and client; fails open when Redis is down."""

    def _dep(request: Request) -> RateLimit:
        r = get_redis()
        key = f"rl:{key_prefix}:{request.method}:{request.url.path}:{_client_ip(request)}"

        try:
            current = int(r.incr(key))
            if current == 1:
                r.expire(key, int(window_seconds))
        except Exception:
            log.warning("rate limiter unavailable for %s", key_prefix)
            return RateLimit(key=key, limit=limit, window_seconds=window_seconds, remaining=limit)

        if current > limit:
            ttl = r.ttl(key)
            retry_after = int(ttl) if ttl and ttl > 0 else int(window_seconds)
            raise HTTPException(
                status_code=429,
                detail={"error_code": "rate_limited", "error_message": "rate limit exceeded"},
                headers={"Retry-After": str(retry_after)},
            )

        return RateLimit(key=key, limit=limit, window_seconds=window_seconds, remaining=max(0, limit - current))

    return Depends(_dep)
