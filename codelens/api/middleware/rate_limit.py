"""Per-IP rate limiting for the CodeLens API.

Sliding one-minute and one-hour windows per client IP. Buckets live in
TTLCaches so idle IPs are evicted and memory stays bounded.
"""

from __future__ import annotations

import ipaddress
import os
import time
from collections.abc import Callable, Iterable
from typing import Any

from cachetools import TTLCache
from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from codelens.config import RATE_LIMIT_MAX_IPS, RATE_LIMIT_RPH, RATE_LIMIT_RPM
from codelens.observability.telemetry import counter, log_event
from codelens.utils.redaction import redact

EXEMPT_PATHS = frozenset({"/", "/health", "/health/db"})


def _valid_ip(value: str) -> bool:
    try:
        ipaddress.ip_address(value)
        return True
    except ValueError:
        return False


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Reject clients that exceed `requests_per_minute` or `requests_per_hour`
    with 429 and a Retry-After header.

    X-Forwarded-For is only honoured when `trust_forwarded` is set (behind a
    known proxy, or in development); otherwise the socket address is used.
    """

    def __init__(
        self,
        app: Any,
        requests_per_minute: int = RATE_LIMIT_RPM,
        requests_per_hour: int = RATE_LIMIT_RPH,
        trust_forwarded: bool | None = None,
        cors_origins: Iterable[str] = (),
    ) -> None:
        super().__init__(app)
        self.requests_per_minute = requests_per_minute
        self.requests_per_hour = requests_per_hour
        if trust_forwarded is None:
            trust_forwarded = os.getenv("CODELENS_ENV", "development") == "development"
        self.trust_forwarded = trust_forwarded
        self.cors_origins = frozenset(cors_origins)

        # {ip: [timestamp, ...]}; TTL slightly longer than each window
        self.minute_buckets: TTLCache[str, list[float]] = TTLCache(
            maxsize=RATE_LIMIT_MAX_IPS, ttl=120
        )
        self.hour_buckets: TTLCache[str, list[float]] = TTLCache(
            maxsize=RATE_LIMIT_MAX_IPS, ttl=7200
        )

    def _client_ip(self, request: Request) -> str:
        if self.trust_forwarded:
            forwarded = request.headers.get("X-Forwarded-For", "")
            candidate = forwarded.split(",")[0].strip()
            if candidate and _valid_ip(candidate):
                return candidate
            real_ip = request.headers.get("X-Real-IP", "").strip()
            if real_ip and _valid_ip(real_ip):
                return real_ip
        return request.client.host if request.client else "unknown"

    @staticmethod
    def _window(
        buckets: TTLCache[str, list[float]], ip: str, now: float, seconds: int
    ) -> list[float]:
        recent = [ts for ts in buckets.get(ip, []) if now - ts < seconds]
        buckets[ip] = recent
        return recent

    def _reject(self, request: Request, ip: str, limit: str, maximum: int, retry_after: int):
        counter("api.rate_limited")
        log_event("api.rate_limit.exceeded", ip=redact(ip), limit=limit, maximum=maximum)

        headers = {"Retry-After": str(retry_after)}
        origin = request.headers.get("origin", "")
        # Rejections bypass CORSMiddleware, so allowed origins are echoed here
        if origin in self.cors_origins:
            headers["Access-Control-Allow-Origin"] = origin
            headers["Access-Control-Allow-Credentials"] = "true"

        return JSONResponse(
            status_code=429,
            content={
                "detail": f"Rate limit exceeded. Maximum {maximum} requests per {limit}.",
                "retry_after": retry_after,
            },
            headers=headers,
        )

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if request.url.path in EXEMPT_PATHS or request.method == "OPTIONS":
            return await call_next(request)

        ip = self._client_ip(request)
        now = time.time()

        minute = self._window(self.minute_buckets, ip, now, 60)
        if len(minute) >= self.requests_per_minute:
            return self._reject(request, ip, "minute", self.requests_per_minute, 60)

        hour = self._window(self.hour_buckets, ip, now, 3600)
        if len(hour) >= self.requests_per_hour:
            return self._reject(request, ip, "hour", self.requests_per_hour, 3600)

        minute.append(now)
        hour.append(now)

        response = await call_next(request)
        response.headers["X-RateLimit-Limit-Minute"] = str(self.requests_per_minute)
        response.headers["X-RateLimit-Remaining-Minute"] = str(
            max(0, self.requests_per_minute - len(minute))
        )
        response.headers["X-RateLimit-Limit-Hour"] = str(self.requests_per_hour)
        response.headers["X-RateLimit-Remaining-Hour"] = str(
            max(0, self.requests_per_hour - len(hour))
        )
        return response
