"""
Request-pipeline guards: admin session, CSRF double-submit check and
per-endpoint rate limiting.
"""

from __future__ import annotations

import logging

from fastapi import Depends, HTTPException, Request

from ministry.auth import SESSION_COOKIE_NAME, SessionStore
from ministry.csrf import CSRF_COOKIE_NAME, CSRF_FORM_FIELD, CSRF_HEADER_NAME, CsrfGuard
from ministry.dependencies import get_csrf_guard, get_rate_limiter, get_sessions
from ministry.ratelimit import RateLimiter, client_ip, describe, get_profile

logger = logging.getLogger(__name__)

_FORM_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


def request_client_ip(request: Request) -> str:
    fallback = request.client.host if request.client else None
    return client_ip(request.headers, fallback)


async def require_admin(
    request: Request, sessions: SessionStore = Depends(get_sessions)
) -> str:
    username = await sessions.validate(request.cookies.get(SESSION_COOKIE_NAME))
    if not username:
        raise HTTPException(status_code=401, detail="Authentication required")
    return username


async def verify_csrf(
    request: Request, guard: CsrfGuard = Depends(get_csrf_guard)
) -> None:
    """Accept the token from the X-CSRF-Token header or a csrf_token form field."""
    submitted = request.headers.get(CSRF_HEADER_NAME)
    content_type = request.headers.get("content-type", "")
    if not submitted and content_type.startswith(_FORM_TYPES):
        form = await request.form()
        value = form.get(CSRF_FORM_FIELD)
        submitted = value if isinstance(value, str) else None
    if not guard.validate(request.cookies.get(CSRF_COOKIE_NAME), submitted):
        logger.warning("CSRF check failed for %s %s", request.method, request.url.path)
        raise HTTPException(status_code=403, detail="Invalid CSRF token")


def rate_limit(endpoint: str, profile: str = "form"):
    """Dependency that records one attempt and rejects with 429 past the limit."""
    get_profile(profile)  # fail at import time on a typo

    async def dependency(
        request: Request, limiter: RateLimiter = Depends(get_rate_limiter)
    ) -> None:
        result = await limiter.check_and_record(
            request_client_ip(request), endpoint, profile
        )
        if not result.allowed:
            max_attempts, minutes = describe(profile)
            raise HTTPException(
                status_code=429,
                detail=(
                    f"Too many attempts. Limit is {max_attempts} per {minutes} "
                    f"minutes; try again in {result.retry_after} seconds."
                ),
                headers={"Retry-After": str(result.retry_after)},
            )

    return dependency
