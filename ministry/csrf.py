"""
Double-submit CSRF tokens.

The token is issued in an HttpOnly cookie and echoed in the form body; a
request is valid when both copies are present and equal. Nothing is kept
server side, so any unexpired token (e.g. from another open tab) stays valid
until the cookie's max-age runs out.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from typing import Optional

CSRF_COOKIE_NAME = "csrf_token"
CSRF_FORM_FIELD = "csrf_token"
CSRF_HEADER_NAME = "X-CSRF-Token"


def timing_safe_equal(a: str, b: str) -> bool:
    """Compare two strings without short-circuiting on the first mismatch."""
    left, right = a.encode("utf-8"), b.encode("utf-8")
    if len(left) != len(right):
        return False
    acc = 0
    for x, y in zip(left, right):
        acc |= x ^ y
    return acc == 0


@dataclass
class CsrfGuard:
    max_age: int = 60 * 60
    secure: bool = True

    def issue(self) -> str:
        return secrets.token_urlsafe(32)

    def validate(self, cookie_token: Optional[str], form_token: Optional[str]) -> bool:
        if not cookie_token or not form_token:
            return False
        return timing_safe_equal(cookie_token, form_token)

    def cookie_kwargs(self) -> dict:
        """Keyword arguments for ``Response.set_cookie``."""
        return {
            "key": CSRF_COOKIE_NAME,
            "httponly": True,
            "secure": self.secure,
            "samesite": "strict",
            "max_age": self.max_age,
            "path": "/",
        }
