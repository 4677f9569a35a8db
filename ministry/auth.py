"""
Admin sessions, the credential check and the login-attempt audit trail.

There is one admin identity, taken from settings: ``ADMIN_USER`` plus either
a PBKDF2 hash/salt pair or a plain ``ADMIN_PASS``. Sessions are stored under
``("sessions", id)`` and expire lazily on first access past ``expires_at``.
"""

from __future__ import annotations

import hashlib
import logging
import secrets
import time
from typing import Callable, Optional

from ministry import keys
from ministry.config import Settings
from ministry.csrf import timing_safe_equal
from ministry.records import LoginAttempt, Session, new_id
from ministry.store import KeyValueStore
from ministry.text import to_millis

logger = logging.getLogger(__name__)

SESSION_COOKIE_NAME = "session"
PBKDF2_ITERATIONS = 100_000


def hash_password(password: str, salt: str) -> str:
    """PBKDF2-SHA256 of ``password`` with a hex ``salt``, hex encoded."""
    digest = hashlib.pbkdf2_hmac(
        "sha256", password.encode("utf-8"), bytes.fromhex(salt), PBKDF2_ITERATIONS
    )
    return digest.hex()


def generate_salt(nbytes: int = 16) -> str:
    return secrets.token_hex(nbytes)


class SessionStore:
    def __init__(
        self,
        store: KeyValueStore,
        settings: Settings,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.settings = settings
        self.clock = clock

    def check_credentials(self, username: str, password: str) -> bool:
        settings = self.settings
        if not settings.admin_user:
            logger.warning("No admin user configured; refusing login")
            return False
        user_ok = timing_safe_equal(username, settings.admin_user)
        if settings.uses_hashed_password:
            try:
                candidate = hash_password(password, settings.admin_pass_salt)
            except ValueError:
                logger.error("ADMIN_PASS_SALT is not valid hex")
                return False
            pass_ok = timing_safe_equal(candidate, settings.admin_pass_hash.lower())
        elif settings.admin_pass:
            pass_ok = timing_safe_equal(password, settings.admin_pass)
        else:
            logger.warning("No admin password configured; refusing login")
            return False
        return user_ok and pass_ok

    async def login(
        self, username: str, password: str, ip: str = "unknown"
    ) -> Optional[str]:
        """Check credentials, audit the attempt and open a session on success."""
        success = self.check_credentials(username, password)
        await self._record_attempt(username, ip, success)
        if not success:
            logger.info("Failed login for %r from %s", username, ip)
            return None

        now = self.clock()
        session = Session(
            id=new_id(),
            username=username,
            created_at=now,
            expires_at=now + self.settings.session_duration_seconds,
        )
        await self.store.set(keys.session(session.id), session.as_dict())
        logger.info("Admin %r logged in from %s", username, ip)
        return session.id

    async def validate(self, session_id: Optional[str]) -> Optional[str]:
        """Username for a live session; expired sessions are deleted."""
        if not session_id:
            return None
        data = await self.store.get(keys.session(session_id))
        if data is None:
            return None
        session = Session.from_dict(data)
        if self.clock() > session.expires_at:
            await self.store.delete(keys.session(session_id))
            return None
        return session.username

    async def logout(self, session_id: Optional[str]) -> None:
        if session_id:
            await self.store.delete(keys.session(session_id))

    async def sweep_expired(self) -> int:
        now = self.clock()
        removed = 0
        async for key, data in self.store.scan(keys.SESSIONS):
            if now > data.get("expires_at", 0):
                await self.store.delete(key)
                removed += 1
        if removed:
            logger.info("Removed %d expired sessions", removed)
        return removed

    async def _record_attempt(self, username: str, ip: str, success: bool) -> None:
        attempt = LoginAttempt(
            id=new_id(),
            username=username,
            ip=ip,
            success=success,
            timestamp=self.clock(),
        )
        key = keys.login_attempt(to_millis(attempt.timestamp), attempt.id)
        await self.store.set(key, attempt.as_dict())

    async def get_recent_login_attempts(self, limit: int = 100) -> list[LoginAttempt]:
        attempts = []
        async for _, data in self.store.scan(keys.LOGIN_ATTEMPTS, reverse=True):
            attempts.append(LoginAttempt.from_dict(data))
            if len(attempts) >= limit:
                break
        return attempts

    def session_cookie_kwargs(self) -> dict:
        return {
            "key": SESSION_COOKIE_NAME,
            "httponly": True,
            "secure": self.settings.is_production,
            "samesite": "strict",
            "max_age": self.settings.session_duration_seconds,
            "path": "/",
        }
