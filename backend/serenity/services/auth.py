"""
Auth Service
============
Email/password accounts on Supabase Auth for the single user of this
device.

The current user id scopes every remote read and write: the remote store
asks this service for it and refuses to run without one. Sign-in and
sign-out listeners let the app start and stop live remote updates.

Supabase error codes are mapped to short, user-facing messages; anything
unrecognised gets a generic one. Raw provider errors are logged, never
returned.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Optional

from supabase import Client

from serenity.models.auth import AuthUser

logger = logging.getLogger(__name__)

_GENERIC_MESSAGE = "Authentication failed. Please try again."

ERROR_MESSAGES: dict[str, str] = {
    "weak_password": "Password is too weak. Use at least 6 characters.",
    "email_exists": "An account already exists with this email.",
    "user_already_exists": "An account already exists with this email.",
    "email_address_invalid": "Please enter a valid email address.",
    "validation_failed": "Please enter a valid email address.",
    "user_not_found": "No account found with this email.",
    "invalid_credentials": "Invalid email or password.",
    "email_not_confirmed": "Please confirm your email address before signing in.",
    "user_banned": "This account has been disabled.",
    "over_request_rate_limit": "Too many attempts. Please try again later.",
    "over_email_send_rate_limit": "Too many attempts. Please try again later.",
}


class AuthError(Exception):
    """Auth operation failed; ``message`` is safe to show the user."""

    def __init__(self, message: str, code: str = "auth_failed") -> None:
        self.message = message
        self.code = code
        super().__init__(message)


def friendly_message(code: Optional[str]) -> str:
    return ERROR_MESSAGES.get(code or "", _GENERIC_MESSAGE)


def _to_auth_user(user: Any) -> Optional[AuthUser]:
    if user is None or not getattr(user, "id", None):
        return None
    return AuthUser(id=str(user.id), email=getattr(user, "email", None))


class AuthService:
    """Wraps ``client.auth`` and remembers who is signed in."""

    def __init__(self, client: Client) -> None:
        self._client = client
        self._user: Optional[AuthUser] = None
        self._sign_in_listeners: list[Callable[[AuthUser], None]] = []
        self._sign_out_listeners: list[Callable[[], None]] = []

    @property
    def current_user(self) -> Optional[AuthUser]:
        return self._user

    def current_user_id(self) -> Optional[str]:
        return self._user.id if self._user else None

    @property
    def is_signed_in(self) -> bool:
        return self._user is not None

    def on_sign_in(self, callback: Callable[[AuthUser], None]) -> None:
        self._sign_in_listeners.append(callback)

    def on_sign_out(self, callback: Callable[[], None]) -> None:
        self._sign_out_listeners.append(callback)

    # ---- Internals ----------------------------------------------------------

    async def _call(self, action: str, fn: Callable[[], Any]) -> Any:
        try:
            return await asyncio.to_thread(fn)
        except Exception as exc:
            code = getattr(exc, "code", None)
            logger.warning("Auth %s failed (code=%s): %s", action, code, exc)
            raise AuthError(friendly_message(code), code or "auth_failed") from exc

    def _signed_in(self, user: AuthUser) -> AuthUser:
        self._user = user
        logger.info("User %s signed in", user.id)
        for listener in self._sign_in_listeners:
            try:
                listener(user)
            except Exception:
                logger.exception("Sign-in listener failed")
        return user

    # ---- Operations ---------------------------------------------------------

    async def restore_session(self) -> Optional[AuthUser]:
        """Pick up a persisted session on startup, if there is one."""
        try:
            session = await asyncio.to_thread(self._client.auth.get_session)
        except Exception as exc:
            logger.warning("Session restore failed: %s", exc)
            return None
        user = _to_auth_user(getattr(session, "user", None)) if session else None
        return self._signed_in(user) if user else None

    async def register(self, email: str, password: str) -> AuthUser:
        response = await self._call(
            "sign-up",
            lambda: self._client.auth.sign_up({"email": email, "password": password}),
        )
        user = _to_auth_user(getattr(response, "user", None))
        if user is None:
            raise AuthError(_GENERIC_MESSAGE)
        if getattr(response, "session", None) is None:
            # Email confirmation pending: the account exists but nobody is signed in yet.
            return user
        return self._signed_in(user)

    async def login(self, email: str, password: str) -> AuthUser:
        response = await self._call(
            "sign-in",
            lambda: self._client.auth.sign_in_with_password({"email": email, "password": password}),
        )
        user = _to_auth_user(getattr(response, "user", None))
        if user is None:
            raise AuthError(friendly_message("invalid_credentials"), "invalid_credentials")
        return self._signed_in(user)

    async def logout(self) -> None:
        for listener in self._sign_out_listeners:
            try:
                listener()
            except Exception:
                logger.exception("Sign-out listener failed")
        try:
            await self._call("sign-out", self._client.auth.sign_out)
        finally:
            self._user = None
            logger.info("Signed out")

    async def reset_password(self, email: str) -> None:
        await self._call(
            "password reset",
            lambda: self._client.auth.reset_password_for_email(email),
        )
