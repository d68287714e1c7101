"""Admin token login guarding administrative booking and device routes."""

from __future__ import annotations

import secrets
from threading import Lock
from typing import Optional

from gameroom.utils.config import Settings, get_settings


class AuthenticationError(Exception):
    """Base authentication failure."""


class AdminTokenNotConfiguredError(AuthenticationError):
    """Raised when GAMEROOM_ADMIN_TOKEN is missing."""


class InvalidAdminTokenError(AuthenticationError):
    """Raised when a provided token is invalid."""


class AuthService:
    """Exchanges the configured admin token for a bearer session token."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()
        self._session_tokens: set[str] = set()
        self._lock = Lock()

    @property
    def auth_enabled(self) -> bool:
        return bool(self._settings.admin_token)

    def login(self, provided_admin_token: str) -> str:
        expected = self._settings.admin_token
        if not expected:
            raise AdminTokenNotConfiguredError(
                "Admin login is disabled. Set GAMEROOM_ADMIN_TOKEN to enable it."
            )
        if not secrets.compare_digest(provided_admin_token, expected):
            raise InvalidAdminTokenError("Invalid admin token")
        token = secrets.token_urlsafe(32)
        with self._lock:
            self._session_tokens.add(token)
        return token

    def validate_bearer_token(self, bearer_token: str) -> None:
        if not self.auth_enabled:
            return
        with self._lock:
            known = any(
                secrets.compare_digest(bearer_token, token) for token in self._session_tokens
            )
        if not known:
            raise InvalidAdminTokenError("Invalid bearer token")
