"""In-memory user and session store."""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timezone

from matte.auth.password import PasswordService
from matte.auth.types import ANONYMOUS, AuthSession, CallerIdentity
from matte.errors import AuthError

logger = logging.getLogger(__name__)


class AuthManager:
    """Handles user registration, login, session lookup and logout.

    Credentials and sessions live in process memory; restarting the
    application signs everybody out.
    """

    def __init__(self, password_service: PasswordService | None = None):
        self._passwords = password_service or PasswordService()
        # username -> password hash
        self._credentials: dict[str, str] = {}
        # session token -> session
        self._sessions: dict[str, AuthSession] = {}

    def register_user(self, username: str, password: str) -> None:
        """Register a new user.

        Raises:
            AuthError: If username or password is empty, or the user exists
        """
        if not username or not password:
            raise AuthError("Username and password are required")
        if username in self._credentials:
            raise AuthError("Username already exists")

        self._credentials[username] = self._passwords.hash(password)
        logger.info("Registered user %s", username)

    def login(self, username: str, password: str) -> str | None:
        """Authenticate a user and open a session.

        Returns:
            A session token, or None for invalid credentials
        """
        if not username or not password:
            return None

        stored_hash = self._credentials.get(username)
        if stored_hash is None or not self._passwords.verify(password, stored_hash):
            return None

        token = secrets.token_urlsafe(32)
        self._sessions[token] = AuthSession(
            username=username,
            token=token,
            created_at=datetime.now(timezone.utc),
        )
        return token

    def validate_session(self, token: str | None) -> str | None:
        """Return the username for a session token, or None."""
        if not token:
            return None
        session = self._sessions.get(token)
        return session.username if session else None

    def caller_for_token(self, token: str | None) -> CallerIdentity:
        """Resolve a session token to a caller identity."""
        username = self.validate_session(token)
        if username is None:
            return ANONYMOUS
        return CallerIdentity.user(username)

    def logout(self, token: str | None) -> None:
        """Destroy a session. Unknown tokens are ignored."""
        if token:
            self._sessions.pop(token, None)

    def registered_users(self) -> list[str]:
        return list(self._credentials.keys())

    def active_session_count(self) -> int:
        return len(self._sessions)
