"""Type definitions for authentication."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class CallerIdentity:
    """Who is making a request.

    Attributes:
        authenticated: Whether the caller presented a valid session
        username: The authenticated username, None for anonymous callers
    """

    authenticated: bool = False
    username: str | None = None

    @classmethod
    def anonymous(cls) -> "CallerIdentity":
        return cls(authenticated=False, username=None)

    @classmethod
    def user(cls, username: str) -> "CallerIdentity":
        return cls(authenticated=True, username=username)

    def to_dict(self) -> dict[str, Any]:
        return {"authenticated": self.authenticated, "username": self.username}


ANONYMOUS = CallerIdentity.anonymous()


@dataclass
class AuthSession:
    """An active login session.

    Attributes:
        username: The user the session belongs to
        token: Opaque session token handed to the client
        created_at: When the session was created (UTC)
    """

    username: str
    token: str
    created_at: datetime
