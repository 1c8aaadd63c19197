"""Authentication and access control for Matte."""

from matte.auth.types import ANONYMOUS, AuthSession, CallerIdentity
from matte.auth.password import PasswordService
from matte.auth.sessions import AuthManager
from matte.auth.permissions import (
    Operation,
    authorize,
    list_filter,
    required_level,
    requires_authentication,
)

__all__ = [
    "ANONYMOUS",
    "AuthSession",
    "CallerIdentity",
    "PasswordService",
    "AuthManager",
    "Operation",
    "authorize",
    "list_filter",
    "required_level",
    "requires_authentication",
]
