"""FastAPI dependencies for resolving the caller of a request."""

from typing import Callable

from fastapi import HTTPException, Request

from matte.auth.sessions import AuthManager
from matte.auth.types import CallerIdentity

SESSION_COOKIE = "matte_session"


def session_token(request: Request) -> str | None:
    """Extract the session token from the Bearer header or the session cookie.

    The header wins when both are present.
    """
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:].strip() or None
    return request.cookies.get(SESSION_COOKIE)


def caller_dependency(auth: AuthManager) -> Callable[[Request], CallerIdentity]:
    """Create a dependency returning the caller identity.

    This is a soft dependency - anonymous callers get an unauthenticated
    identity, and the repository decides whether that is enough.
    """

    def dependency(request: Request) -> CallerIdentity:
        return auth.caller_for_token(session_token(request))

    return dependency


def require_authenticated(auth: AuthManager) -> Callable[[Request], CallerIdentity]:
    """Create a dependency that requires a valid session.

    Raises:
        HTTPException 401 if not authenticated
    """

    def dependency(request: Request) -> CallerIdentity:
        caller = auth.caller_for_token(session_token(request))
        if not caller.authenticated:
            raise HTTPException(
                status_code=401,
                detail="Authentication required",
                headers={"WWW-Authenticate": "Bearer"},
            )
        return caller

    return dependency
