"""Authentication API endpoints."""

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from pydantic import BaseModel

from matte.auth.dependencies import (
    SESSION_COOKIE,
    caller_dependency,
    require_authenticated,
    session_token,
)
from matte.auth.sessions import AuthManager
from matte.auth.types import CallerIdentity
from matte.errors import AuthError


class Credentials(BaseModel):
    """Request body for register and login."""

    username: str
    password: str


class LoginResponse(BaseModel):
    """Response body for login."""

    token: str
    username: str


class SessionResponse(BaseModel):
    """Response body for the session endpoint."""

    authenticated: bool
    username: str | None = None


def create_auth_router(auth: AuthManager) -> APIRouter:
    """Create the auth router bound to an auth manager.

    Args:
        auth: The auth manager holding users and sessions

    Returns:
        Configured APIRouter
    """
    router = APIRouter(prefix="/api/auth", tags=["auth"])
    current_caller = caller_dependency(auth)

    @router.post("/register", status_code=201, response_model=SessionResponse)
    async def register(body: Credentials) -> SessionResponse:
        """Register a new user.

        Raises:
            HTTPException 400 for empty credentials or a taken username
        """
        try:
            auth.register_user(body.username, body.password)
        except AuthError as exc:
            raise HTTPException(400, str(exc)) from exc
        return SessionResponse(authenticated=False, username=body.username)

    @router.post("/login", response_model=LoginResponse)
    async def login(body: Credentials, response: Response) -> LoginResponse:
        """Authenticate and open a session.

        The token is returned in the body and set as an HTTP-only cookie.

        Raises:
            HTTPException 401 if credentials invalid
        """
        token = auth.login(body.username, body.password)
        if token is None:
            raise HTTPException(
                status_code=401,
                detail="Invalid username or password",
                headers={"WWW-Authenticate": "Bearer"},
            )
        response.set_cookie(SESSION_COOKIE, token, httponly=True, samesite="lax")
        return LoginResponse(token=token, username=body.username)

    @router.post("/logout", status_code=204)
    async def logout(request: Request, response: Response) -> None:
        """Destroy the current session, if any."""
        auth.logout(session_token(request))
        response.delete_cookie(SESSION_COOKIE)

    @router.get("/session", response_model=SessionResponse)
    async def session(caller: CallerIdentity = Depends(current_caller)) -> SessionResponse:
        """Report who the current session belongs to."""
        return SessionResponse(**caller.to_dict())

    @router.get("/me", response_model=SessionResponse)
    async def me(
        caller: CallerIdentity = Depends(require_authenticated(auth)),
    ) -> SessionResponse:
        """Current user; 401 without a valid session."""
        return SessionResponse(**caller.to_dict())

    return router
