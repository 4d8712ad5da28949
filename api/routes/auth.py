"""
api/routes/auth.py -- Authentication and role-gated REST endpoints.

Routes:
  POST /signup               -- create an account (public)
  POST /login                -- password login; returns a bearer token (public)
  POST /logout               -- stateless acknowledgement (requires auth)
  GET  /profile              -- current user's identity (requires auth)
  GET  /admin/users          -- all users (admin)
  GET  /moderator/dashboard  -- greeting with caller's claims (moderator, admin)

Security:
  [C1] Login goes through AuthController.login(), which equalizes timing and
       returns one generic error for unknown email and wrong password.
  [M5] Cache-Control: no-store on login responses so tokens are not cached.
  Access requirements are declared per route in ROUTE_POLICIES and enforced
  by the require() dependency before the handler runs.

Errors raised by the controller (AuthError subclasses) are rendered by the
exception handlers in api/main.py; handlers here only cover the happy path.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.models import (
    DashboardResponse,
    LoginRequest,
    LoginResponse,
    MessageResponse,
    ProfileResponse,
    SignupRequest,
    SignupResponse,
    UserOut,
    UsersResponse,
)
from auth.controller import AuthController
from auth.dependencies import require
from auth.middleware import ADMIN_ONLY, AUTHENTICATED, MODERATOR_OR_ADMIN, RoutePolicy
from auth.models import TokenClaims

# Auth policy per protected route. Routes absent from this table are public.
ROUTE_POLICIES: dict[str, RoutePolicy] = {
    "/logout": AUTHENTICATED,
    "/profile": AUTHENTICATED,
    "/admin/users": ADMIN_ONLY,
    "/moderator/dashboard": MODERATOR_OR_ADMIN,
}

router = APIRouter()


def _controller(request: Request) -> AuthController:
    return request.app.state.auth_controller


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/signup", response_model=SignupResponse, status_code=201)
def signup(request: Request, body: SignupRequest) -> SignupResponse:
    """Register a new account. Returns the public identity, never the hash.

    Sync handler: bcrypt is CPU-bound, so FastAPI runs this in its threadpool
    instead of blocking the event loop.
    """
    identity = _controller(request).signup(body.username, body.email, body.password, body.role)
    return SignupResponse(message="User created successfully", user=UserOut.from_identity(identity))


@router.post("/login", response_model=LoginResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password; return a 24 hour bearer token."""
    result = _controller(request).login(body.email, body.password)
    resp = JSONResponse(
        status_code=200,
        content=LoginResponse(
            message="Login successful",
            token=result.token,
            token_type="bearer",  # noqa: S106 # nosec B106 -- OAuth token type, not a password
            expires_in=result.expires_in,
            user=UserOut.from_identity(result.identity),
        ).model_dump(),
    )
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.post("/logout", response_model=MessageResponse)
async def logout(claims: TokenClaims = Depends(require(ROUTE_POLICIES["/logout"]))) -> MessageResponse:
    """Acknowledge logout. Tokens are stateless; the client discards its copy."""
    return MessageResponse(message="Logged out successfully")


@router.get("/profile", response_model=ProfileResponse)
async def profile(
    request: Request,
    claims: TokenClaims = Depends(require(ROUTE_POLICIES["/profile"])),
) -> ProfileResponse:
    """Return the current user's identity as stored (404 if the record is gone)."""
    identity = _controller(request).profile(claims)
    return ProfileResponse(user=UserOut.from_identity(identity))


@router.get("/admin/users", response_model=UsersResponse)
async def admin_list_users(
    request: Request,
    claims: TokenClaims = Depends(require(ROUTE_POLICIES["/admin/users"])),
) -> UsersResponse:
    """List every account. Admin only."""
    identities = _controller(request).list_users()
    return UsersResponse(users=[UserOut.from_identity(i) for i in identities])


@router.get("/moderator/dashboard", response_model=DashboardResponse)
async def moderator_dashboard(
    request: Request,
    claims: TokenClaims = Depends(require(ROUTE_POLICIES["/moderator/dashboard"])),
) -> DashboardResponse:
    """Greeting for moderators and admins, echoing the caller's token claims."""
    payload = _controller(request).moderator_dashboard(claims)
    return DashboardResponse(message=payload["message"], user=UserOut.from_identity(payload["user"]))
