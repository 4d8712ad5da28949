"""
auth/middleware.py -- Authentication / authorization pipeline.

Pattern: Chain of Responsibility with tagged results. A pipeline is an
ordered tuple of steps. Each step takes a RequestContext and returns either
an enriched RequestContext (continue) or a Failure (stop). The first Failure
short-circuits the rest of the chain. No exceptions are used for control
flow here; auth/dependencies.py turns a Failure into an HTTP response.

Two step kinds:
  Authenticate(secret_key) -- bearer token present and valid -> claims attached.
  RoleCheck(roles)         -- claims present and role in the allowed set.

Keeping them separate lets a route require "logged in" without requiring a
role, and keeps 401 (who are you?) distinct from 403 (not allowed).

Route requirements are data, not code: a RoutePolicy names the roles a route
accepts (or None for "any authenticated user"), and build_pipeline() turns it
into steps.

Layer rule: no imports from api/ or core/. No FastAPI imports -- this module
is plain Python so it can be unit-tested without a request object.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Callable, Optional, Union

from auth.models import Role, TokenClaims
from auth.tokens import TokenError, decode_access_token

logger = logging.getLogger("warden.auth")

_BEARER_PREFIX = "bearer "


# ---------------------------------------------------------------------------
# Context and results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RequestContext:
    """What the pipeline knows about the request so far."""

    authorization: Optional[str] = None  # raw Authorization header value
    claims: Optional[TokenClaims] = None  # set by Authenticate


@dataclass(frozen=True)
class Failure:
    """Terminal pipeline result. Maps 1:1 onto an HTTP error response."""

    status_code: int
    code: str
    message: str


StepResult = Union[RequestContext, Failure]
Step = Callable[[RequestContext], StepResult]

_MISSING_TOKEN = Failure(401, "unauthenticated", "Access token required.")
_INVALID_TOKEN = Failure(401, "unauthenticated", "Invalid or expired token.")
_FORBIDDEN = Failure(403, "forbidden", "Insufficient permissions.")


# ---------------------------------------------------------------------------
# Steps
# ---------------------------------------------------------------------------


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Return the token from an 'Authorization: Bearer <token>' value, else None.

    The scheme is matched case-insensitively (RFC 7235). Any other scheme, or
    a Bearer header with nothing after it, counts as no token.
    """
    if not authorization:
        return None
    if authorization[: len(_BEARER_PREFIX)].lower() != _BEARER_PREFIX:
        return None
    token = authorization[len(_BEARER_PREFIX) :].strip()
    return token or None


class Authenticate:
    """Verify the bearer token and attach its claims to the context."""

    def __init__(self, secret_key: str) -> None:
        self._secret_key = secret_key

    def __call__(self, ctx: RequestContext) -> StepResult:
        token = extract_bearer_token(ctx.authorization)
        if token is None:
            return _MISSING_TOKEN
        try:
            claims = decode_access_token(token, self._secret_key)
        except TokenError as exc:
            logger.info("Rejected access token (%s): %s", type(exc).__name__, exc)
            return _INVALID_TOKEN
        return replace(ctx, claims=claims)


class RoleCheck:
    """Pass only if an identity is attached and its role is in the allowed set."""

    def __init__(self, roles: frozenset[Role]) -> None:
        self.roles = roles

    def __call__(self, ctx: RequestContext) -> StepResult:
        if ctx.claims is None:
            return _MISSING_TOKEN
        if ctx.claims.role not in self.roles:
            logger.info(
                "Denied user id=%s role=%s (requires one of: %s)",
                ctx.claims.sub,
                ctx.claims.role.value,
                ", ".join(sorted(r.value for r in self.roles)),
            )
            return _FORBIDDEN
        return ctx


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


class AuthPipeline:
    """Run steps in order; stop at the first Failure."""

    def __init__(self, steps: list[Step]) -> None:
        self.steps = tuple(steps)

    def run(self, ctx: RequestContext) -> StepResult:
        result: StepResult = ctx
        for step in self.steps:
            result = step(result)
            if isinstance(result, Failure):
                return result
        return result


@dataclass(frozen=True)
class RoutePolicy:
    """Access requirement attached to a route.

    roles=None means any authenticated user; otherwise the caller's role must
    be one of the listed roles.
    """

    roles: Optional[frozenset[Role]] = None


AUTHENTICATED = RoutePolicy()
ADMIN_ONLY = RoutePolicy(roles=frozenset({Role.admin}))
MODERATOR_OR_ADMIN = RoutePolicy(roles=frozenset({Role.moderator, Role.admin}))


def build_pipeline(policy: RoutePolicy, secret_key: str) -> AuthPipeline:
    """Compose the steps a route's policy requires: authenticate, then (maybe) authorize."""
    steps: list[Step] = [Authenticate(secret_key)]
    if policy.roles is not None:
        steps.append(RoleCheck(policy.roles))
    return AuthPipeline(steps)
