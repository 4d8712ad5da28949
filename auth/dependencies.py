"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

require(policy) builds a dependency that runs the auth pipeline for one
RoutePolicy. On success the verified RequestContext is stored on
request.state.auth and the claims are returned to the route. On failure the
pipeline's Failure becomes an HTTPException with the structured
{"code", "message"} detail api/main.py renders.

Usage:
    @router.get("/admin/users")
    async def route(claims: TokenClaims = Depends(require(ADMIN_ONLY))): ...

The signing key is read from request.app.state.secret_key, which the API
lifespan sets once at startup.

Layer rule: may import from fastapi (for HTTPException/Request) because this
module is part of the FastAPI dependency injection system. No imports from
api/ or core/.
"""

from __future__ import annotations

from typing import Callable

from fastapi import HTTPException, Request

from auth.middleware import Failure, RequestContext, RoutePolicy, build_pipeline
from auth.models import TokenClaims


def require(policy: RoutePolicy) -> Callable[[Request], TokenClaims]:
    """Return a dependency enforcing the given route policy.

    Raises HTTP 401 for a missing/invalid/expired token, HTTP 403 for a valid
    token whose role the policy does not accept.
    """

    def dependency(request: Request) -> TokenClaims:
        pipeline = build_pipeline(policy, request.app.state.secret_key)
        result = pipeline.run(RequestContext(authorization=request.headers.get("Authorization")))
        if isinstance(result, Failure):
            headers = {"WWW-Authenticate": "Bearer"} if result.status_code == 401 else None
            raise HTTPException(
                status_code=result.status_code,
                detail={"code": result.code, "message": result.message},
                headers=headers,
            )
        request.state.auth = result
        return result.claims

    return dependency
