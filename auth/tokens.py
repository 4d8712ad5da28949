"""
auth/tokens.py -- Access token issuance and verification (JWT, HS256).

Security design decisions:
  python-jose with HS256. Tokens are signed with the process-wide SECRET_KEY
  and carry sub (user id), username, email, role, iat, and exp. The HMAC
  comparison inside jose's JWS layer is constant-time.

  Lifetime: fixed 24 hours from issue. There is no revocation list -- a token
  stops working only when it expires or when SECRET_KEY changes, which
  invalidates every outstanding token at once.

  Failure modes are distinguished for logging, but the middleware collapses
  all of them into a single 401 so clients learn nothing about which check
  failed.

  The secret key is always passed in by the caller. This module never reads
  settings, so tests can sign with throwaway keys.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from jose import jwt
from jose.exceptions import ExpiredSignatureError, JWTClaimsError, JWTError

from auth.models import Role, TokenClaims

_ALGORITHM = "HS256"

TOKEN_LIFETIME = timedelta(hours=24)

_REQUIRED_CLAIMS = ("sub", "username", "email", "role", "iat", "exp")


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class TokenError(Exception):
    """Base class for every reason a token can fail verification."""


class MalformedTokenError(TokenError):
    pass


class InvalidSignatureError(TokenError):
    pass


class ExpiredTokenError(TokenError):
    pass


# ---------------------------------------------------------------------------
# JWT encode / decode
# ---------------------------------------------------------------------------


def create_access_token(
    user_id: str,
    username: str,
    email: str,
    role: Role | str,
    secret_key: str,
    now: datetime | None = None,
) -> str:
    """Encode a signed JWT with user identity and a 24 hour expiry.

    Args:
        user_id:    Opaque user id, stored as the JWT subject claim.
        username:   Username at issue time.
        email:      Email at issue time.
        role:       Role at issue time. A later role change does not affect
                    tokens already issued.
        secret_key: Process-wide signing key.
        now:        Issue time. Defaults to the current UTC time; tests pass a
                    past value to mint already-expired tokens.
    """
    issued_at = now or datetime.now(timezone.utc)
    expire = issued_at + TOKEN_LIFETIME
    payload = {
        "sub": user_id,
        "username": username,
        "email": email,
        "role": Role(role).value,
        "iat": int(issued_at.timestamp()),
        "exp": int(expire.timestamp()),
    }
    return jwt.encode(payload, secret_key, algorithm=_ALGORITHM)


def decode_access_token(token: str, secret_key: str) -> TokenClaims:
    """Verify a JWT and return its claims.

    Raises:
        MalformedTokenError:   not a JWT, undecodable segments, or missing /
                               mistyped claims.
        InvalidSignatureError: signature does not match secret_key (tampered
                               payload or a different key).
        ExpiredTokenError:     signature is fine but exp has passed.
    """
    try:
        jwt.get_unverified_claims(token)
    except JWTError as exc:
        raise MalformedTokenError(str(exc)) from exc

    try:
        payload = jwt.decode(token, secret_key, algorithms=[_ALGORITHM])
    except ExpiredSignatureError as exc:
        raise ExpiredTokenError("Token has expired.") from exc
    except JWTClaimsError as exc:
        raise MalformedTokenError(str(exc)) from exc
    except JWTError as exc:
        raise InvalidSignatureError(str(exc)) from exc

    missing = [name for name in _REQUIRED_CLAIMS if name not in payload]
    if missing:
        raise MalformedTokenError(f"Token is missing claims: {', '.join(missing)}")
    try:
        return TokenClaims(
            sub=str(payload["sub"]),
            username=str(payload["username"]),
            email=str(payload["email"]),
            role=Role(payload["role"]),
            iat=int(payload["iat"]),
            exp=int(payload["exp"]),
        )
    except (TypeError, ValueError) as exc:
        raise MalformedTokenError(str(exc)) from exc
