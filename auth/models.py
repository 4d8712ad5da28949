"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores, the token
service, and the controller do the work; these classes only own shape.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Role(str, Enum):
    """Closed set of roles a user can hold. Ordered least to most privileged."""

    user = "user"
    moderator = "moderator"
    admin = "admin"


@dataclass
class User:
    """A stored identity record.

    id is assigned by UserStore.create_user() (UUID4 hex) and never changes.
    email is stored lower-cased so the UNIQUE index enforces case-insensitive
    uniqueness; username is case-sensitive.

    password_hash is the bcrypt digest produced by PasswordHasher.hash().
    The raw password never reaches this class.
    """

    username: str
    email: str
    password_hash: str
    role: Role = Role.user
    id: str | None = None
    created_at: str | None = None


@dataclass(frozen=True)
class Identity:
    """Public projection of a User -- everything except the password hash.

    This is the only user shape the controller hands back to callers.
    """

    id: str
    username: str
    email: str
    role: Role


@dataclass(frozen=True)
class TokenClaims:
    """Verified claims carried by an access token.

    iat / exp are epoch seconds, as encoded in the JWT.
    """

    sub: str  # user id
    username: str
    email: str
    role: Role
    iat: int
    exp: int


@dataclass(frozen=True)
class LoginResult:
    """Outcome of a successful login: the bearer token and who it belongs to."""

    token: str
    identity: Identity
    expires_in: int  # seconds
