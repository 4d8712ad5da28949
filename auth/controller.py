"""
auth/controller.py -- Signup, login, and identity lookups.

AuthController orchestrates the store, the password hasher, and the token
service. It owns input validation and the rules that span components (the
generic login failure, timing equalization, default role). It knows nothing
about HTTP: failures are raised as auth.errors.AuthError subclasses and the
API layer renders them.

Access control is NOT checked here. profile(), list_users() and
moderator_dashboard() assume the caller already ran the matching
RoutePolicy through the auth pipeline.

Security:
  [C1] login() runs bcrypt whether or not the email exists, so response time
       does not reveal which accounts exist. Unknown email and wrong password
       raise the same InvalidCredentialsError.
  Passwords are never logged. Log lines carry user ids and usernames only.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
from typing import Optional

from auth.errors import InputValidationError, InvalidCredentialsError, NotFoundError
from auth.models import Identity, LoginResult, Role, TokenClaims, User
from auth.passwords import MAX_PASSWORD_BYTES, PasswordHasher, password_too_long
from auth.store import UserStore
from auth.tokens import TOKEN_LIFETIME, create_access_token

logger = logging.getLogger("warden.auth")

MIN_PASSWORD_LENGTH = 6


def _identity(user: User) -> Identity:
    return Identity(id=user.id, username=user.username, email=user.email, role=user.role)


def _require(**fields: Optional[str]) -> dict[str, str]:
    """Return the fields trimmed, or raise if any is missing or blank."""
    cleaned = {name: (value or "").strip() for name, value in fields.items()}
    missing = [name for name, value in cleaned.items() if not value]
    if missing:
        raise InputValidationError(f"All fields are required (missing: {', '.join(missing)}).")
    return cleaned


class AuthController:
    """Application service for the auth endpoints.

    Dependencies are injected so each process (or test) owns its own store
    and signing key:

        controller = AuthController(UserStore(url), PasswordHasher(), secret_key)
        identity = controller.signup("alice", "a@x.com", "secret1")
        result = controller.login("a@x.com", "secret1")
    """

    def __init__(self, store: UserStore, hasher: PasswordHasher, secret_key: str) -> None:
        self.store = store
        self.hasher = hasher
        self._secret_key = secret_key

    def signup(
        self,
        username: Optional[str],
        email: Optional[str],
        password: Optional[str],
        role: Optional[str] = None,
    ) -> Identity:
        """Create a user and return its public identity.

        Raises InputValidationError for missing/blank fields, a password shorter
        than 6 characters or longer than 72 bytes, or an unknown role;
        DuplicateIdentityError if the username or email is taken (nothing is
        written in that case).
        """
        fields = _require(username=username, email=email)
        if not password:
            raise InputValidationError("All fields are required (missing: password).")
        if len(password) < MIN_PASSWORD_LENGTH:
            raise InputValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")
        if password_too_long(password):
            raise InputValidationError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes.")
        try:
            user_role = Role(role) if role else Role.user
        except ValueError:
            allowed = ", ".join(r.value for r in Role)
            raise InputValidationError(f"Role must be one of: {allowed}.") from None

        created = self.store.create_user(
            User(
                username=fields["username"],
                email=fields["email"],
                password_hash=self.hasher.hash(password),
                role=user_role,
            )
        )
        return _identity(created)

    def login(self, email: Optional[str], password: Optional[str]) -> LoginResult:
        """Verify credentials and issue a 24 hour access token.

        Unknown email and wrong password both raise InvalidCredentialsError.
        """
        if not (email or "").strip() or not password:
            raise InputValidationError("Email and password are required.")

        user = self.store.get_by_email(email)
        if user is None:
            # Equalize timing -- do NOT return before running bcrypt [C1]
            self.hasher.dummy_verify(password)
            logger.info("Login failed: unknown account")
            raise InvalidCredentialsError()
        if not self.hasher.verify(password, user.password_hash):
            logger.info("Login failed: bad password for user id=%s", user.id)
            raise InvalidCredentialsError()

        token = create_access_token(user.id, user.username, user.email, user.role, self._secret_key)
        logger.info("Login succeeded for user id=%s", user.id)
        return LoginResult(
            token=token,
            identity=_identity(user),
            expires_in=int(TOKEN_LIFETIME.total_seconds()),
        )

    def profile(self, claims: TokenClaims) -> Identity:
        """Return the current user's identity, freshly read from the store.

        Raises NotFoundError if the token outlived its user record.
        """
        user = self.store.get_by_id(claims.sub)
        if user is None:
            raise NotFoundError()
        return _identity(user)

    def list_users(self) -> list[Identity]:
        return [_identity(u) for u in self.store.list_users()]

    def moderator_dashboard(self, claims: TokenClaims) -> dict:
        """Greeting payload echoing the caller's own token claims."""
        return {
            "message": "Welcome to moderator dashboard",
            "user": Identity(id=claims.sub, username=claims.username, email=claims.email, role=claims.role),
        }
