"""
auth/passwords.py -- One-way salted password hashing (bcrypt).

Security design decisions:
  bcrypt directly, no passlib wrapper. passlib's internal wrap-bug detection
  creates a password longer than 72 bytes, which bcrypt 4.x rejects with an
  explicit error. Direct bcrypt usage is simpler and actively maintained.

  Cost factor: 12 rounds by default (~250ms per hash). That is slow enough to
  make offline brute force of a leaked digest expensive while still fitting
  inside interactive login latency. Throughput is the accepted trade-off.

  Salting: bcrypt.gensalt() draws a fresh random salt on every call, and the
  salt plus cost are embedded in the digest, so two hashes of the same
  password never match while checkpw() can still reconstruct the comparison.

  72-byte limit: bcrypt only looks at the first 72 bytes of its input, so two
  secrets sharing a 72-byte prefix would hash alike. Nothing is truncated:
  hash() raises ValueError for longer input (AuthController rejects it first
  with a 400), and verify() returns False for it.

Raw passwords are never logged, stored, or returned from this module.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import bcrypt

DEFAULT_ROUNDS = 12
MAX_PASSWORD_BYTES = 72


def password_too_long(plain: str) -> bool:
    return len(plain.encode("utf-8")) > MAX_PASSWORD_BYTES


class PasswordHasher:
    """Hash and verify passwords with a configurable bcrypt work factor.

    Usage:
        hasher = PasswordHasher(rounds=12)
        digest = hasher.hash("secret1")
        hasher.verify("secret1", digest)   # True
    """

    def __init__(self, rounds: int = DEFAULT_ROUNDS) -> None:
        self.rounds = rounds
        self._dummy_hash: str | None = None

    def hash(self, plain: str) -> str:
        """Return a bcrypt digest of the given plaintext, salted freshly per call.

        Raises ValueError if the plaintext encodes to more than 72 bytes.
        """
        if password_too_long(plain):
            raise ValueError(f"password must be at most {MAX_PASSWORD_BYTES} bytes")
        return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify(self, plain: str, hashed: str) -> bool:
        """Return True if the plaintext matches the digest.

        Malformed digests and plaintexts longer than 72 bytes return False.
        """
        if password_too_long(plain):
            return False
        try:
            return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
        except (ValueError, TypeError):
            return False

    def dummy_verify(self, plain: str) -> None:
        """Burn one verify() worth of work against a throwaway digest [C1].

        Login calls this when the email is unknown so that response time does
        not reveal whether an account exists. The dummy digest uses the same
        cost factor as real ones and is computed on first use.
        """
        if self._dummy_hash is None:
            self._dummy_hash = self.hash("warden_timing_dummy")
        self.verify(plain, self._dummy_hash)
