"""
Credential Hashing
==================

Password hashing is delegated to passlib; the rest of the system only ever
sees the opaque hash.
"""

from passlib.context import CryptContext

from helpdesk.users.application.services import IPasswordHasher

pwd_context = CryptContext(
    schemes=["argon2"],
    deprecated="auto"
)


class PasslibPasswordHasher(IPasswordHasher):
    """Argon2 hashing through passlib."""

    def hash(self, password: str) -> str:
        return pwd_context.hash(password)

    def verify(self, password: str, password_hash: str) -> bool:
        # Unrecognised hash formats never match
        if pwd_context.identify(password_hash) is None:
            return False
        return pwd_context.verify(password, password_hash)
