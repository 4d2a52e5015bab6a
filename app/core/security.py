"""
Password hashing utilities.

Donors provisioned while accepting a request get a random placeholder
credential; it is stored hashed like any other password.
"""

import secrets
import logging
from passlib.context import CryptContext

logger = logging.getLogger(__name__)

# Password hashing context
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


class PasswordHasher:
    """Thin wrapper so the hashing scheme can be swapped in tests"""

    def __init__(self, context: CryptContext = pwd_context):
        self.context = context

    def hash_password(self, password: str) -> str:
        """Hash a password using bcrypt"""
        return self.context.hash(password)

    def placeholder_hash(self) -> str:
        """Hash of a random credential nobody knows"""
        return self.hash_password(generate_placeholder_password())


def generate_placeholder_password(length: int = 24) -> str:
    return secrets.token_urlsafe(length)


password_hasher = PasswordHasher()
