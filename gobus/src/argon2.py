"""
Argon2 hashing of account passwords.

Owner and customer profiles keep an Argon2 hash of their password. Driver
slots use the reversible encoding of `gobus.src.credentials` instead.
"""

from typing import Optional
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError

passwordHasher = PasswordHasher()


def makePassword(password: str) -> str:
    return passwordHasher.hash(password)


def checkPassword(password: str, hashed: Optional[str]) -> bool:
    """True when `password` matches the stored Argon2 `hashed` value."""
    if not hashed:
        return False
    try:
        return passwordHasher.verify(hashed, password)
    except (VerificationError, InvalidHashError):
        return False


def upgradedHash(password: str, hashed: str) -> Optional[str]:
    """
    A fresh hash of a verified password when the stored one was made with
    older hasher parameters, None when the stored hash is current.
    """
    if passwordHasher.check_needs_rehash(hashed):
        return passwordHasher.hash(password)
    return None
