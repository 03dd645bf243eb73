"""
Driver slot credentials.

Driver passwords are short numeric codes that owners hand out to the person
driving under a slot. They are stored with a reversible base64 encoding,
not hashed.
"""

import base64
from secrets import randbelow

from gobus.src.constants import DRIVER_PASSWORD_MIN, DRIVER_PASSWORD_MAX


def generatePassword() -> str:
    """Return a 4-digit password drawn uniformly from [1000, 9999]."""
    span = DRIVER_PASSWORD_MAX - DRIVER_PASSWORD_MIN + 1
    return str(DRIVER_PASSWORD_MIN + randbelow(span))


def encodePassword(plaintext: str) -> str:
    """Base64 of the UTF-8 bytes of `plaintext`."""
    return base64.b64encode(plaintext.encode("utf-8")).decode("ascii")


def verifyPassword(candidate: str, stored: str | None) -> bool:
    """
    Check a login attempt against the stored driver password.

    Accepts either the encoded form or, for slots created before encoding
    was introduced, the plaintext itself.
    """
    if not stored:
        return False
    if encodePassword(candidate) == stored:
        return True
    # TODO: drop the plaintext path once legacy driver rows are re-encoded
    return candidate == stored
