"""
Driver slot naming.

A slot is labelled `Driver <N>` and logs in as `D<N><suffix>`, where the
suffix comes from the registration number of the owner's first bus.
"""

import re
from secrets import randbelow
from typing import List, Optional
from sqlalchemy.orm.session import Session

from gobus.src.db import Bus, DriverProfile
from gobus.src.constants import (
    DRIVER_SLOT_PREFIX,
    DRIVER_LOGIN_PREFIX,
    REGISTRATION_SUFFIX_LENGTH,
    DEFAULT_REGISTRATION_SUFFIX,
)
from gobus.src.credentials import generatePassword, encodePassword

slotPattern = re.compile(rf"^{DRIVER_SLOT_PREFIX} (\d+)")
legacySlotPattern = re.compile(rf"^{DRIVER_SLOT_PREFIX} ([A-Za-z])$")


def slotName(number: int) -> str:
    return f"{DRIVER_SLOT_PREFIX} {number}"


def slotNumber(name: Optional[str], allowLegacy: bool = False) -> Optional[int]:
    """
    Read the slot number out of a slot name.

    Args:
        name (str | None): Slot name such as "Driver 12". Text after the
            number, as in "Driver 3 (night)", is ignored.
        allowLegacy (bool): Also accept the old "Driver <letter>" labels,
            where A is 1, B is 2 and so on.

    Returns:
        int | None: The slot number, or None if the name does not match.
    """
    if not name:
        return None
    match = slotPattern.match(name.strip())
    if match:
        return int(match.group(1))
    if allowLegacy:
        match = legacySlotPattern.match(name.strip())
        if match:
            return ord(match.group(1).upper()) - ord("A") + 1
    return None


def registrationSuffix(registrationNumber: Optional[str]) -> str:
    """
    Last four digits of a registration number.

    >>> registrationSuffix("KL-45-N6225")
    '6225'

    A registration without digits gives "0000". Without any registration
    (owner has no bus yet) a random 4-digit suffix is returned.
    """
    if registrationNumber is None:
        return str(randbelow(10**REGISTRATION_SUFFIX_LENGTH)).zfill(
            REGISTRATION_SUFFIX_LENGTH
        )
    digits = re.sub(r"[^0-9]", "", registrationNumber)
    return digits[-REGISTRATION_SUFFIX_LENGTH:] or DEFAULT_REGISTRATION_SUFFIX


def loginId(number: int, suffix: str) -> str:
    return f"{DRIVER_LOGIN_PREFIX}{number}{suffix}"


def ownerSuffix(owner_id: int, session: Session) -> str:
    """Registration suffix derived from the owner's first bus."""
    firstBus = (
        session.query(Bus.registration_number)
        .filter(Bus.owner_id == owner_id)
        .order_by(Bus.id.asc())
        .first()
    )
    return registrationSuffix(firstBus[0] if firstBus else None)


def lastDriver(owner_id: int, session: Session) -> Optional[DriverProfile]:
    """The most recently created driver slot of an owner."""
    return (
        session.query(DriverProfile)
        .filter(DriverProfile.owner_id == owner_id)
        .order_by(DriverProfile.created_on.desc(), DriverProfile.id.desc())
        .first()
    )


def nextSlotNumber(owner_id: int, session: Session) -> int:
    """
    Slot number following the most recently created slot.

    Only the latest slot is consulted, so numbers of deleted slots are
    not reused and a latest slot with a non-matching name restarts at 1.
    """
    driver = lastDriver(owner_id, session)
    number = slotNumber(driver.slot_name) if driver else None
    return number + 1 if number is not None else 1


def nextSlotName(owner_id: int, session: Session) -> str:
    return slotName(nextSlotNumber(owner_id, session))


def buildDriverSlots(
    owner_id: int, count: int, session: Session
) -> tuple[List[DriverProfile], List[dict]]:
    """
    Build `count` new driver slots for an owner without adding them to the session.

    Returns:
        tuple: The `DriverProfile` rows and, in the same order, their
        one-time credentials as `{slot_name, username, password}`.
    """
    start = nextSlotNumber(owner_id, session)
    suffix = ownerSuffix(owner_id, session)

    drivers, credentials = [], []
    for number in range(start, start + count):
        password = generatePassword()
        driver = DriverProfile(
            owner_id=owner_id,
            username=loginId(number, suffix),
            slot_name=slotName(number),
            password_hash=encodePassword(password),
        )
        drivers.append(driver)
        credentials.append(
            {
                "slot_name": driver.slot_name,
                "username": driver.username,
                "password": password,
            }
        )
    return drivers, credentials
