from gobus.src.db import Bus, DriverProfile, Profile
from gobus.src.credentials import verifyPassword
from gobus.src.enums import Role
from gobus.src.slots import (
    buildDriverSlots,
    loginId,
    nextSlotName,
    registrationSuffix,
    slotName,
    slotNumber,
)


def makeOwner(session) -> int:
    owner = Profile(role=Role.OWNER, email_id="slots@gobus.in", password="x")
    session.add(owner)
    session.flush()
    return owner.id


def addBus(session, owner_id: int, registration: str):
    session.add(
        Bus(
            owner_id=owner_id,
            registration_number=registration,
            ref_number=f"BUS{registration}"[:16],
            route_from="A",
            route_to="B",
        )
    )
    session.flush()


def addDriver(session, owner_id: int, slot: str, username: str):
    session.add(
        DriverProfile(owner_id=owner_id, slot_name=slot, username=username)
    )
    session.flush()


def test_registration_suffix():
    assert registrationSuffix("KA01AB1234") == "1234"
    assert registrationSuffix("KL-45-N6225") == "6225"
    assert registrationSuffix("ABCDEF") == "0000"
    assert registrationSuffix("KA1") == "1"


def test_random_suffix_without_registration():
    suffix = registrationSuffix(None)
    assert len(suffix) == 4
    assert suffix.isdigit()


def test_login_id_and_slot_name():
    assert loginId(12, "1234") == "D121234"
    assert slotName(3) == "Driver 3"


def test_slot_number():
    assert slotNumber("Driver 12") == 12
    assert slotNumber("Driver 3 (night)") == 3
    assert slotNumber("Driver C") is None
    assert slotNumber("Driver C", allowLegacy=True) == 3
    assert slotNumber("driver a", allowLegacy=True) is None
    assert slotNumber("Conductor 1") is None
    assert slotNumber(None) is None


def test_next_slot_name_without_drivers(session):
    ownerId = makeOwner(session)
    assert nextSlotName(ownerId, session) == "Driver 1"


def test_next_slot_follows_most_recent_slot(session):
    ownerId = makeOwner(session)
    for number in (1, 2, 5):
        addDriver(session, ownerId, f"Driver {number}", f"D{number}0000")
    assert nextSlotName(ownerId, session) == "Driver 6"


def test_next_slot_after_renamed_slot(session):
    ownerId = makeOwner(session)
    addDriver(session, ownerId, "Driver 3 (night)", "D30000")
    assert nextSlotName(ownerId, session) == "Driver 4"


def test_next_slot_restarts_on_unrecognized_name(session):
    ownerId = makeOwner(session)
    addDriver(session, ownerId, "Driver 4", "D40000")
    addDriver(session, ownerId, "Night shift", "DX0000")
    assert nextSlotName(ownerId, session) == "Driver 1"


def test_build_slots_share_the_first_bus_suffix(session):
    ownerId = makeOwner(session)
    addBus(session, ownerId, "KA01AB1234")
    addBus(session, ownerId, "KA01AB9999")
    for number in range(1, 7):
        addDriver(session, ownerId, f"Driver {number}", f"D{number}1234")

    drivers, credentials = buildDriverSlots(ownerId, 3, session)

    assert [d.slot_name for d in drivers] == ["Driver 7", "Driver 8", "Driver 9"]
    assert [d.username for d in drivers] == ["D71234", "D81234", "D91234"]
    assert [c["username"] for c in credentials] == ["D71234", "D81234", "D91234"]
    for driver, credential in zip(drivers, credentials):
        assert driver.owner_id == ownerId
        assert verifyPassword(credential["password"], driver.password_hash)
        assert driver.password_hash != credential["password"]
    assert drivers[0] not in session
