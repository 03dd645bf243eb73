from datetime import datetime
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm.session import Session
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field

from gobus.api.bearer import bearer_owner
from gobus.api.bus import BusSchema
from gobus.src.constants import MAX_DRIVERS_PER_REQUEST
from gobus.src.db import Bus, DriverProfile, DriverToken, Profile, sessionMaker
from gobus.src import exceptions, validators, getters
from gobus.src.enums import DriverAction
from gobus.src.loggers import logEvent
from gobus.src.functions import enumStr, makeExceptionResponses, updateIfChanged
from gobus.src.redis import acquireLock, releaseLock
from gobus.src.credentials import encodePassword, generatePassword
from gobus.src.slots import (
    buildDriverSlots,
    lastDriver,
    loginId,
    nextSlotName,
    ownerSuffix,
    slotNumber,
)
from gobus.src.urls import (
    URL_DRIVERS,
    URL_DRIVERS_NEXT,
    URL_DRIVERS_UNASSIGNED_BUS,
    URL_DRIVER_CREDENTIALS,
)

route_owner = APIRouter()


## Output Schema
class DriverSchema(BaseModel):
    id: int
    owner_id: int
    bus_id: Optional[int]
    username: str
    slot_name: str
    name: Optional[str]
    phone_number: Optional[str]
    remarks: Optional[str]
    updated_on: Optional[datetime]
    created_on: datetime


class DriverWithBusSchema(DriverSchema):
    bus: Optional[BusSchema]


class DriverListSchema(BaseModel):
    drivers: List[DriverWithBusSchema]
    buses: List[BusSchema]


class CredentialSchema(BaseModel):
    slot_name: str
    username: str
    password: str


class DriverSlotsSchema(BaseModel):
    drivers: List[DriverSchema]
    credentials: List[CredentialSchema]


class ResetSchema(BaseModel):
    driver: DriverSchema
    credentials: CredentialSchema


class NextSlotSchema(BaseModel):
    slot_name: str


class DeleteSchema(BaseModel):
    success: bool


## Input Forms
class CreateForm(BaseModel):
    action: DriverAction = Field(
        description=enumStr(DriverAction), default=DriverAction.BULK_CREATE
    )
    count: int = Field(ge=1, le=MAX_DRIVERS_PER_REQUEST, default=1)


class UpdateForm(BaseModel):
    id: int
    bus_id: int | None = Field(
        default=None, description="Bus to assign, null removes the assignment"
    )
    name: str | None = Field(max_length=64, default=None)
    phone_number: str | None = Field(max_length=32, default=None)
    remarks: str | None = Field(max_length=512, default=None)


class DeleteForm(BaseModel):
    id: int | None = Field(Query(default=None))
    last: bool = Field(Query(default=False))


## Function
def driverData(driver: DriverProfile) -> dict:
    return jsonable_encoder(driver, exclude={"password_hash"})


def ownedDriver(driver_id: int, owner_id: int, session: Session) -> DriverProfile:
    driver = (
        session.query(DriverProfile)
        .filter(DriverProfile.id == driver_id, DriverProfile.owner_id == owner_id)
        .first()
    )
    if driver is None:
        raise exceptions.InvalidIdentifier()
    return driver


def updateDriver(driver: DriverProfile, fParam: UpdateForm, session: Session):
    if "bus_id" in fParam.model_fields_set and driver.bus_id != fParam.bus_id:
        if fParam.bus_id is not None:
            validators.ownedBus(fParam.bus_id, driver.owner_id, session)
        driver.bus_id = fParam.bus_id
    updateIfChanged(
        driver,
        fParam,
        [
            DriverProfile.name.key,
            DriverProfile.phone_number.key,
            DriverProfile.remarks.key,
        ],
    )


## API endpoints [Owner]
@route_owner.get(
    URL_DRIVERS,
    tags=["Driver"],
    response_model=DriverListSchema,
    responses=makeExceptionResponses([exceptions.InvalidToken]),
    description="""
    Lists the driver slots of the owner, oldest first, each with its assigned bus.
    Also lists every bus of the owner for assignment.
    Passwords are never returned here.
    """,
)
async def fetch_drivers(bearer=Depends(bearer_owner)):
    try:
        session = sessionMaker()
        token = validators.ownerToken(bearer.credentials, session)

        buses = (
            session.query(Bus)
            .filter(Bus.owner_id == token.owner_id)
            .order_by(Bus.id.asc())
            .all()
        )
        busesById = {bus.id: jsonable_encoder(bus) for bus in buses}
        drivers = (
            session.query(DriverProfile)
            .filter(DriverProfile.owner_id == token.owner_id)
            .order_by(DriverProfile.created_on.asc(), DriverProfile.id.asc())
            .all()
        )
        driverList = []
        for driver in drivers:
            data = driverData(driver)
            data["bus"] = busesById.get(driver.bus_id)
            driverList.append(data)
        return {"drivers": driverList, "buses": list(busesById.values())}
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_owner.get(
    URL_DRIVERS_NEXT,
    tags=["Driver"],
    response_model=NextSlotSchema,
    responses=makeExceptionResponses([exceptions.InvalidToken]),
    description="""
    Returns the name the next driver slot of the owner will get.
    Numbering continues from the most recently created slot.
    """,
)
async def fetch_next_slot(bearer=Depends(bearer_owner)):
    try:
        session = sessionMaker()
        token = validators.ownerToken(bearer.credentials, session)
        return {"slot_name": nextSlotName(token.owner_id, session)}
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_owner.get(
    URL_DRIVERS_UNASSIGNED_BUS,
    tags=["Driver"],
    response_model=List[BusSchema],
    responses=makeExceptionResponses([exceptions.InvalidToken]),
    description="""
    Lists the buses of the owner that no driver slot is assigned to.
    """,
)
async def fetch_unassigned_buses(bearer=Depends(bearer_owner)):
    try:
        session = sessionMaker()
        token = validators.ownerToken(bearer.credentials, session)

        assigned = session.query(DriverProfile.bus_id).filter(
            DriverProfile.owner_id == token.owner_id,
            DriverProfile.bus_id.is_not(None),
        )
        return (
            session.query(Bus)
            .filter(Bus.owner_id == token.owner_id, Bus.id.not_in(assigned))
            .order_by(Bus.id.asc())
            .all()
        )
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_owner.post(
    URL_DRIVERS,
    tags=["Driver"],
    response_model=DriverSlotsSchema,
    status_code=status.HTTP_201_CREATED,
    responses=makeExceptionResponses(
        [
            exceptions.InvalidToken,
            exceptions.UniqueViolation,
            exceptions.LockAcquireTimeout,
        ]
    ),
    description="""
    Provisions new driver slots for the owner.
    `CREATE_ONE` creates a single slot, `BULK_CREATE` creates `count` slots.
    Slots are named `Driver <N>` continuing from the most recently created slot.
    Login IDs read `D<N><suffix>`; the suffix is the last four digits of the registration number of the owner's first bus.
    Every slot gets its own random 4-digit password.
    The credentials are returned only in this response.
    All slots are stored in one transaction; a login ID clash rejects the whole request.
    """,
)
async def create_drivers(
    fParam: CreateForm,
    bearer=Depends(bearer_owner),
    request_info=Depends(getters.requestInfo),
):
    lock = None
    try:
        session = sessionMaker()
        token = validators.ownerToken(bearer.credentials, session)
        count = 1 if fParam.action == DriverAction.CREATE_ONE else fParam.count

        lock = acquireLock(Profile.__tablename__, token.owner_id)
        drivers, credentials = buildDriverSlots(token.owner_id, count, session)
        session.add_all(drivers)
        session.commit()
        for driver in drivers:
            session.refresh(driver)

        driverList = [driverData(driver) for driver in drivers]
        logEvent(token, request_info, {"count": count, "drivers": driverList})
        return {"drivers": driverList, "credentials": credentials}
    except Exception as e:
        exceptions.handle(e)
    finally:
        releaseLock(lock)
        session.close()


@route_owner.put(
    URL_DRIVERS,
    tags=["Driver"],
    response_model=DriverSchema,
    responses=makeExceptionResponses(
        [exceptions.InvalidToken, exceptions.InvalidIdentifier]
    ),
    description="""
    Updates a driver slot of the owner.
    Assigns the slot to one of the owner's buses, or removes the assignment when `bus_id` is null.
    Also updates the name, phone number and remarks of the driver.
    Only the fields present in the request are changed.
    """,
)
async def update_driver(
    fParam: UpdateForm,
    bearer=Depends(bearer_owner),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.ownerToken(bearer.credentials, session)
        driver = ownedDriver(fParam.id, token.owner_id, session)

        updateDriver(driver, fParam, session)
        haveUpdates = session.is_modified(driver)
        if haveUpdates:
            session.commit()
            session.refresh(driver)

        driverDetails = driverData(driver)
        if haveUpdates:
            logEvent(token, request_info, driverDetails)
        return driverDetails
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_owner.delete(
    URL_DRIVERS,
    tags=["Driver"],
    response_model=DeleteSchema,
    responses=makeExceptionResponses(
        [
            exceptions.InvalidToken,
            exceptions.MissingParameter,
            exceptions.InvalidIdentifier,
        ]
    ),
    description="""
    Deletes a driver slot of the owner, by `id` or, with `last=true`, the most recently created one.
    The driver is signed out of every device.
    The slot number is not reused by later slots unless the deleted slot was the most recent one.
    """,
)
async def delete_driver(
    qParam: DeleteForm = Depends(),
    bearer=Depends(bearer_owner),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.ownerToken(bearer.credentials, session)

        if qParam.id is not None:
            driver = ownedDriver(qParam.id, token.owner_id, session)
        elif qParam.last:
            driver = lastDriver(token.owner_id, session)
            if driver is None:
                raise exceptions.InvalidIdentifier()
        else:
            raise exceptions.MissingParameter(DriverProfile.id)

        driverDetails = driverData(driver)
        session.delete(driver)
        session.commit()
        logEvent(token, request_info, driverDetails)
        return {"success": True}
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_owner.post(
    URL_DRIVER_CREDENTIALS,
    tags=["Driver"],
    response_model=ResetSchema,
    responses=makeExceptionResponses(
        [
            exceptions.InvalidToken,
            exceptions.InvalidIdentifier,
            exceptions.InvalidValue,
            exceptions.UniqueViolation,
        ]
    ),
    description="""
    Issues new credentials for a driver slot.
    The login ID is rebuilt from the slot number and the registration suffix of the owner's first bus.
    Slots still named with the old `Driver <letter>` labels are numbered A=1, B=2 and so on.
    A new 4-digit password is generated and returned only in this response.
    The driver is signed out of every device.
    """,
)
async def reset_credentials(
    driver_id: int,
    bearer=Depends(bearer_owner),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.ownerToken(bearer.credentials, session)
        driver = ownedDriver(driver_id, token.owner_id, session)

        number = slotNumber(driver.slot_name, allowLegacy=True)
        if number is None:
            raise exceptions.InvalidValue(DriverProfile.slot_name)

        password = generatePassword()
        driver.username = loginId(number, ownerSuffix(token.owner_id, session))
        driver.password_hash = encodePassword(password)
        session.query(DriverToken).filter(DriverToken.driver_id == driver.id).delete(
            synchronize_session=False
        )
        session.commit()
        session.refresh(driver)

        driverDetails = driverData(driver)
        logEvent(token, request_info, driverDetails)
        return {
            "driver": driverDetails,
            "credentials": {
                "slot_name": driver.slot_name,
                "username": driver.username,
                "password": password,
            },
        }
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
