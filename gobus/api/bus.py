import time
from datetime import datetime
from enum import IntEnum
from secrets import randbelow
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy import or_
from sqlalchemy.orm.session import Session
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field

from gobus.api.bearer import bearer_owner, bearer_customer
from gobus.api.trip import TripSchema, tripsOfBus
from gobus.src.db import Bus, sessionMaker
from gobus.src import exceptions, validators, getters
from gobus.src.enums import OrderIn
from gobus.src.loggers import logEvent
from gobus.src.constants import REGEX_REGISTRATION_NUMBER
from gobus.src.functions import enumStr, makeExceptionResponses, updateIfChanged
from gobus.src.urls import URL_BUS, URL_BUS_ITEM

route_owner = APIRouter()
route_customer = APIRouter()


## Output Schema
class BusSchema(BaseModel):
    id: int
    owner_id: int
    registration_number: str
    ref_number: str
    route_from: str
    route_to: str
    total_seats: int
    current_passengers: int
    current_stop: Optional[str]
    bank_account_id: Optional[int]
    updated_on: Optional[datetime]
    created_on: datetime


class BusDetailSchema(BusSchema):
    trips: List[TripSchema]


class PublicBusSchema(BaseModel):
    id: int
    ref_number: str
    registration_number: str
    route_from: str
    route_to: str
    total_seats: int
    current_passengers: int
    current_stop: Optional[str]


## Input Forms
class CreateForm(BaseModel):
    registration_number: str = Field(pattern=REGEX_REGISTRATION_NUMBER, max_length=16)
    route_from: str = Field(min_length=1, max_length=64)
    route_to: str = Field(min_length=1, max_length=64)
    total_seats: int = Field(ge=1, le=120, default=40)


class UpdateForm(BaseModel):
    id: int
    route_from: str | None = Field(min_length=1, max_length=64, default=None)
    route_to: str | None = Field(min_length=1, max_length=64, default=None)
    total_seats: int | None = Field(ge=1, le=120, default=None)
    current_passengers: int | None = Field(ge=0, default=None)
    current_stop: str | None = Field(max_length=128, default=None)


class DeleteForm(BaseModel):
    id: int = Field(Query())


## Query Parameters
class OrderBy(IntEnum):
    id = 1
    updated_on = 2
    created_on = 3


class QueryParams(BaseModel):
    # filters
    registration_number: str | None = Field(Query(default=None))
    ref_number: str | None = Field(Query(default=None))
    route: str | None = Field(Query(default=None))
    # id based
    id: int | None = Field(Query(default=None))
    id_list: List[int] | None = Field(Query(default=None))
    # Ordering
    order_by: OrderBy = Field(
        Query(default=OrderBy.created_on, description=enumStr(OrderBy))
    )
    order_in: OrderIn = Field(Query(default=OrderIn.DESC, description=enumStr(OrderIn)))
    # Pagination
    offset: int = Field(Query(default=0, ge=0))
    limit: int = Field(Query(default=20, gt=0, le=100))


class PublicQueryParams(BaseModel):
    code: str = Field(Query(min_length=1, max_length=16))


## Function
def makeRefNumber(session: Session) -> str:
    """
    Reference number printed on the bus, `BUS<6 time digits><3 random digits>`.
    """
    while True:
        stamp = str(int(time.time() * 1000))[-6:]
        refNumber = f"BUS{stamp}{randbelow(1000):03d}"
        exists = session.query(Bus.id).filter(Bus.ref_number == refNumber).first()
        if exists is None:
            return refNumber


def updateBus(bus: Bus, fParam: UpdateForm):
    updateIfChanged(
        bus,
        fParam,
        [
            Bus.route_from.key,
            Bus.route_to.key,
            Bus.total_seats.key,
            Bus.current_passengers.key,
            Bus.current_stop.key,
        ],
    )


def searchBus(session: Session, owner_id: int, qParam: QueryParams) -> List[Bus]:
    query = session.query(Bus).filter(Bus.owner_id == owner_id)

    # Filters
    if qParam.registration_number is not None:
        query = query.filter(
            Bus.registration_number.ilike(f"%{qParam.registration_number}%")
        )
    if qParam.ref_number is not None:
        query = query.filter(Bus.ref_number == qParam.ref_number.strip().upper())
    if qParam.route is not None:
        query = query.filter(
            or_(
                Bus.route_from.ilike(f"%{qParam.route}%"),
                Bus.route_to.ilike(f"%{qParam.route}%"),
            )
        )
    # id based
    if qParam.id is not None:
        query = query.filter(Bus.id == qParam.id)
    if qParam.id_list is not None:
        query = query.filter(Bus.id.in_(qParam.id_list))

    # Ordering
    orderingAttribute = getattr(Bus, OrderBy(qParam.order_by).name)
    if qParam.order_in == OrderIn.ASC:
        query = query.order_by(orderingAttribute.asc(), Bus.id.asc())
    else:
        query = query.order_by(orderingAttribute.desc(), Bus.id.desc())

    # Pagination
    query = query.offset(qParam.offset).limit(qParam.limit)
    return query.all()


## API endpoints [Owner]
@route_owner.post(
    URL_BUS,
    tags=["Bus"],
    response_model=BusSchema,
    status_code=status.HTTP_201_CREATED,
    responses=makeExceptionResponses(
        [exceptions.InvalidToken, exceptions.DuplicateRegistration]
    ),
    description="""
    Registers a new bus for the owner.
    The registration number is stored upper-cased and must be unique among the owner's buses.
    A reference number is generated for the bus; customers look the bus up with it.
    Logs the bus creation activity with the associated token.
    """,
)
async def create_bus(
    fParam: CreateForm,
    bearer=Depends(bearer_owner),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.ownerToken(bearer.credentials, session)

        registrationNumber = fParam.registration_number.strip().upper()
        duplicate = (
            session.query(Bus.id)
            .filter(
                Bus.owner_id == token.owner_id,
                Bus.registration_number == registrationNumber,
            )
            .first()
        )
        if duplicate is not None:
            raise exceptions.DuplicateRegistration()

        bus = Bus(
            owner_id=token.owner_id,
            registration_number=registrationNumber,
            ref_number=makeRefNumber(session),
            route_from=fParam.route_from.strip(),
            route_to=fParam.route_to.strip(),
            total_seats=fParam.total_seats,
        )
        session.add(bus)
        session.commit()
        session.refresh(bus)

        busData = jsonable_encoder(bus)
        logEvent(token, request_info, busData)
        return busData
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_owner.patch(
    URL_BUS,
    tags=["Bus"],
    response_model=BusSchema,
    responses=makeExceptionResponses(
        [exceptions.InvalidToken, exceptions.InvalidIdentifier]
    ),
    description="""
    Updates an existing bus belonging to the owner.
    The registration and reference numbers cannot be changed.
    Changes are saved only if the bus data has been modified.
    """,
)
async def update_bus(
    fParam: UpdateForm,
    bearer=Depends(bearer_owner),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.ownerToken(bearer.credentials, session)
        bus = validators.ownedBus(fParam.id, token.owner_id, session)

        updateBus(bus, fParam)
        haveUpdates = session.is_modified(bus)
        if haveUpdates:
            session.commit()
            session.refresh(bus)

        busData = jsonable_encoder(bus)
        if haveUpdates:
            logEvent(token, request_info, busData)
        return busData
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_owner.delete(
    URL_BUS,
    tags=["Bus"],
    status_code=status.HTTP_204_NO_CONTENT,
    responses=makeExceptionResponses([exceptions.InvalidToken]),
    description="""
    Deletes a bus of the owner together with its trips, stops and tickets.
    Drivers assigned to the bus become unassigned.
    If the bus does not exist, the operation is silently ignored.
    """,
)
async def delete_bus(
    qParam: DeleteForm = Depends(),
    bearer=Depends(bearer_owner),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.ownerToken(bearer.credentials, session)

        bus = (
            session.query(Bus)
            .filter(Bus.id == qParam.id, Bus.owner_id == token.owner_id)
            .first()
        )
        if bus is not None:
            session.delete(bus)
            session.commit()
            logEvent(token, request_info, jsonable_encoder(bus))
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_owner.get(
    URL_BUS,
    tags=["Bus"],
    response_model=List[BusSchema],
    responses=makeExceptionResponses([exceptions.InvalidToken]),
    description="""
    Fetches the buses of the owner.
    Supports filtering by registration number, reference number and route end points.
    Newest buses come first by default.
    """,
)
async def fetch_buses(qParam: QueryParams = Depends(), bearer=Depends(bearer_owner)):
    try:
        session = sessionMaker()
        token = validators.ownerToken(bearer.credentials, session)
        return searchBus(session, token.owner_id, qParam)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_owner.get(
    URL_BUS_ITEM,
    tags=["Bus"],
    response_model=BusDetailSchema,
    responses=makeExceptionResponses(
        [exceptions.InvalidToken, exceptions.InvalidIdentifier]
    ),
    description="""
    Fetches one bus of the owner with its trips and their stops.
    """,
)
async def fetch_bus(bus_id: int, bearer=Depends(bearer_owner)):
    try:
        session = sessionMaker()
        token = validators.ownerToken(bearer.credentials, session)
        bus = validators.ownedBus(bus_id, token.owner_id, session)

        busData = jsonable_encoder(bus)
        busData["trips"] = tripsOfBus(bus.id, session)
        return busData
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


## API endpoints [Customer]
@route_customer.get(
    URL_BUS,
    tags=["Bus"],
    response_model=PublicBusSchema,
    responses=makeExceptionResponses(
        [exceptions.InvalidToken, exceptions.InvalidIdentifier]
    ),
    description="""
    Looks a bus up by the reference number printed on it.
    """,
)
async def fetch_bus_by_code(
    qParam: PublicQueryParams = Depends(), bearer=Depends(bearer_customer)
):
    try:
        session = sessionMaker()
        validators.customerToken(bearer.credentials, session)

        bus = (
            session.query(Bus)
            .filter(Bus.ref_number == qParam.code.strip().upper())
            .first()
        )
        if bus is None:
            raise exceptions.InvalidIdentifier()
        return bus
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
