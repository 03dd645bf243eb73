from datetime import datetime, time
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm.session import Session
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field

from gobus.api.bearer import bearer_owner
from gobus.src.db import Bus, Trip, sessionMaker
from gobus.src import exceptions, validators, getters
from gobus.src.enums import Day
from gobus.src.loggers import logEvent
from gobus.src.functions import enumStr, makeExceptionResponses, updateIfChanged
from gobus.src.redis import acquireLock, releaseLock
from gobus.src.sequencing import (
    nextTripNumber,
    orderedStops,
    orderedTrips,
    stopsByTrip,
)
from gobus.src.urls import URL_TRIP, URL_TRIP_ITEM

route_owner = APIRouter()


## Output Schema
class StopSchema(BaseModel):
    id: int
    trip_id: int
    name: str
    arrival_time: time
    sequence: int
    updated_on: Optional[datetime]
    created_on: datetime


class TripSchema(BaseModel):
    id: int
    bus_id: int
    trip_number: int
    start_time: time
    end_time: Optional[time]
    days_of_week: List[int]
    is_active: bool
    updated_on: Optional[datetime]
    created_on: datetime
    stops: List[StopSchema]


## Input Forms
class CreateForm(BaseModel):
    bus_id: int
    start_time: time | None = None
    end_time: time | None = None
    days_of_week: List[Day] = Field(description=enumStr(Day), default=[])
    is_active: bool = True


class UpdateForm(BaseModel):
    start_time: time | None = None
    end_time: time | None = None
    days_of_week: List[Day] | None = Field(description=enumStr(Day), default=None)
    is_active: bool | None = None


## Query Parameters
class QueryParams(BaseModel):
    bus_id: int = Field(Query())


## Function
def tripData(trip: Trip, session: Session) -> dict:
    """Trip with its stops in sequence order."""
    data = jsonable_encoder(trip)
    data["stops"] = jsonable_encoder(orderedStops(trip.id, session))
    return data


def tripsOfBus(bus_id: int, session: Session) -> List[dict]:
    """Trips of a bus in trip number order, each with its ordered stops."""
    trips = orderedTrips(bus_id, session)
    stops = stopsByTrip([trip.id for trip in trips], session)
    result = []
    for trip in trips:
        data = jsonable_encoder(trip)
        data["stops"] = jsonable_encoder(stops[trip.id])
        result.append(data)
    return result


def daysOfWeek(days: List[Day]) -> List[int]:
    """Weekday numbers without duplicates, Monday first."""
    return sorted({int(day) for day in days})


def updateTrip(trip: Trip, fParam: UpdateForm):
    if fParam.days_of_week is not None:
        if not fParam.days_of_week:
            raise exceptions.MissingParameter(Trip.days_of_week)
        days = daysOfWeek(fParam.days_of_week)
        if list(trip.days_of_week) != days:
            trip.days_of_week = days
    updateIfChanged(
        trip,
        fParam,
        [
            Trip.start_time.key,
            Trip.end_time.key,
            Trip.is_active.key,
        ],
    )


## API endpoints [Owner]
@route_owner.post(
    URL_TRIP,
    tags=["Trip"],
    response_model=TripSchema,
    status_code=status.HTTP_201_CREATED,
    responses=makeExceptionResponses(
        [
            exceptions.InvalidToken,
            exceptions.MissingParameter,
            exceptions.InvalidIdentifier,
            exceptions.LockAcquireTimeout,
        ]
    ),
    description="""
    Creates a new trip for one of the owner's buses.
    The start time and at least one day of the week are required.
    The trip number is one above the highest trip number of the bus, starting at 1.
    Numbers of deleted trips are not compacted.
    Concurrent creations for the same bus are serialized with a lock on the bus.
    """,
)
async def create_trip(
    fParam: CreateForm,
    bearer=Depends(bearer_owner),
    request_info=Depends(getters.requestInfo),
):
    lock = None
    try:
        session = sessionMaker()
        token = validators.ownerToken(bearer.credentials, session)
        if fParam.start_time is None:
            raise exceptions.MissingParameter(Trip.start_time)
        if not fParam.days_of_week:
            raise exceptions.MissingParameter(Trip.days_of_week)
        bus = validators.ownedBus(fParam.bus_id, token.owner_id, session)

        lock = acquireLock(Bus.__tablename__, bus.id)
        trip = Trip(
            bus_id=bus.id,
            trip_number=nextTripNumber(bus.id, session),
            start_time=fParam.start_time,
            end_time=fParam.end_time,
            days_of_week=daysOfWeek(fParam.days_of_week),
            is_active=fParam.is_active,
        )
        session.add(trip)
        session.commit()
        session.refresh(trip)

        tripDetails = tripData(trip, session)
        logEvent(token, request_info, tripDetails)
        return tripDetails
    except Exception as e:
        exceptions.handle(e)
    finally:
        releaseLock(lock)
        session.close()


@route_owner.get(
    URL_TRIP,
    tags=["Trip"],
    response_model=List[TripSchema],
    responses=makeExceptionResponses(
        [exceptions.InvalidToken, exceptions.InvalidIdentifier]
    ),
    description="""
    Lists the trips of a bus in ascending trip number order.
    Each trip carries its stops in ascending sequence order.
    """,
)
async def fetch_trips(qParam: QueryParams = Depends(), bearer=Depends(bearer_owner)):
    try:
        session = sessionMaker()
        token = validators.ownerToken(bearer.credentials, session)
        bus = validators.ownedBus(qParam.bus_id, token.owner_id, session)
        return tripsOfBus(bus.id, session)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_owner.get(
    URL_TRIP_ITEM,
    tags=["Trip"],
    response_model=TripSchema,
    responses=makeExceptionResponses(
        [exceptions.InvalidToken, exceptions.InvalidIdentifier]
    ),
    description="""
    Fetches a single trip of the owner with its ordered stops.
    """,
)
async def fetch_trip(trip_id: int, bearer=Depends(bearer_owner)):
    try:
        session = sessionMaker()
        token = validators.ownerToken(bearer.credentials, session)
        trip = validators.ownedTrip(trip_id, token.owner_id, session)
        return tripData(trip, session)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_owner.patch(
    URL_TRIP_ITEM,
    tags=["Trip"],
    response_model=TripSchema,
    responses=makeExceptionResponses(
        [
            exceptions.InvalidToken,
            exceptions.InvalidIdentifier,
            exceptions.MissingParameter,
        ]
    ),
    description="""
    Updates the timing, running days or active flag of a trip.
    The trip number never changes.
    An empty list of days is rejected.
    Changes are saved only if the trip data has been modified.
    """,
)
async def update_trip(
    trip_id: int,
    fParam: UpdateForm,
    bearer=Depends(bearer_owner),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.ownerToken(bearer.credentials, session)
        trip = validators.ownedTrip(trip_id, token.owner_id, session)

        updateTrip(trip, fParam)
        haveUpdates = session.is_modified(trip)
        if haveUpdates:
            session.commit()
            session.refresh(trip)

        tripDetails = tripData(trip, session)
        if haveUpdates:
            logEvent(token, request_info, tripDetails)
        return tripDetails
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_owner.delete(
    URL_TRIP_ITEM,
    tags=["Trip"],
    status_code=status.HTTP_204_NO_CONTENT,
    responses=makeExceptionResponses(
        [exceptions.InvalidToken, exceptions.InvalidIdentifier]
    ),
    description="""
    Deletes a trip together with its stops.
    The remaining trips of the bus keep their trip numbers.
    """,
)
async def delete_trip(
    trip_id: int,
    bearer=Depends(bearer_owner),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.ownerToken(bearer.credentials, session)
        trip = validators.ownedTrip(trip_id, token.owner_id, session)

        tripDetails = jsonable_encoder(trip)
        session.delete(trip)
        session.commit()
        logEvent(token, request_info, tripDetails)
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
