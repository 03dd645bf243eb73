from datetime import time
from typing import List
from fastapi import APIRouter, Depends
from sqlalchemy.orm.session import Session
from pydantic import BaseModel, Field

from gobus.api.bearer import bearer_owner
from gobus.api.trip import TripSchema, tripData
from gobus.src.constants import MAX_STOPS_PER_REQUEST
from gobus.src.db import Trip, TripStop, sessionMaker
from gobus.src import exceptions, validators, getters
from gobus.src.loggers import logEvent
from gobus.src.functions import makeExceptionResponses
from gobus.src.redis import acquireLock, releaseLock
from gobus.src.sequencing import (
    nextStopSequence,
    orderedStops,
    resequenceStops,
    shiftStopsAfter,
)
from gobus.src.urls import URL_TRIP_STOP, URL_TRIP_STOP_BULK, URL_TRIP_STOP_ITEM

route_owner = APIRouter()


## Input Forms
class StopForm(BaseModel):
    name: str = Field(max_length=128, default="")
    arrival_time: time | None = None


class CreateForm(StopForm):
    after_sequence: int | None = Field(
        ge=0,
        default=None,
        description="Insert after this position instead of appending, 0 inserts first",
    )


class BulkCreateForm(BaseModel):
    stops: List[StopForm] = Field(min_length=1, max_length=MAX_STOPS_PER_REQUEST)


class ReplaceForm(BaseModel):
    stops: List[StopForm] = Field(max_length=MAX_STOPS_PER_REQUEST)


class ReorderForm(BaseModel):
    stop_ids: List[int] = Field(max_length=MAX_STOPS_PER_REQUEST)


class UpdateForm(BaseModel):
    name: str | None = Field(max_length=128, default=None)
    arrival_time: time | None = None


## Function
def checkStop(fParam: StopForm) -> tuple[str, time]:
    """Trimmed stop name and arrival time, both required."""
    name = fParam.name.strip()
    if not name:
        raise exceptions.MissingParameter(TripStop.name)
    if fParam.arrival_time is None:
        raise exceptions.MissingParameter(TripStop.arrival_time)
    return name, fParam.arrival_time


def appendStop(trip: Trip, fParam: StopForm, session: Session) -> TripStop:
    name, arrivalTime = checkStop(fParam)
    stop = TripStop(
        trip_id=trip.id,
        name=name,
        arrival_time=arrivalTime,
        sequence=nextStopSequence(trip.id, session),
    )
    session.add(stop)
    session.flush()
    return stop


def insertStopAt(
    trip: Trip, fParam: StopForm, after_sequence: int, session: Session
) -> TripStop:
    """
    Insert a stop right after `after_sequence`.

    Positions past the last stop append the stop instead.
    """
    name, arrivalTime = checkStop(fParam)
    lastSequence = nextStopSequence(trip.id, session) - 1
    if after_sequence >= lastSequence:
        return appendStop(trip, fParam, session)

    shiftStopsAfter(trip.id, after_sequence, session)
    stop = TripStop(
        trip_id=trip.id,
        name=name,
        arrival_time=arrivalTime,
        sequence=after_sequence + 1,
    )
    session.add(stop)
    session.flush()
    return stop


def lockedTrip(trip_id: int, owner_id: int, session: Session):
    """Fetch an owned trip and take the lock that serializes its stop writers."""
    trip = validators.ownedTrip(trip_id, owner_id, session)
    lock = acquireLock(Trip.__tablename__, trip.id)
    return trip, lock


## API endpoints [Owner]
@route_owner.post(
    URL_TRIP_STOP,
    tags=["Trip stop"],
    response_model=TripSchema,
    responses=makeExceptionResponses(
        [
            exceptions.InvalidToken,
            exceptions.InvalidIdentifier,
            exceptions.MissingParameter,
            exceptions.LockAcquireTimeout,
        ]
    ),
    description="""
    Adds a stop to a trip and returns the trip with its ordered stops.
    By default the stop is appended with sequence one above the current highest, starting at 1.
    With `after_sequence` the stop is inserted at `after_sequence + 1` and later stops move down by one.
    The stop name must not be blank and the arrival time is required.
    """,
)
async def create_stop(
    trip_id: int,
    fParam: CreateForm,
    bearer=Depends(bearer_owner),
    request_info=Depends(getters.requestInfo),
):
    lock = None
    try:
        session = sessionMaker()
        token = validators.ownerToken(bearer.credentials, session)
        trip, lock = lockedTrip(trip_id, token.owner_id, session)

        if fParam.after_sequence is None:
            stop = appendStop(trip, fParam, session)
        else:
            stop = insertStopAt(trip, fParam, fParam.after_sequence, session)
        session.commit()
        session.refresh(stop)

        logEvent(
            token,
            request_info,
            {"trip_id": trip.id, "stop_id": stop.id, "sequence": stop.sequence},
        )
        return tripData(trip, session)
    except Exception as e:
        exceptions.handle(e)
    finally:
        releaseLock(lock)
        session.close()


@route_owner.post(
    URL_TRIP_STOP_BULK,
    tags=["Trip stop"],
    response_model=TripSchema,
    responses=makeExceptionResponses(
        [
            exceptions.InvalidToken,
            exceptions.InvalidIdentifier,
            exceptions.MissingParameter,
            exceptions.LockAcquireTimeout,
        ]
    ),
    description="""
    Appends several stops to a trip in the given order.
    Each stop takes the sequence following the previous one.
    All stops are validated before anything is stored; the stops are stored in one transaction.
    """,
)
async def create_stops(
    trip_id: int,
    fParam: BulkCreateForm,
    bearer=Depends(bearer_owner),
    request_info=Depends(getters.requestInfo),
):
    lock = None
    try:
        session = sessionMaker()
        token = validators.ownerToken(bearer.credentials, session)
        for stopForm in fParam.stops:
            checkStop(stopForm)
        trip, lock = lockedTrip(trip_id, token.owner_id, session)

        stops = [appendStop(trip, stopForm, session) for stopForm in fParam.stops]
        session.commit()

        logEvent(
            token,
            request_info,
            {"trip_id": trip.id, "stop_ids": [stop.id for stop in stops]},
        )
        return tripData(trip, session)
    except Exception as e:
        exceptions.handle(e)
    finally:
        releaseLock(lock)
        session.close()


@route_owner.put(
    URL_TRIP_STOP,
    tags=["Trip stop"],
    response_model=TripSchema,
    responses=makeExceptionResponses(
        [
            exceptions.InvalidToken,
            exceptions.InvalidIdentifier,
            exceptions.MissingParameter,
            exceptions.LockAcquireTimeout,
        ]
    ),
    description="""
    Replaces every stop of a trip with the given list.
    The new stops are numbered 1..N in the given order.
    An empty list removes all stops.
    """,
)
async def replace_stops(
    trip_id: int,
    fParam: ReplaceForm,
    bearer=Depends(bearer_owner),
    request_info=Depends(getters.requestInfo),
):
    lock = None
    try:
        session = sessionMaker()
        token = validators.ownerToken(bearer.credentials, session)
        for stopForm in fParam.stops:
            checkStop(stopForm)
        trip, lock = lockedTrip(trip_id, token.owner_id, session)

        session.query(TripStop).filter(TripStop.trip_id == trip.id).delete(
            synchronize_session=False
        )
        for sequence, stopForm in enumerate(fParam.stops, start=1):
            name, arrivalTime = checkStop(stopForm)
            session.add(
                TripStop(
                    trip_id=trip.id,
                    name=name,
                    arrival_time=arrivalTime,
                    sequence=sequence,
                )
            )
        session.commit()

        logEvent(token, request_info, {"trip_id": trip.id, "count": len(fParam.stops)})
        return tripData(trip, session)
    except Exception as e:
        exceptions.handle(e)
    finally:
        releaseLock(lock)
        session.close()


@route_owner.patch(
    URL_TRIP_STOP,
    tags=["Trip stop"],
    response_model=TripSchema,
    responses=makeExceptionResponses(
        [
            exceptions.InvalidToken,
            exceptions.InvalidIdentifier,
            exceptions.InvalidValue,
            exceptions.LockAcquireTimeout,
        ]
    ),
    description="""
    Reorders the stops of a trip.
    `stop_ids` must list every stop of the trip exactly once.
    Stops are numbered 1..N in the order of `stop_ids`.
    """,
)
async def reorder_stops(
    trip_id: int,
    fParam: ReorderForm,
    bearer=Depends(bearer_owner),
    request_info=Depends(getters.requestInfo),
):
    lock = None
    try:
        session = sessionMaker()
        token = validators.ownerToken(bearer.credentials, session)
        trip, lock = lockedTrip(trip_id, token.owner_id, session)

        stops = {stop.id: stop for stop in orderedStops(trip.id, session)}
        if len(fParam.stop_ids) != len(stops) or set(fParam.stop_ids) != set(stops):
            raise exceptions.InvalidValue(TripStop.id)
        for index, stopId in enumerate(fParam.stop_ids):
            stops[stopId].sequence = index + 1
        session.commit()

        logEvent(token, request_info, {"trip_id": trip.id, "stop_ids": fParam.stop_ids})
        return tripData(trip, session)
    except Exception as e:
        exceptions.handle(e)
    finally:
        releaseLock(lock)
        session.close()


@route_owner.patch(
    URL_TRIP_STOP_ITEM,
    tags=["Trip stop"],
    response_model=TripSchema,
    responses=makeExceptionResponses(
        [
            exceptions.InvalidToken,
            exceptions.InvalidIdentifier,
            exceptions.MissingParameter,
        ]
    ),
    description="""
    Renames a stop or changes its arrival time.
    The position of the stop is not changed.
    """,
)
async def update_stop(
    trip_id: int,
    stop_id: int,
    fParam: UpdateForm,
    bearer=Depends(bearer_owner),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.ownerToken(bearer.credentials, session)
        trip = validators.ownedTrip(trip_id, token.owner_id, session)
        stop = (
            session.query(TripStop)
            .filter(TripStop.id == stop_id, TripStop.trip_id == trip.id)
            .first()
        )
        if stop is None:
            raise exceptions.InvalidIdentifier()

        if fParam.name is not None:
            name = fParam.name.strip()
            if not name:
                raise exceptions.MissingParameter(TripStop.name)
            if stop.name != name:
                stop.name = name
        if fParam.arrival_time is not None and stop.arrival_time != fParam.arrival_time:
            stop.arrival_time = fParam.arrival_time

        haveUpdates = session.is_modified(stop)
        if haveUpdates:
            session.commit()
            logEvent(
                token,
                request_info,
                {"trip_id": trip.id, "stop_id": stop.id, "name": stop.name},
            )
        return tripData(trip, session)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_owner.delete(
    URL_TRIP_STOP_ITEM,
    tags=["Trip stop"],
    response_model=TripSchema,
    responses=makeExceptionResponses(
        [
            exceptions.InvalidToken,
            exceptions.InvalidIdentifier,
            exceptions.LockAcquireTimeout,
        ]
    ),
    description="""
    Removes a stop from a trip and returns the trip.
    The remaining stops are renumbered 1..N keeping their relative order.
    """,
)
async def delete_stop(
    trip_id: int,
    stop_id: int,
    bearer=Depends(bearer_owner),
    request_info=Depends(getters.requestInfo),
):
    lock = None
    try:
        session = sessionMaker()
        token = validators.ownerToken(bearer.credentials, session)
        trip, lock = lockedTrip(trip_id, token.owner_id, session)
        stop = (
            session.query(TripStop)
            .filter(TripStop.id == stop_id, TripStop.trip_id == trip.id)
            .first()
        )
        if stop is None:
            raise exceptions.InvalidIdentifier()

        session.delete(stop)
        session.flush()
        resequenceStops(trip.id, session)
        session.commit()

        logEvent(token, request_info, {"trip_id": trip.id, "stop_id": stop_id})
        return tripData(trip, session)
    except Exception as e:
        exceptions.handle(e)
    finally:
        releaseLock(lock)
        session.close()
