"""
Per-parent sequence numbers.

Trips are numbered per bus and stops are sequenced per trip. Callers hold
the Redis lock of the parent row while reading and writing these numbers.
"""

from typing import Dict, List
from sqlalchemy import func
from sqlalchemy.orm.session import Session

from gobus.src.db import Trip, TripStop


def nextTripNumber(bus_id: int, session: Session) -> int:
    """Highest trip number of the bus plus one, 1 for a bus without trips."""
    current = (
        session.query(func.max(Trip.trip_number)).filter(Trip.bus_id == bus_id).scalar()
    )
    return 1 if current is None else current + 1


def nextStopSequence(trip_id: int, session: Session) -> int:
    """Highest stop sequence of the trip plus one, 1 for a trip without stops."""
    current = (
        session.query(func.max(TripStop.sequence))
        .filter(TripStop.trip_id == trip_id)
        .scalar()
    )
    return 1 if current is None else current + 1


def orderedStops(trip_id: int, session: Session) -> List[TripStop]:
    return (
        session.query(TripStop)
        .filter(TripStop.trip_id == trip_id)
        .order_by(TripStop.sequence.asc(), TripStop.id.asc())
        .all()
    )


def stopsByTrip(trip_ids: List[int], session: Session) -> Dict[int, List[TripStop]]:
    """
    Ordered stops of several trips, loaded with one query.

    Every requested trip gets an entry, trips without stops an empty list.
    """
    grouped: Dict[int, List[TripStop]] = {trip_id: [] for trip_id in trip_ids}
    if not trip_ids:
        return grouped
    stops = (
        session.query(TripStop)
        .filter(TripStop.trip_id.in_(trip_ids))
        .order_by(TripStop.trip_id, TripStop.sequence.asc(), TripStop.id.asc())
        .all()
    )
    for stop in stops:
        grouped[stop.trip_id].append(stop)
    return grouped


def orderedTrips(bus_id: int, session: Session) -> List[Trip]:
    return (
        session.query(Trip)
        .filter(Trip.bus_id == bus_id)
        .order_by(Trip.trip_number.asc())
        .all()
    )


def resequenceStops(trip_id: int, session: Session) -> List[TripStop]:
    """
    Renumber the stops of a trip to 1..N keeping their relative order.

    Ties in the current sequence keep insertion order.
    """
    stops = orderedStops(trip_id, session)
    for rank, stop in enumerate(stops):
        if stop.sequence != rank + 1:
            stop.sequence = rank + 1
    return stops


def shiftStopsAfter(trip_id: int, after_sequence: int, session: Session) -> None:
    """Move every stop positioned after `after_sequence` one place down."""
    session.query(TripStop).filter(
        TripStop.trip_id == trip_id, TripStop.sequence > after_sequence
    ).update(
        {TripStop.sequence: TripStop.sequence + 1}, synchronize_session="fetch"
    )
