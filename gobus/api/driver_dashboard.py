from datetime import date as Date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field

from gobus.api.bearer import bearer_driver
from gobus.api.trip import TripSchema, tripsOfBus
from gobus.src.db import Bus, DriverProfile, Ticket, sessionMaker
from gobus.src import exceptions, validators
from gobus.src.enums import TicketStatus, TicketType
from gobus.src.functions import makeExceptionResponses
from gobus.src.urls import URL_DRIVER_DASHBOARD, URL_TRIP_STATS

route_driver = APIRouter()


## Output Schema
class DashboardDriverSchema(BaseModel):
    id: int
    username: str
    slot_name: str
    remarks: Optional[str]
    name: Optional[str]
    phone: Optional[str]


class DashboardBusSchema(BaseModel):
    id: int
    registration_number: str
    route_from: str
    route_to: str
    ref_number: str


class DriverDashboardSchema(BaseModel):
    driver: DashboardDriverSchema
    bus: Optional[DashboardBusSchema]
    trips: List[TripSchema]


class StatsSummarySchema(BaseModel):
    totalTickets: int
    normalTickets: int
    normalPassengers: int
    dailyPassValidations: int
    totalRevenue: str


class NormalTicketSchema(BaseModel):
    id: int
    passengers: int
    fromStop: str
    toStop: str
    amount: Decimal
    validatedAt: Optional[datetime]


class DailyPassSchema(BaseModel):
    id: int
    passengers: int
    validatedAt: Optional[datetime]


class TripStatsSchema(BaseModel):
    summary: StatsSummarySchema
    normalTicketDetails: List[NormalTicketSchema]
    dailyPassDetails: List[DailyPassSchema]


## Query Parameters
class DashboardParams(BaseModel):
    driverId: int | None = Field(Query(default=None))


class StatsParams(BaseModel):
    tripId: int | None = Field(Query(default=None))
    busId: int | None = Field(Query(default=None))
    date: Optional[Date] = Field(
        Query(default=None, description="UTC day, today if omitted")
    )


## Function
def dayWindow(day: Optional[Date]) -> tuple[datetime, datetime]:
    """Start and end of a UTC day."""
    if day is None:
        day = datetime.now(timezone.utc).date()
    start = datetime.combine(day, time.min, tzinfo=timezone.utc)
    return start, start + timedelta(days=1)


## API endpoints [Driver]
@route_driver.get(
    URL_DRIVER_DASHBOARD,
    tags=["Dashboard"],
    response_model=DriverDashboardSchema,
    responses=makeExceptionResponses(
        [
            exceptions.InvalidToken,
            exceptions.NoPermission,
            exceptions.InvalidIdentifier,
        ]
    ),
    description="""
    Fetches the driver slot behind the token with its assigned bus and the trips of that bus.
    Trips come in trip number order, their stops in sequence order.
    `driverId`, when given, must be the slot of the token.
    """,
)
async def fetch_dashboard(
    qParam: DashboardParams = Depends(), bearer=Depends(bearer_driver)
):
    try:
        session = sessionMaker()
        token = validators.driverToken(bearer.credentials, session)
        if qParam.driverId is not None and qParam.driverId != token.driver_id:
            raise exceptions.NoPermission()

        driver = (
            session.query(DriverProfile)
            .filter(DriverProfile.id == token.driver_id)
            .first()
        )
        if driver is None:
            raise exceptions.InvalidIdentifier()

        bus, trips = None, []
        if driver.bus_id is not None:
            bus = session.query(Bus).filter(Bus.id == driver.bus_id).first()
            trips = tripsOfBus(driver.bus_id, session)
        return {
            "driver": {
                "id": driver.id,
                "username": driver.username,
                "slot_name": driver.slot_name,
                "remarks": driver.remarks,
                "name": driver.name,
                "phone": driver.phone_number,
            },
            "bus": jsonable_encoder(bus),
            "trips": trips,
        }
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_driver.get(
    URL_TRIP_STATS,
    tags=["Dashboard"],
    response_model=TripStatsSchema,
    responses=makeExceptionResponses(
        [exceptions.InvalidToken, exceptions.MissingParameter]
    ),
    description="""
    Summarizes the tickets validated on a trip or a bus during one UTC day.
    Either `tripId` or `busId` is required, `tripId` wins when both are given.
    Only buses of the owner of the driver slot are counted.
    Revenue is the sum of the amounts of normal tickets; daily passes carry no fare.
    """,
)
async def fetch_trip_stats(
    qParam: StatsParams = Depends(), bearer=Depends(bearer_driver)
):
    try:
        session = sessionMaker()
        token = validators.driverToken(bearer.credentials, session)
        if qParam.tripId is None and qParam.busId is None:
            raise exceptions.MissingParameter(Ticket.trip_id)

        start, end = dayWindow(qParam.date)
        query = (
            session.query(Ticket)
            .join(Bus, Bus.id == Ticket.bus_id)
            .filter(
                Bus.owner_id == token.owner_id,
                Ticket.status == TicketStatus.USED,
                Ticket.validated_on >= start,
                Ticket.validated_on < end,
            )
        )
        if qParam.tripId is not None:
            query = query.filter(Ticket.trip_id == qParam.tripId)
        else:
            query = query.filter(Ticket.bus_id == qParam.busId)
        tickets = query.order_by(Ticket.validated_on.asc(), Ticket.id.asc()).all()

        normalTickets = [t for t in tickets if t.ticket_type != TicketType.DAILY_PASS]
        dailyPasses = [t for t in tickets if t.ticket_type == TicketType.DAILY_PASS]
        revenue = sum((Decimal(t.amount) for t in normalTickets), Decimal("0"))
        return {
            "summary": {
                "totalTickets": len(normalTickets) + len(dailyPasses),
                "normalTickets": len(normalTickets),
                "normalPassengers": sum(t.passengers or 1 for t in normalTickets),
                "dailyPassValidations": len(dailyPasses),
                "totalRevenue": f"{revenue:.2f}",
            },
            "normalTicketDetails": [
                {
                    "id": t.id,
                    "passengers": t.passengers,
                    "fromStop": t.from_stop,
                    "toStop": t.to_stop,
                    "amount": t.amount,
                    "validatedAt": t.validated_on,
                }
                for t in normalTickets
            ],
            "dailyPassDetails": [
                {"id": t.id, "passengers": t.passengers, "validatedAt": t.validated_on}
                for t in dailyPasses
            ],
        }
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
