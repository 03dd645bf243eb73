from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional
from uuid import uuid4
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import func
from sqlalchemy.orm.session import Session
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field

from gobus.api.bearer import bearer_customer, bearer_driver
from gobus.src.constants import (
    MAX_PASSENGERS_PER_TICKET,
    TICKET_QR_PREFIX,
    TICKET_ROUTE_SEPARATOR,
)
from gobus.src.db import Bus, Ticket, Trip, sessionMaker
from gobus.src import exceptions, validators, getters
from gobus.src.enums import TicketStatus, TicketType
from gobus.src.loggers import logEvent
from gobus.src.functions import enumStr, makeExceptionResponses
from gobus.src.redis import acquireLock, releaseLock
from gobus.src.urls import (
    URL_TICKET,
    URL_TICKET_ITEM,
    URL_TICKET_STATS,
    URL_TICKET_VERIFY,
)

route_ticket = APIRouter()
route_customer = APIRouter()

TICKET_TRANSITIONS = {
    TicketStatus.ACTIVE: [TicketStatus.USED, TicketStatus.EXPIRED],
}


## Output Schema
class TicketSchema(BaseModel):
    id: int
    customer_id: int
    bus_id: int
    trip_id: Optional[int]
    bus_code: str
    route_name: str
    from_stop: str
    to_stop: str
    passengers: int
    amount: Decimal
    ticket_type: TicketType = Field(description=enumStr(TicketType))
    status: TicketStatus = Field(description=enumStr(TicketStatus))
    qr_code: str
    validated_on: Optional[datetime]
    updated_on: Optional[datetime]
    created_on: datetime


class TicketStatsSchema(BaseModel):
    total: int
    active: int
    used: int
    expired: int


class VerifiedTicketSchema(BaseModel):
    id: Optional[int] = None
    from_stop: str
    to_stop: str
    passengers: int
    route_name: Optional[str] = None
    amount: Optional[Decimal] = None


class VerifySchema(BaseModel):
    valid: bool
    error: Optional[str] = None
    ticket: Optional[VerifiedTicketSchema] = None


## Input Forms
class CreateForm(BaseModel):
    bus_id: int | None = None
    bus_code: str | None = Field(max_length=16, default=None)
    trip_id: int | None = None
    from_stop: str = Field(min_length=1, max_length=128)
    to_stop: str = Field(min_length=1, max_length=128)
    passengers: int = Field(ge=1, le=MAX_PASSENGERS_PER_TICKET, default=1)
    amount: Decimal = Field(ge=0, max_digits=10, decimal_places=2)
    ticket_type: TicketType = Field(
        description=enumStr(TicketType), default=TicketType.NORMAL
    )


## Query Parameters
class VerifyParams(BaseModel):
    code: str = Field(Query(min_length=1, max_length=64))


## Function
def findTicket(code: str, owner_id: int, session: Session) -> Optional[Ticket]:
    """
    Find a ticket of the owner's buses by its QR code.

    An exact match wins. Otherwise `code` is matched, ignoring case, against the
    end of the QR codes, and only a single match is accepted.
    """
    query = (
        session.query(Ticket)
        .join(Bus, Bus.id == Ticket.bus_id)
        .filter(Bus.owner_id == owner_id)
    )
    ticket = query.filter(Ticket.qr_code == code).first()
    if ticket is not None:
        return ticket

    matches = (
        query.filter(
            func.lower(Ticket.qr_code).endswith(code.lower(), autoescape=True)
        )
        .limit(2)
        .all()
    )
    return matches[0] if len(matches) == 1 else None


def ticketSummary(ticket: Ticket) -> dict:
    return {
        "from_stop": ticket.from_stop,
        "to_stop": ticket.to_stop,
        "passengers": ticket.passengers,
    }


def customerTicket(ticket_id: int, customer_id: int, session: Session) -> Ticket:
    ticket = (
        session.query(Ticket)
        .filter(Ticket.id == ticket_id, Ticket.customer_id == customer_id)
        .first()
    )
    if ticket is None:
        raise exceptions.InvalidIdentifier()
    return ticket


def bookedBus(fParam: CreateForm, session: Session) -> Bus:
    if fParam.bus_id is not None:
        bus = session.query(Bus).filter(Bus.id == fParam.bus_id).first()
    elif fParam.bus_code:
        bus = (
            session.query(Bus)
            .filter(Bus.ref_number == fParam.bus_code.strip().upper())
            .first()
        )
    else:
        raise exceptions.MissingParameter(Ticket.bus_id)
    if bus is None:
        raise exceptions.InvalidIdentifier()
    return bus


## API endpoints [Ticket]
@route_ticket.get(
    URL_TICKET_VERIFY,
    tags=["Ticket"],
    response_model=VerifySchema,
    response_model_exclude_none=True,
    responses=makeExceptionResponses(
        [exceptions.InvalidToken, exceptions.LockAcquireTimeout]
    ),
    description="""
    Validates a ticket scanned or typed in by a driver.
    The code is the QR code of the ticket, or its last characters.
    Only tickets of buses of the owner of the driver slot are found.
    A valid ticket is marked as used; used and expired tickets are reported with `valid` false.
    """,
)
async def verify_ticket(
    qParam: VerifyParams = Depends(),
    bearer=Depends(bearer_driver),
    request_info=Depends(getters.requestInfo),
):
    lock = None
    try:
        session = sessionMaker()
        token = validators.driverToken(bearer.credentials, session)

        ticket = findTicket(qParam.code.strip(), token.owner_id, session)
        if ticket is None:
            return {"valid": False, "error": "Ticket not found"}

        lock = acquireLock(Ticket.__tablename__, ticket.id)
        session.refresh(ticket)
        if ticket.status == TicketStatus.USED:
            return {
                "valid": False,
                "error": "Ticket already used",
                "ticket": ticketSummary(ticket),
            }
        if ticket.status == TicketStatus.EXPIRED:
            return {
                "valid": False,
                "error": "Ticket expired",
                "ticket": ticketSummary(ticket),
            }

        validators.stateTransition(
            TICKET_TRANSITIONS, ticket.status, TicketStatus.USED, Ticket.status
        )
        ticket.status = TicketStatus.USED
        ticket.validated_on = datetime.now(timezone.utc)
        session.commit()
        session.refresh(ticket)

        logEvent(
            token,
            request_info,
            {"ticket_id": ticket.id, "bus_id": ticket.bus_id, "status": ticket.status},
        )
        return {
            "valid": True,
            "ticket": {
                "id": ticket.id,
                "route_name": ticket.route_name,
                "amount": ticket.amount,
                **ticketSummary(ticket),
            },
        }
    except Exception as e:
        exceptions.handle(e)
    finally:
        releaseLock(lock)
        session.close()


## API endpoints [Customer]
@route_customer.post(
    URL_TICKET,
    tags=["Ticket"],
    response_model=TicketSchema,
    status_code=status.HTTP_201_CREATED,
    responses=makeExceptionResponses(
        [
            exceptions.InvalidToken,
            exceptions.MissingParameter,
            exceptions.InvalidIdentifier,
            exceptions.InvalidAssociation,
        ]
    ),
    description="""
    Books a ticket on a bus, identified by `bus_id` or by its reference number in `bus_code`.
    A `trip_id`, when given, must be a trip of that bus.
    The ticket gets a unique QR code and starts as ACTIVE.
    The route name and bus code are copied from the bus at booking time.
    """,
)
async def create_ticket(
    fParam: CreateForm,
    bearer=Depends(bearer_customer),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.customerToken(bearer.credentials, session)
        bus = bookedBus(fParam, session)
        if fParam.trip_id is not None:
            trip = (
                session.query(Trip.id)
                .filter(Trip.id == fParam.trip_id, Trip.bus_id == bus.id)
                .first()
            )
            if trip is None:
                raise exceptions.InvalidAssociation(Ticket.trip_id, Ticket.bus_id)

        ticket = Ticket(
            customer_id=token.customer_id,
            bus_id=bus.id,
            trip_id=fParam.trip_id,
            bus_code=bus.ref_number,
            route_name=TICKET_ROUTE_SEPARATOR.join((bus.route_from, bus.route_to)),
            from_stop=fParam.from_stop.strip(),
            to_stop=fParam.to_stop.strip(),
            passengers=fParam.passengers,
            amount=fParam.amount,
            ticket_type=fParam.ticket_type,
            status=TicketStatus.ACTIVE,
            qr_code=f"{TICKET_QR_PREFIX}{uuid4()}",
        )
        session.add(ticket)
        session.commit()
        session.refresh(ticket)

        ticketData = jsonable_encoder(ticket)
        logEvent(token, request_info, ticketData)
        return ticketData
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_customer.get(
    URL_TICKET,
    tags=["Ticket"],
    response_model=List[TicketSchema],
    responses=makeExceptionResponses([exceptions.InvalidToken]),
    description="""
    Lists the tickets of the customer, newest first.
    """,
)
async def fetch_tickets(bearer=Depends(bearer_customer)):
    try:
        session = sessionMaker()
        token = validators.customerToken(bearer.credentials, session)
        return (
            session.query(Ticket)
            .filter(Ticket.customer_id == token.customer_id)
            .order_by(Ticket.created_on.desc(), Ticket.id.desc())
            .all()
        )
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_customer.get(
    URL_TICKET_STATS,
    tags=["Ticket"],
    response_model=TicketStatsSchema,
    responses=makeExceptionResponses([exceptions.InvalidToken]),
    description="""
    Counts the tickets of the customer by status.
    """,
)
async def fetch_ticket_stats(bearer=Depends(bearer_customer)):
    try:
        session = sessionMaker()
        token = validators.customerToken(bearer.credentials, session)

        counts = dict(
            session.query(Ticket.status, func.count(Ticket.id))
            .filter(Ticket.customer_id == token.customer_id)
            .group_by(Ticket.status)
            .all()
        )
        return {
            "total": sum(counts.values()),
            "active": counts.get(TicketStatus.ACTIVE, 0),
            "used": counts.get(TicketStatus.USED, 0),
            "expired": counts.get(TicketStatus.EXPIRED, 0),
        }
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_customer.get(
    URL_TICKET_ITEM,
    tags=["Ticket"],
    response_model=TicketSchema,
    responses=makeExceptionResponses(
        [exceptions.InvalidToken, exceptions.InvalidIdentifier]
    ),
    description="""
    Fetches one ticket of the customer.
    """,
)
async def fetch_ticket(ticket_id: int, bearer=Depends(bearer_customer)):
    try:
        session = sessionMaker()
        token = validators.customerToken(bearer.credentials, session)
        return customerTicket(ticket_id, token.customer_id, session)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_customer.delete(
    URL_TICKET_ITEM,
    tags=["Ticket"],
    response_model=TicketSchema,
    responses=makeExceptionResponses(
        [
            exceptions.InvalidToken,
            exceptions.InvalidIdentifier,
            exceptions.InvalidStateTransition,
        ]
    ),
    description="""
    Cancels an ACTIVE ticket of the customer, moving it to EXPIRED.
    Used and expired tickets cannot be cancelled.
    """,
)
async def cancel_ticket(
    ticket_id: int,
    bearer=Depends(bearer_customer),
    request_info=Depends(getters.requestInfo),
):
    lock = None
    try:
        session = sessionMaker()
        token = validators.customerToken(bearer.credentials, session)
        ticket = customerTicket(ticket_id, token.customer_id, session)

        lock = acquireLock(Ticket.__tablename__, ticket.id)
        session.refresh(ticket)
        validators.stateTransition(
            TICKET_TRANSITIONS, ticket.status, TicketStatus.EXPIRED, Ticket.status
        )
        ticket.status = TicketStatus.EXPIRED
        session.commit()
        session.refresh(ticket)

        ticketData = jsonable_encoder(ticket)
        logEvent(token, request_info, ticketData)
        return ticketData
    except Exception as e:
        exceptions.handle(e)
    finally:
        releaseLock(lock)
        session.close()
