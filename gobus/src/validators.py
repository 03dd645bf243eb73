"""
Validation and permission checks for GO BUS API.

This module centralizes guard logic such as:
- Token validation (one validator per role)
- Ownership checks on fleet rows
- State transition enforcement

All functions raise appropriate exceptions from `gobus.src.exceptions`
when validation fails, ensuring consistent error handling.
"""

from datetime import datetime, timezone
from sqlalchemy.orm.session import Session
from sqlalchemy import Column
from typing import Any

from gobus.src.db import (
    BankAccount,
    Bus,
    CustomerToken,
    DriverToken,
    OwnerToken,
    Trip,
)
from gobus.src import exceptions
from gobus.src.functions import isValidTransition


# ---------------------------------------------------------------------------
# Token validation
# ---------------------------------------------------------------------------
def _validate_token(model_cls, access_token: str, session: Session):
    """
    Generic token validator for any token model.

    Args:
        model_cls: The SQLAlchemy model class (e.g., OwnerToken).
        access_token (str): The bearer token string provided by the client.
        session (Session): Active SQLAlchemy session for DB lookup.

    Returns:
        model_cls: The valid token object from the database.

    Raises:
        exceptions.InvalidToken: If the token is not found or has expired.
    """
    current_time = datetime.now(timezone.utc)

    token = (
        session.query(model_cls)
        .filter(
            model_cls.access_token == access_token,
            model_cls.expires_at > current_time,
        )
        .first()
    )

    if token is None:
        raise exceptions.InvalidToken()

    return token


def ownerToken(access_token: str, session: Session) -> OwnerToken:
    """Validate an owner access token."""
    return _validate_token(OwnerToken, access_token, session)


def driverToken(access_token: str, session: Session) -> DriverToken:
    """Validate a driver access token."""
    return _validate_token(DriverToken, access_token, session)


def customerToken(access_token: str, session: Session) -> CustomerToken:
    """Validate a customer access token."""
    return _validate_token(CustomerToken, access_token, session)


# ---------------------------------------------------------------------------
# Ownership checks
# ---------------------------------------------------------------------------
def ownedBus(bus_id: int, owner_id: int, session: Session) -> Bus:
    """
    Fetch a bus of the given owner.

    Raises:
        exceptions.InvalidIdentifier: If the bus does not exist or
            belongs to another owner.
    """
    bus = (
        session.query(Bus).filter(Bus.id == bus_id, Bus.owner_id == owner_id).first()
    )
    if bus is None:
        raise exceptions.InvalidIdentifier()
    return bus


def ownedTrip(trip_id: int, owner_id: int, session: Session) -> Trip:
    """
    Fetch a trip running on a bus of the given owner.

    Raises:
        exceptions.InvalidIdentifier: If the trip does not exist or its bus
            belongs to another owner.
    """
    trip = (
        session.query(Trip)
        .join(Bus, Bus.id == Trip.bus_id)
        .filter(Trip.id == trip_id, Bus.owner_id == owner_id)
        .first()
    )
    if trip is None:
        raise exceptions.InvalidIdentifier()
    return trip


def ownedBankAccount(account_id: int, owner_id: int, session: Session) -> BankAccount:
    """
    Fetch a bank account of the given owner.

    Raises:
        exceptions.InvalidIdentifier: If the account does not exist or
            belongs to another owner.
    """
    account = (
        session.query(BankAccount)
        .filter(BankAccount.id == account_id, BankAccount.owner_id == owner_id)
        .first()
    )
    if account is None:
        raise exceptions.InvalidIdentifier()
    return account


# ---------------------------------------------------------------------------
# Other validations
# ---------------------------------------------------------------------------
def stateTransition(
    transitions: dict[Any, list[Any]], old_state: Any, new_state: Any, state: Column
) -> bool:
    """
    Validate whether a state transition is allowed.

    Args:
        transitions (dict[Any, list[Any]]): Mapping of valid transitions.
        old_state (Any): Current state value.
        new_state (Any): Desired new state value.
        state (Column): SQLAlchemy column representing the state
            (used to format error messages).

    Returns:
        bool: True if the transition is valid.

    Raises:
        exceptions.InvalidStateTransition: If the transition is not permitted.
    """
    if not isValidTransition(transitions, old_state, new_state):
        raise exceptions.InvalidStateTransition(state)
    return True
