from datetime import datetime
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm.session import Session
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field

from gobus.api.bearer import bearer_owner
from gobus.api.bus import BusSchema
from gobus.src.constants import REGEX_IFSC_CODE
from gobus.src.db import BankAccount, Profile, sessionMaker
from gobus.src import exceptions, validators, getters
from gobus.src.loggers import logEvent
from gobus.src.functions import makeExceptionResponses, updateIfChanged
from gobus.src.redis import acquireLock, releaseLock
from gobus.src.urls import (
    URL_BANK_ACCOUNT,
    URL_BANK_ACCOUNT_DEFAULT,
    URL_BANK_ACCOUNT_SET_DEFAULT,
    URL_BUS_BANK_ACCOUNT,
)

route_owner = APIRouter()


## Output Schema
class BankAccountSchema(BaseModel):
    id: int
    owner_id: int
    account_name: str
    account_number: str
    ifsc_code: str
    bank_name: str
    is_default: bool
    updated_on: Optional[datetime]
    created_on: datetime


## Input Forms
class CreateForm(BaseModel):
    account_name: str = Field(min_length=1, max_length=64)
    account_number: str = Field(min_length=1, max_length=32)
    ifsc_code: str = Field(pattern=REGEX_IFSC_CODE)
    bank_name: str = Field(min_length=1, max_length=64)
    is_default: bool = False


class UpdateForm(BaseModel):
    id: int
    account_name: str | None = Field(min_length=1, max_length=64, default=None)
    account_number: str | None = Field(min_length=1, max_length=32, default=None)
    ifsc_code: str | None = Field(pattern=REGEX_IFSC_CODE, default=None)
    bank_name: str | None = Field(min_length=1, max_length=64, default=None)
    is_default: bool | None = None


class DeleteForm(BaseModel):
    id: int = Field(Query())


class AssignForm(BaseModel):
    bank_account_id: int | None = Field(
        default=None, description="Account to collect the revenue of the bus, null clears it"
    )


## Function
def clearOtherDefaults(account: BankAccount, session: Session):
    """Unset `is_default` on every other account of the owner of `account`."""
    session.query(BankAccount).filter(
        BankAccount.owner_id == account.owner_id,
        BankAccount.id != account.id,
        BankAccount.is_default.is_(True),
    ).update({BankAccount.is_default: False}, synchronize_session="fetch")


def updateAccount(account: BankAccount, fParam: UpdateForm):
    if fParam.ifsc_code is not None:
        fParam.ifsc_code = fParam.ifsc_code.upper()
    updateIfChanged(
        account,
        fParam,
        [
            BankAccount.account_name.key,
            BankAccount.account_number.key,
            BankAccount.ifsc_code.key,
            BankAccount.bank_name.key,
            BankAccount.is_default.key,
        ],
    )


## API endpoints [Owner]
@route_owner.get(
    URL_BANK_ACCOUNT,
    tags=["Bank account"],
    response_model=List[BankAccountSchema],
    responses=makeExceptionResponses([exceptions.InvalidToken]),
    description="""
    Lists the bank accounts of the owner, newest first.
    """,
)
async def fetch_accounts(bearer=Depends(bearer_owner)):
    try:
        session = sessionMaker()
        token = validators.ownerToken(bearer.credentials, session)
        return (
            session.query(BankAccount)
            .filter(BankAccount.owner_id == token.owner_id)
            .order_by(BankAccount.created_on.desc(), BankAccount.id.desc())
            .all()
        )
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_owner.get(
    URL_BANK_ACCOUNT_DEFAULT,
    tags=["Bank account"],
    response_model=Optional[BankAccountSchema],
    responses=makeExceptionResponses([exceptions.InvalidToken]),
    description="""
    Fetches the default bank account of the owner, or null if none is set.
    """,
)
async def fetch_default_account(bearer=Depends(bearer_owner)):
    try:
        session = sessionMaker()
        token = validators.ownerToken(bearer.credentials, session)
        return (
            session.query(BankAccount)
            .filter(
                BankAccount.owner_id == token.owner_id,
                BankAccount.is_default.is_(True),
            )
            .first()
        )
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_owner.post(
    URL_BANK_ACCOUNT,
    tags=["Bank account"],
    response_model=BankAccountSchema,
    status_code=status.HTTP_201_CREATED,
    responses=makeExceptionResponses(
        [exceptions.InvalidToken, exceptions.LockAcquireTimeout]
    ),
    description="""
    Adds a bank account for the owner.
    The IFSC code is stored upper-cased.
    Creating the account as default removes the default flag from the owner's other accounts.
    """,
)
async def create_account(
    fParam: CreateForm,
    bearer=Depends(bearer_owner),
    request_info=Depends(getters.requestInfo),
):
    lock = None
    try:
        session = sessionMaker()
        token = validators.ownerToken(bearer.credentials, session)

        account = BankAccount(
            owner_id=token.owner_id,
            account_name=fParam.account_name.strip(),
            account_number=fParam.account_number.strip(),
            ifsc_code=fParam.ifsc_code.upper(),
            bank_name=fParam.bank_name.strip(),
            is_default=fParam.is_default,
        )
        if account.is_default:
            lock = acquireLock(Profile.__tablename__, token.owner_id)
        session.add(account)
        session.flush()
        if account.is_default:
            clearOtherDefaults(account, session)
        session.commit()
        session.refresh(account)

        accountData = jsonable_encoder(account)
        logEvent(token, request_info, accountData)
        return accountData
    except Exception as e:
        exceptions.handle(e)
    finally:
        releaseLock(lock)
        session.close()


@route_owner.patch(
    URL_BANK_ACCOUNT,
    tags=["Bank account"],
    response_model=BankAccountSchema,
    responses=makeExceptionResponses(
        [
            exceptions.InvalidToken,
            exceptions.InvalidIdentifier,
            exceptions.LockAcquireTimeout,
        ]
    ),
    description="""
    Updates a bank account of the owner.
    Setting `is_default` removes the default flag from the owner's other accounts.
    Changes are saved only if the account data has been modified.
    """,
)
async def update_account(
    fParam: UpdateForm,
    bearer=Depends(bearer_owner),
    request_info=Depends(getters.requestInfo),
):
    lock = None
    try:
        session = sessionMaker()
        token = validators.ownerToken(bearer.credentials, session)
        if fParam.is_default:
            lock = acquireLock(Profile.__tablename__, token.owner_id)
        account = validators.ownedBankAccount(fParam.id, token.owner_id, session)

        updateAccount(account, fParam)
        haveUpdates = session.is_modified(account)
        if haveUpdates:
            if account.is_default:
                clearOtherDefaults(account, session)
            session.commit()
            session.refresh(account)

        accountData = jsonable_encoder(account)
        if haveUpdates:
            logEvent(token, request_info, accountData)
        return accountData
    except Exception as e:
        exceptions.handle(e)
    finally:
        releaseLock(lock)
        session.close()


@route_owner.delete(
    URL_BANK_ACCOUNT,
    tags=["Bank account"],
    status_code=status.HTTP_204_NO_CONTENT,
    responses=makeExceptionResponses(
        [exceptions.InvalidToken, exceptions.InvalidIdentifier]
    ),
    description="""
    Removes a bank account of the owner.
    Buses collecting into the account are left without an account.
    """,
)
async def delete_account(
    qParam: DeleteForm = Depends(),
    bearer=Depends(bearer_owner),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.ownerToken(bearer.credentials, session)
        account = validators.ownedBankAccount(qParam.id, token.owner_id, session)

        accountData = jsonable_encoder(account)
        session.delete(account)
        session.commit()
        logEvent(token, request_info, accountData)
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_owner.put(
    URL_BANK_ACCOUNT_SET_DEFAULT,
    tags=["Bank account"],
    response_model=BankAccountSchema,
    responses=makeExceptionResponses(
        [
            exceptions.InvalidToken,
            exceptions.InvalidIdentifier,
            exceptions.LockAcquireTimeout,
        ]
    ),
    description="""
    Makes a bank account the default account of the owner.
    The default flag of every other account of the owner is cleared in the same transaction,
    so exactly one account stays marked as default.
    """,
)
async def set_default_account(
    account_id: int,
    bearer=Depends(bearer_owner),
    request_info=Depends(getters.requestInfo),
):
    lock = None
    try:
        session = sessionMaker()
        token = validators.ownerToken(bearer.credentials, session)
        lock = acquireLock(Profile.__tablename__, token.owner_id)
        account = validators.ownedBankAccount(account_id, token.owner_id, session)

        clearOtherDefaults(account, session)
        account.is_default = True
        session.commit()
        session.refresh(account)

        accountData = jsonable_encoder(account)
        logEvent(token, request_info, accountData)
        return accountData
    except Exception as e:
        exceptions.handle(e)
    finally:
        releaseLock(lock)
        session.close()


@route_owner.put(
    URL_BUS_BANK_ACCOUNT,
    tags=["Bank account"],
    response_model=BusSchema,
    responses=makeExceptionResponses(
        [exceptions.InvalidToken, exceptions.InvalidIdentifier]
    ),
    description="""
    Selects the bank account that collects the revenue of a bus.
    Both the bus and the account must belong to the owner.
    A null `bank_account_id` removes the assignment.
    """,
)
async def assign_account(
    bus_id: int,
    fParam: AssignForm,
    bearer=Depends(bearer_owner),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.ownerToken(bearer.credentials, session)
        bus = validators.ownedBus(bus_id, token.owner_id, session)
        if fParam.bank_account_id is not None:
            validators.ownedBankAccount(
                fParam.bank_account_id, token.owner_id, session
            )

        if bus.bank_account_id != fParam.bank_account_id:
            bus.bank_account_id = fParam.bank_account_id
            session.commit()
            session.refresh(bus)
            logEvent(
                token,
                request_info,
                {"bus_id": bus.id, "bank_account_id": bus.bank_account_id},
            )
        return jsonable_encoder(bus)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
