from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends, status
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field

from gobus.api.bearer import bearer_customer
from gobus.src.constants import REGEX_EMAIL, REGEX_PASSWORD
from gobus.src.db import Profile, sessionMaker
from gobus.src import argon2, exceptions, validators, getters
from gobus.src.enums import Role
from gobus.src.loggers import logEvent
from gobus.src.functions import makeExceptionResponses
from gobus.src.urls import URL_ACCOUNT

route_customer = APIRouter()


## Output Schema
class CustomerAccountSchema(BaseModel):
    id: int
    email_id: str
    display_name: Optional[str]
    phone_number: Optional[str]
    created_on: datetime


## Input Forms
class CreateForm(BaseModel):
    email_id: str = Field(pattern=REGEX_EMAIL, max_length=256)
    password: str = Field(pattern=REGEX_PASSWORD, min_length=8, max_length=32)
    display_name: str | None = Field(max_length=64, default=None)
    phone_number: str | None = Field(max_length=32, default=None)


## API endpoints [Customer]
@route_customer.post(
    URL_ACCOUNT,
    tags=["Account"],
    response_model=CustomerAccountSchema,
    status_code=status.HTTP_201_CREATED,
    responses=makeExceptionResponses([exceptions.UniqueViolation]),
    description="""
    Registers a new customer with role CUSTOMER.
    The email is stored lower-cased and the password as an Argon2 hash.
    """,
)
async def create_account(
    fParam: CreateForm,
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        profile = Profile(
            role=Role.CUSTOMER,
            email_id=fParam.email_id.strip().lower(),
            password=argon2.makePassword(fParam.password),
            display_name=fParam.display_name,
            phone_number=fParam.phone_number,
        )
        session.add(profile)
        session.commit()
        session.refresh(profile)

        profileData = jsonable_encoder(profile, exclude={"password"})
        logEvent(None, request_info, profileData)
        return profileData
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_customer.get(
    URL_ACCOUNT,
    tags=["Account"],
    response_model=CustomerAccountSchema,
    responses=makeExceptionResponses([exceptions.InvalidToken]),
    description="""
    Fetches the profile of the authenticated customer.
    """,
)
async def fetch_account(bearer=Depends(bearer_customer)):
    try:
        session = sessionMaker()
        token = validators.customerToken(bearer.credentials, session)
        return session.query(Profile).filter(Profile.id == token.customer_id).first()
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
