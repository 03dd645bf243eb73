from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends, Response, status
from sqlalchemy import func
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field

from gobus.api.bearer import bearer_driver
from gobus.api.driver import DriverWithBusSchema, driverData
from gobus.src.constants import MAX_DRIVER_TOKENS, MAX_TOKEN_VALIDITY
from gobus.src.db import Bus, DriverProfile, DriverToken, sessionMaker
from gobus.src import exceptions, validators, getters
from gobus.src.enums import PlatformType
from gobus.src.loggers import logEvent
from gobus.src.functions import enumStr, makeExceptionResponses
from gobus.src.credentials import verifyPassword
from gobus.src.tokens import expiresAt, removeExcessTokens
from gobus.src.urls import URL_AUTH

route_driver = APIRouter()


## Output Schema
class SessionSchema(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    expires_at: datetime


class DriverSessionSchema(BaseModel):
    driver: DriverWithBusSchema
    session: SessionSchema


## Input Forms
class CreateForm(BaseModel):
    username: str = Field(min_length=1, max_length=32)
    password: str = Field(min_length=1, max_length=32)
    platform_type: PlatformType = Field(
        description=enumStr(PlatformType), default=PlatformType.OTHER
    )
    client_details: Optional[str] = Field(max_length=1024, default=None)


## API endpoints [Driver]
@route_driver.post(
    URL_AUTH,
    tags=["Token"],
    response_model=DriverSessionSchema,
    status_code=status.HTTP_201_CREATED,
    responses=makeExceptionResponses(
        [exceptions.InvalidCredentials, exceptions.PasswordNotSet]
    ),
    description="""
    Signs a driver in with the login ID and password issued by the owner.
    The login ID is matched case-insensitively after trimming, the password is trimmed.
    Limits active tokens using MAX_DRIVER_TOKENS, the oldest tokens are removed first.
    Returns the driver slot with its assigned bus and the session.
    """,
)
async def create_token(
    fParam: CreateForm,
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        driver = (
            session.query(DriverProfile)
            .filter(
                func.lower(DriverProfile.username) == fParam.username.strip().lower()
            )
            .first()
        )
        if driver is None:
            raise exceptions.InvalidCredentials()
        if not driver.password_hash:
            raise exceptions.PasswordNotSet()
        if not verifyPassword(fParam.password.strip(), driver.password_hash):
            raise exceptions.InvalidCredentials()

        removeExcessTokens(
            session, DriverToken, DriverToken.driver_id, driver.id, MAX_DRIVER_TOKENS
        )
        token = DriverToken(
            driver_id=driver.id,
            owner_id=driver.owner_id,
            expires_in=MAX_TOKEN_VALIDITY,
            expires_at=expiresAt(),
            platform_type=fParam.platform_type,
            client_details=fParam.client_details,
        )
        session.add(token)
        session.commit()
        session.refresh(token)

        driverDetails = driverData(driver)
        bus = None
        if driver.bus_id is not None:
            bus = session.query(Bus).filter(Bus.id == driver.bus_id).first()
        driverDetails["bus"] = jsonable_encoder(bus)

        logEvent(token, request_info, jsonable_encoder(token, exclude={"access_token"}))
        return {
            "driver": driverDetails,
            "session": {
                "access_token": token.access_token,
                "expires_in": token.expires_in,
                "expires_at": token.expires_at,
            },
        }
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_driver.delete(
    URL_AUTH,
    tags=["Token"],
    status_code=status.HTTP_204_NO_CONTENT,
    responses=makeExceptionResponses([exceptions.InvalidToken]),
    description="""
    Signs the driver out by revoking the token used in this request.
    """,
)
async def delete_token(
    bearer=Depends(bearer_driver),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.driverToken(bearer.credentials, session)
        session.delete(token)
        session.commit()
        logEvent(token, request_info, jsonable_encoder(token, exclude={"access_token"}))
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
