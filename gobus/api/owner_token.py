from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends, Response, status
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field

from gobus.api.bearer import bearer_owner
from gobus.src.constants import MAX_OWNER_TOKENS, MAX_TOKEN_VALIDITY
from gobus.src.db import OwnerToken, Profile, sessionMaker
from gobus.src import argon2, exceptions, validators, getters
from gobus.src.enums import PlatformType, Role
from gobus.src.loggers import logEvent
from gobus.src.functions import enumStr, makeExceptionResponses
from gobus.src.tokens import expiresAt, removeExcessTokens
from gobus.src.urls import URL_AUTH

route_owner = APIRouter()


## Output Schema
class UserSchema(BaseModel):
    id: int
    email: str


class SessionSchema(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int
    expires_at: datetime


class OwnerSessionSchema(BaseModel):
    user: UserSchema
    session: SessionSchema


## Input Forms
class CreateForm(BaseModel):
    email: str = Field(min_length=1, max_length=256)
    password: str = Field(min_length=1, max_length=32)
    platform_type: PlatformType = Field(
        description=enumStr(PlatformType), default=PlatformType.OTHER
    )
    client_details: Optional[str] = Field(max_length=1024, default=None)


## API endpoints [Owner]
@route_owner.post(
    URL_AUTH,
    tags=["Token"],
    response_model=OwnerSessionSchema,
    status_code=status.HTTP_201_CREATED,
    responses=makeExceptionResponses([exceptions.InvalidCredentials]),
    description="""
    Signs an owner in with email and password.
    Only profiles with the OWNER role can sign in here.
    A password hash made with outdated Argon2 parameters is replaced on sign in.
    Limits active tokens using MAX_OWNER_TOKENS, the oldest tokens are removed first.
    Sets expiration with expires_in=MAX_TOKEN_VALIDITY (in seconds).
    Logs the authentication event for audit tracking.
    """,
)
async def create_token(
    fParam: CreateForm,
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        profile = (
            session.query(Profile)
            .filter(Profile.email_id == fParam.email.strip().lower())
            .first()
        )
        if profile is None or profile.role != Role.OWNER:
            raise exceptions.InvalidCredentials()
        if not argon2.checkPassword(fParam.password, profile.password):
            raise exceptions.InvalidCredentials()
        upgraded = argon2.upgradedHash(fParam.password, profile.password)
        if upgraded is not None:
            profile.password = upgraded

        removeExcessTokens(
            session, OwnerToken, OwnerToken.owner_id, profile.id, MAX_OWNER_TOKENS
        )
        token = OwnerToken(
            owner_id=profile.id,
            expires_in=MAX_TOKEN_VALIDITY,
            expires_at=expiresAt(),
            platform_type=fParam.platform_type,
            client_details=fParam.client_details,
        )
        session.add(token)
        session.commit()
        session.refresh(token)

        logEvent(token, request_info, jsonable_encoder(token, exclude={"access_token"}))
        return {
            "user": {"id": profile.id, "email": profile.email_id},
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


@route_owner.delete(
    URL_AUTH,
    tags=["Token"],
    status_code=status.HTTP_204_NO_CONTENT,
    responses=makeExceptionResponses([exceptions.InvalidToken]),
    description="""
    Signs the owner out by revoking the token used in this request.
    """,
)
async def delete_token(
    bearer=Depends(bearer_owner),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.ownerToken(bearer.credentials, session)
        session.delete(token)
        session.commit()
        logEvent(token, request_info, jsonable_encoder(token, exclude={"access_token"}))
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
