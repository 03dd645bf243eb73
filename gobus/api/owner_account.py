from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends, Response, status
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field

from gobus.api.bearer import bearer_owner
from gobus.src.constants import DEFAULT_COMPANY_NAME, REGEX_EMAIL, REGEX_PASSWORD
from gobus.src.db import OwnerProfile, OwnerToken, Profile, sessionMaker
from gobus.src import argon2, exceptions, validators, getters
from gobus.src.enums import Role
from gobus.src.loggers import logEvent
from gobus.src.functions import makeExceptionResponses, updateIfChanged
from gobus.src.urls import URL_ACCOUNT, URL_ACCOUNT_COMPANY, URL_ACCOUNT_PASSWORD

route_owner = APIRouter()


## Output Schema
class OwnerProfileSchema(BaseModel):
    id: int
    company_name: str
    email_id: Optional[str]
    phone_number: Optional[str]
    address: Optional[str]
    notification_preferences: Optional[dict]
    updated_on: Optional[datetime]
    created_on: datetime


class OwnerAccountSchema(BaseModel):
    id: int
    email_id: str
    display_name: Optional[str]
    phone_number: Optional[str]
    owner: OwnerProfileSchema
    created_on: datetime


## Input Forms
class CreateForm(BaseModel):
    email_id: str = Field(pattern=REGEX_EMAIL, max_length=256)
    password: str = Field(pattern=REGEX_PASSWORD, min_length=8, max_length=32)
    display_name: str | None = Field(max_length=64, default=None)
    phone_number: str | None = Field(max_length=32, default=None)
    company_name: str | None = Field(min_length=1, max_length=64, default=None)


class NotificationPreferences(BaseModel):
    email_alerts: bool = True
    booking_notifications: bool = True
    bus_status_updates: bool = False


class UpdateForm(BaseModel):
    display_name: str | None = Field(max_length=64, default=None)
    phone_number: str | None = Field(max_length=32, default=None)
    company_name: str | None = Field(min_length=1, max_length=64, default=None)
    address: str | None = Field(max_length=512, default=None)
    notification_preferences: NotificationPreferences | None = None


class CompanyContactForm(BaseModel):
    email_id: str | None = Field(pattern=REGEX_EMAIL, max_length=256, default=None)
    phone_number: str | None = Field(max_length=32, default=None)


class PasswordForm(BaseModel):
    current_password: str = Field(max_length=32)
    new_password: str = Field(pattern=REGEX_PASSWORD, min_length=8, max_length=32)


## Function
def accountData(profile: Profile, owner: OwnerProfile) -> dict:
    return {
        "id": profile.id,
        "email_id": profile.email_id,
        "display_name": profile.display_name,
        "phone_number": profile.phone_number,
        "owner": jsonable_encoder(owner),
        "created_on": profile.created_on,
    }


## API endpoints [Owner]
@route_owner.post(
    URL_ACCOUNT,
    tags=["Account"],
    response_model=OwnerAccountSchema,
    status_code=status.HTTP_201_CREATED,
    responses=makeExceptionResponses([exceptions.UniqueViolation]),
    description="""
    Registers a new fleet owner.
    Creates the base profile with role OWNER and the company profile.
    The company is named after the display name when no company name is given.
    The password is stored as an Argon2 hash.
    """,
)
async def create_account(
    fParam: CreateForm,
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        profile = Profile(
            role=Role.OWNER,
            email_id=fParam.email_id.strip().lower(),
            password=argon2.makePassword(fParam.password),
            display_name=fParam.display_name,
            phone_number=fParam.phone_number,
        )
        session.add(profile)
        session.flush()

        owner = OwnerProfile(
            id=profile.id,
            company_name=fParam.company_name
            or fParam.display_name
            or DEFAULT_COMPANY_NAME,
            email_id=profile.email_id,
            phone_number=profile.phone_number,
            notification_preferences=NotificationPreferences().model_dump(),
        )
        session.add(owner)
        session.commit()
        session.refresh(profile)
        session.refresh(owner)

        logEvent(None, request_info, {"id": profile.id, "email_id": profile.email_id})
        return accountData(profile, owner)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_owner.get(
    URL_ACCOUNT,
    tags=["Account"],
    response_model=OwnerAccountSchema,
    responses=makeExceptionResponses([exceptions.InvalidToken]),
    description="""
    Fetches the profile of the authenticated owner together with the company profile.
    """,
)
async def fetch_account(bearer=Depends(bearer_owner)):
    try:
        session = sessionMaker()
        token = validators.ownerToken(bearer.credentials, session)
        profile = session.query(Profile).filter(Profile.id == token.owner_id).first()
        owner = getters.ownerProfile(token, session)
        session.commit()
        session.refresh(owner)
        return accountData(profile, owner)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_owner.patch(
    URL_ACCOUNT,
    tags=["Account"],
    response_model=OwnerAccountSchema,
    responses=makeExceptionResponses([exceptions.InvalidToken]),
    description="""
    Updates the profile and the company profile of the authenticated owner.
    Only the provided fields are changed.
    Notification preferences are replaced as a whole.
    Logs the update when something changed.
    """,
)
async def update_account(
    fParam: UpdateForm,
    bearer=Depends(bearer_owner),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.ownerToken(bearer.credentials, session)
        profile = session.query(Profile).filter(Profile.id == token.owner_id).first()
        owner = getters.ownerProfile(token, session)

        updateIfChanged(
            profile, fParam, [Profile.display_name.key, Profile.phone_number.key]
        )
        updateIfChanged(
            owner, fParam, [OwnerProfile.company_name.key, OwnerProfile.address.key]
        )
        if fParam.notification_preferences is not None:
            owner.notification_preferences = fParam.notification_preferences.model_dump()

        haveUpdates = session.is_modified(profile) or session.is_modified(owner)
        session.commit()
        session.refresh(profile)
        session.refresh(owner)

        accountDetails = accountData(profile, owner)
        if haveUpdates:
            logEvent(token, request_info, jsonable_encoder(accountDetails))
        return accountDetails
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_owner.patch(
    URL_ACCOUNT_COMPANY,
    tags=["Account"],
    response_model=OwnerProfileSchema,
    responses=makeExceptionResponses([exceptions.InvalidToken]),
    description="""
    Updates the public contact details of the owner's company.
    """,
)
async def update_company_contact(
    fParam: CompanyContactForm,
    bearer=Depends(bearer_owner),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.ownerToken(bearer.credentials, session)
        owner = getters.ownerProfile(token, session)

        updateIfChanged(
            owner, fParam, [OwnerProfile.email_id.key, OwnerProfile.phone_number.key]
        )
        haveUpdates = session.is_modified(owner)
        session.commit()
        session.refresh(owner)

        ownerData = jsonable_encoder(owner)
        if haveUpdates:
            logEvent(token, request_info, ownerData)
        return ownerData
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()


@route_owner.patch(
    URL_ACCOUNT_PASSWORD,
    tags=["Account"],
    status_code=status.HTTP_204_NO_CONTENT,
    responses=makeExceptionResponses(
        [exceptions.InvalidToken, exceptions.InvalidCredentials]
    ),
    description="""
    Changes the password of the authenticated owner.
    The current password must be provided.
    Every other token of the owner is revoked; the token used in this request stays valid.
    """,
)
async def change_password(
    fParam: PasswordForm,
    bearer=Depends(bearer_owner),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.ownerToken(bearer.credentials, session)
        profile = session.query(Profile).filter(Profile.id == token.owner_id).first()
        if not argon2.checkPassword(fParam.current_password, profile.password):
            raise exceptions.InvalidCredentials()

        profile.password = argon2.makePassword(fParam.new_password)
        session.query(OwnerToken).filter(
            OwnerToken.owner_id == token.owner_id, OwnerToken.id != token.id
        ).delete(synchronize_session=False)
        session.commit()

        logEvent(token, request_info, {"id": profile.id})
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
