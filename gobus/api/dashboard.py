from typing import List
from fastapi import APIRouter, Depends
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel

from gobus.api.bearer import bearer_owner
from gobus.api.bus import BusDetailSchema
from gobus.api.owner_account import OwnerProfileSchema
from gobus.api.trip import tripsOfBus
from gobus.src.db import Bus, OwnerProfile, sessionMaker
from gobus.src import exceptions, validators, getters
from gobus.src.loggers import logEvent
from gobus.src.functions import makeExceptionResponses
from gobus.src.urls import URL_OWNER_DASHBOARD

route_owner = APIRouter()


## Output Schema
class DashboardSchema(BaseModel):
    owner: OwnerProfileSchema
    buses: List[BusDetailSchema]


## API endpoints [Owner]
@route_owner.get(
    URL_OWNER_DASHBOARD,
    tags=["Dashboard"],
    response_model=DashboardSchema,
    responses=makeExceptionResponses(
        [exceptions.InvalidToken, exceptions.InvalidIdentifier]
    ),
    description="""
    Fetches the company profile of the owner and every bus with its trips, newest bus first.
    The company profile is created on first access, named after the display name of the owner.
    """,
)
async def fetch_dashboard(
    bearer=Depends(bearer_owner),
    request_info=Depends(getters.requestInfo),
):
    try:
        session = sessionMaker()
        token = validators.ownerToken(bearer.credentials, session)

        needsProvisioning = (
            session.query(OwnerProfile.id)
            .filter(OwnerProfile.id == token.owner_id)
            .first()
            is None
        )
        owner = getters.ownerProfile(token, session)
        session.commit()
        session.refresh(owner)

        buses = (
            session.query(Bus)
            .filter(Bus.owner_id == token.owner_id)
            .order_by(Bus.created_on.desc(), Bus.id.desc())
            .all()
        )
        busData = []
        for bus in buses:
            data = jsonable_encoder(bus)
            data["trips"] = tripsOfBus(bus.id, session)
            busData.append(data)

        if needsProvisioning:
            logEvent(token, request_info, jsonable_encoder(owner))
        return {
            "owner": jsonable_encoder(owner),
            "buses": busData,
        }
    except Exception as e:
        exceptions.handle(e)
    finally:
        session.close()
