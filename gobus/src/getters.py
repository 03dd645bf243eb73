from fastapi import Request
from sqlalchemy.orm.session import Session

from gobus.src import schemas, exceptions
from gobus.src.db import OwnerProfile, OwnerToken, Profile
from gobus.src.enums import Role
from gobus.src.constants import DEFAULT_COMPANY_NAME


def requestInfo(request: Request) -> schemas.RequestInfo:
    """
    Extract metadata about the incoming request.

    Args:
        request (Request): FastAPI request object.

    Returns:
        schemas.RequestInfo: Pydantic model containing:
            - method (str): HTTP method (GET, POST, etc.).
            - path (str): Path portion of the request URL.
            - app_id (int): Application ID from app state.
    """
    return schemas.RequestInfo(
        method=request.method,
        path=request.url.path,
        app_id=request.scope["app"].state.id,
    )


def ownerProfile(token: OwnerToken, session: Session) -> OwnerProfile:
    """
    Fetch the company profile of the owner behind a token.

    A missing row is provisioned from the base profile, named after its
    display name or `DEFAULT_COMPANY_NAME`. The caller commits.

    Raises:
        exceptions.InvalidIdentifier: If the base profile is not an owner profile.
    """
    owner = session.query(OwnerProfile).filter(OwnerProfile.id == token.owner_id).first()
    if owner is not None:
        return owner

    profile = session.query(Profile).filter(Profile.id == token.owner_id).first()
    if profile is None or profile.role != Role.OWNER:
        raise exceptions.InvalidIdentifier()

    owner = OwnerProfile(
        id=profile.id,
        company_name=profile.display_name or DEFAULT_COMPANY_NAME,
        email_id=profile.email_id,
        phone_number=profile.phone_number,
    )
    session.add(owner)
    session.flush()
    return owner
