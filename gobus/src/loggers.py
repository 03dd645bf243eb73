from typing import Union
from gobus.src.db import OwnerToken, DriverToken, CustomerToken
from gobus.src import openobserve
from gobus.src.schemas import RequestInfo
from gobus.src.enums import AppID


def logEvent(
    token: Union[OwnerToken, DriverToken, CustomerToken],
    requestInfo: RequestInfo,
    data: dict,
) -> None:
    """
    Log an event to OpenObserve with request and user context.

    Args:
        token (Union[OwnerToken, DriverToken, CustomerToken]): Authenticated user token.
        requestInfo (RequestInfo): Metadata about the current request.
        data (dict): Additional event-specific details to include in the log.

    Notes:
        - Automatically attaches `_app_id`, `_method`, `_path`, and user-specific ID.
        - User-specific key depends on the token:
            - Owner    → `_owner_id`
            - Driver   → `_driver_id` (and `_owner_id` of the slot)
            - Customer → `_customer_id`
        - Callers must not pass secrets in `data`.
    """
    logDetails = {
        "_method": requestInfo.method,
        "_path": requestInfo.path,
        "_app_id": requestInfo.app_id,
    }

    if isinstance(token, OwnerToken):
        logDetails["_owner_id"] = token.owner_id
    elif isinstance(token, DriverToken) and requestInfo.app_id == AppID.DRIVER:
        logDetails["_driver_id"] = token.driver_id
        logDetails["_owner_id"] = token.owner_id
    elif isinstance(token, CustomerToken):
        logDetails["_customer_id"] = token.customer_id

    logDetails.update(data)
    openobserve.logEvent(logDetails)
