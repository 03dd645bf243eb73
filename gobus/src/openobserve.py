"""
Audit event sink.

Events are posted one at a time to the JSON ingestion endpoint of an
OpenObserve stream, authenticated with HTTP basic auth. Values JSON cannot
represent (datetimes, decimals, enums) are sent as strings.
"""

import json
import requests
from requests import Response
from requests.auth import HTTPBasicAuth

from gobus.src.constants import (
    OPENOBSERVE_HOST,
    OPENOBSERVE_ORG,
    OPENOBSERVE_PASSWORD,
    OPENOBSERVE_PORT,
    OPENOBSERVE_PROTOCOL,
    OPENOBSERVE_STREAM,
    OPENOBSERVE_TIMEOUT,
    OPENOBSERVE_USERNAME,
)

ingestURL = (
    f"{OPENOBSERVE_PROTOCOL}://{OPENOBSERVE_HOST}:{OPENOBSERVE_PORT}"
    f"/api/{OPENOBSERVE_ORG}/{OPENOBSERVE_STREAM}/_json"
)

httpSession = requests.Session()
httpSession.auth = HTTPBasicAuth(OPENOBSERVE_USERNAME, OPENOBSERVE_PASSWORD)
httpSession.headers.update({"Content-Type": "application/json"})


def logEvent(eventData: dict) -> Response:
    """
    Ship one audit event.

    Example event:
        {
            "_method": "POST",
            "_path": "/api/owner/drivers",
            "_app_id": 1,
            "_owner_id": 7,
            "drivers": [...]
        }
    """
    return httpSession.post(
        ingestURL,
        data=json.dumps([eventData], default=str),
        timeout=OPENOBSERVE_TIMEOUT,
    )
