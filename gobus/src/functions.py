from typing import Any, Dict, List, Type
from sqlalchemy import inspect

from gobus.src import schemas
from gobus.src.exceptions import APIException


def makeExceptionResponses(exceptions: List[Type[APIException]]) -> Dict[int, dict]:
    """
    OpenAPI `responses` for the errors an endpoint can raise.

    Errors sharing a status code become named examples of one response,
    summarized by their `X-Error` header.
    """
    responses: Dict[int, dict] = {}
    for exception in exceptions:
        response = responses.setdefault(
            exception.status_code,
            {
                "model": schemas.ErrorResponse,
                "content": {"application/json": {"examples": {}}},
            },
        )
        detail = exception.detail or exception.template or exception.__name__
        response["content"]["application/json"]["examples"][exception.__name__] = {
            "summary": exception.headers["X-Error"],
            "value": {"detail": detail.format(*["<column>"] * detail.count("{}"))},
        }
    return responses


def enumStr(enumClass) -> str:
    """
    Members of an enum as `NAME: value` pairs, for parameter descriptions.

    Example:
        >>> enumStr(TicketStatus)
        'ACTIVE: 1, USED: 2, EXPIRED: 3'
    """
    return ", ".join(f"{member.name}: {member.value}" for member in enumClass)


def isValidTransition(
    transitions: dict[Any, list[Any]], old_state: Any, new_state: Any
) -> bool:
    # States missing from the map are terminal
    return new_state in transitions.get(old_state, ())


def updateIfChanged(targetObj, sourceObj, fields: List[str]) -> List[str]:
    """
    Copy the listed attributes from a form onto a model.

    Only fields the client sent (the form's `model_fields_set`) are written.
    An explicit null clears a nullable column and is ignored for a NOT NULL
    one. Returns the names of the fields that changed.

    Example:
        >>> updateIfChanged(trip, fParam, [Trip.end_time.key, Trip.is_active.key])
        ['end_time']
    """
    columns = inspect(type(targetObj)).columns
    changed = []
    for field in fields:
        if field not in sourceObj.model_fields_set:
            continue
        value = getattr(sourceObj, field)
        if value is None and not columns[field].nullable:
            continue
        if getattr(targetObj, field) != value:
            setattr(targetObj, field, value)
            changed.append(field)
    return changed
