from typing import Optional
from pydantic import BaseModel


class RequestInfo(BaseModel):
    method: str
    path: str
    app_id: int


class ServiceProbe(BaseModel):
    ok: bool
    timeMs: int
    error: Optional[str] = None


class HealthStatus(BaseModel):
    status: str
    version: str
    timestamp: str
    checks: dict[str, ServiceProbe]


class ErrorResponse(BaseModel):
    detail: str
