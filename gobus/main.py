import time
from datetime import datetime, timezone
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from gobus.src import schemas, redis
from gobus.src.db import sessionMaker
from gobus.src.constants import API_TITLE, API_VERSION
from gobus.src.exceptions import logException
from gobus.api.controller import app_owner, app_driver, app_customer
from gobus.api.controller import app_ticket


app = FastAPI(title=API_TITLE, version=API_VERSION)

origins = ["*"]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.mount("/api/owner", app_owner, "Owner API")
app.mount("/api/driver", app_driver, "Driver API")
app.mount("/api/customer", app_customer, "Customer API")
app.mount("/api/ticket", app_ticket, "Ticket API")


def probe(check) -> dict:
    """Run a reachability check and time it in milliseconds."""
    start = time.perf_counter()
    try:
        ok, error = bool(check()), None
    except Exception as e:
        logException(e)
        ok, error = False, str(e)
    return {
        "ok": ok,
        "timeMs": round((time.perf_counter() - start) * 1000),
        "error": error,
    }


def storeCheck() -> bool:
    with sessionMaker() as session:
        session.execute(text("SELECT 1"))
    return True


# Health check endpoint
@app.get("/api/health", tags=["Health Check"], response_model=schemas.HealthStatus)
async def health_check():
    checks = {"store": probe(storeCheck), "lock": probe(redis.ping)}
    healthy = all(check["ok"] for check in checks.values())
    return {
        "status": "OK" if healthy else "DEGRADED",
        "version": API_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "checks": checks,
    }
