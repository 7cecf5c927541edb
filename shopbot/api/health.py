from fastapi import APIRouter, Request
from fastapi.responses import PlainTextResponse

from shopbot.core.db import ping

router = APIRouter(tags=["health"])


@router.get("/", response_class=PlainTextResponse)
async def root():
    return "Shop Bot is running"


@router.get("/health")
async def health(request: Request):
    """Health check endpoint.  Verifies the Postgres connection is reachable."""
    pool = getattr(request.app.state, "pool", None)
    if pool is None:
        return {"status": "ok", "database": "not configured"}
    try:
        await ping(pool)
        db_status = "ok"
    except Exception as exc:
        db_status = f"error: {exc}"

    return {"status": "ok", "database": db_status}
