import asyncio
import logging
from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse

router = APIRouter()
log = logging.getLogger(__name__)

@router.get("/assignments/health")
async def health_check(request: Request):
    client = getattr(request.app.state, "mongo_client", None)
    if client is None:
        return {"status": "ok", "database": "not configured"}
    try:
        await asyncio.wait_for(client.admin.command("ping"), timeout=2)
    except Exception:
        log.exception("Health check: Mongo non raggiungibile")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "degraded", "database": "unreachable"},
        )
    return {"status": "ok", "database": "connected"}
