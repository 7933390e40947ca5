from fastapi import FastAPI
import logging

from keepsake.api.routes import router
from keepsake.config import settings_from_env
from keepsake.scheduler import scheduler

app = FastAPI(title="keepsake", version="0.1.0")
app.include_router(router)
# Configure logging
logging.basicConfig(level=getattr(logging, settings_from_env().log_level, logging.INFO))
logger = logging.getLogger(__name__)


@app.on_event("startup")
async def _startup() -> None:
    settings = settings_from_env()
    if settings.use_in_memory_backend:
        logger.warning("SUPABASE_URL not set; using the in-memory backend")


@app.on_event("shutdown")
async def _shutdown() -> None:
    # Pending pair resolutions are lazily applied on the next read anyway.
    scheduler.cancel_all()


@app.get("/info")
async def info() -> dict[str, str]:
    return {"name": "keepsake", "version": "0.1.0"}
