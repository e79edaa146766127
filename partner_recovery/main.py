"""
FastAPI Application — entry point.

Hosts the recovery engine: a periodic pass in the background plus the
operator API.
"""

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from partner_recovery import __version__
from partner_recovery.config import settings
from partner_recovery.database import init_db, close_db
from partner_recovery.routes import router
from partner_recovery.routes.recovery import recovery_router
from partner_recovery.services.driver import run_recovery_pass

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
)

logger = logging.getLogger(__name__)


async def periodic_recovery(interval: int) -> None:
    """Run a recovery pass every ``interval`` seconds until cancelled."""
    while True:
        try:
            await asyncio.sleep(interval)
            await run_recovery_pass()
        except asyncio.CancelledError:
            break
        except Exception as e:
            logger.error("Periodic recovery pass error: %s", e)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown hook."""
    logger.info("🚀 Starting Partner Recovery v%s", __version__)
    await init_db()
    logger.info("✅ Database ready")

    poller_task = None
    if settings.recovery_interval_seconds > 0:
        poller_task = asyncio.create_task(periodic_recovery(settings.recovery_interval_seconds))
        logger.info("⏱️ Recovery pass scheduled every %ds", settings.recovery_interval_seconds)
    else:
        logger.info("ℹ️ Periodic recovery disabled")

    yield

    # Shutdown
    if poller_task:
        poller_task.cancel()
        try:
            await poller_task
        except asyncio.CancelledError:
            pass
    await close_db()
    logger.info("👋 Shutdown complete")


app = FastAPI(
    title="Partner Recovery API",
    description=(
        "Reassigns leads, sales and referral links of terminated partners "
        "to their manager or HQ."
    ),
    version=__version__,
    lifespan=lifespan,
)

app.include_router(router, prefix="/api/v1")
app.include_router(recovery_router, prefix="/api/v1")


@app.get("/", include_in_schema=False)
async def root():
    return {
        "service": "Partner Recovery API",
        "version": __version__,
        "docs": "/docs",
    }
