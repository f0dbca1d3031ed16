"""FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from cdn import __version__
from cdn.config import settings
from cdn.database import async_session, engine
from cdn.errors import register_error_handlers
from cdn.models import Base
from cdn.services.embeds import HttpClient
from cdn.services.file_reaper import FileReaper
from cdn.services.file_storage import create_file_storage
from cdn.stores import load_stores

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Load stores, create tables, open shared clients and start the reaper.

    Any failure here aborts startup; the process never serves half-configured.
    """
    logger.info(f"CDN version {__version__}")
    load_stores(settings.STORES)

    logger.info("Connecting to database...")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    storage = create_file_storage(settings)
    http = HttpClient(user_agent=settings.USER_AGENT, timeout=settings.EMBED_TIMEOUT)
    await http.open()
    app.state.storage = storage
    app.state.http = http

    logger.info("Starting background tasks...")
    reaper = FileReaper(
        storage,
        async_session,
        interval=settings.REAPER_INTERVAL,
        item_delay=settings.REAPER_ITEM_DELAY,
    )
    reaper.start()

    yield

    # Cleanup
    await reaper.stop()
    await http.close()
    await storage.close()
    await engine.dispose()


app = FastAPI(
    title="CDN",
    version=__version__,
    description="Media CDN: uploads, resized serving and URL embeds.",
    lifespan=lifespan,
)

# CORS
origins = [o.strip() for o in settings.CORS_ORIGINS.split(",")]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

# Register routers
from cdn.routes.service import router as service_router
from cdn.routes.files import router as files_router
from cdn.routes.embeds import router as embeds_router
app.include_router(service_router)
app.include_router(files_router)
app.include_router(embeds_router)


def run() -> None:
    """Console entry point: ``cdn``."""
    import uvicorn

    uvicorn.run("cdn.main:app", host=settings.HOST, port=settings.PORT)
