from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging

from feeddiff.core.logging import setup_logging
from feeddiff.core.config import settings
from feeddiff.core.database import init_db
from feeddiff.api.router import router as api_router
from feeddiff.api.deps import get_keylog_store
from feeddiff.services.maintenance import MaintenanceService
from feeddiff.utils.canonical import canonical_cache

setup_logging()
logger = logging.getLogger("feeddiff")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    logger.info("Starting up feed diff API")
    logger.info(f"Environment: {settings.ENVIRONMENT}")

    canonical_cache.idle_seconds = settings.CANONICAL_CACHE_IDLE_SECONDS
    canonical_cache.max_entries = settings.CANONICAL_CACHE_MAX_ENTRIES

    if settings.AUTO_CREATE_TABLES:
        await init_db()

    maintenance = MaintenanceService(get_keylog_store())
    maintenance.start()
    logger.info(f"Maintenance service started with interval {settings.MAINTENANCE_INTERVAL_SECONDS}s")

    yield

    # Shutdown
    logger.info("Shutting down feed diff API")
    await maintenance.stop()


app = FastAPI(
    title="Feed Diff API",
    version="1.0.0",
    description="Order-insensitive comparison of upstream responses with a persistent diff log",
    lifespan=lifespan
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=[str(origin).rstrip("/") for origin in settings.BACKEND_CORS_ORIGINS],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(api_router, prefix=settings.API_STR)


@app.get("/")
async def root():
    logger.info("Root endpoint accessed")
    return {"message": "Feed Diff API", "version": "1.0.0"}


@app.get("/health")
async def health_check():
    return {"status": "healthy"}
