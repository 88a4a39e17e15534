"""
DelayGuard Worker API - Main FastAPI Application.

Processes Cloud Tasks carrier polls and Cloud Scheduler poll sweeps.
"""

import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI

from delayguard import config
from delayguard.carriers.base import ThreadLocalSession
from delayguard.carriers.registry import build_default_registry
from delayguard.carriers.token_cache import (
    CredentialCache,
    DatabaseTokenStore,
    InMemoryTokenStore,
)
from delayguard.services.carrier_poll import CarrierPollOrchestrator
from delayguard.utils.logging import setup_logging

# Load environment variables
load_dotenv()

# Configure logging early
setup_logging("delayguard-worker")


def _init_database():
    """Initialize database connection if configured."""
    from delayguard.db import DatabaseConnection

    if not (os.getenv("INSTANCE_CONNECTION_NAME") or os.getenv("DATABASE_URL")):
        print("   Database: Not configured (INSTANCE_CONNECTION_NAME not set)")
        return False

    try:
        DatabaseConnection.initialize(pool_size=max(5, config.CARRIER_POLL_CONCURRENCY))
        print("   Database: Connected")
        return True
    except Exception as e:
        print(f"   Database: Failed to connect - {e}")
        return False


def _build_credential_cache(db_initialized: bool) -> CredentialCache:
    if config.TOKEN_CACHE_BACKEND == "database" and db_initialized:
        print("   Token cache: database")
        return CredentialCache(
            DatabaseTokenStore(), refresh_buffer_seconds=config.TOKEN_REFRESH_BUFFER_SECONDS
        )

    print("   Token cache: in-memory")
    return CredentialCache(
        InMemoryTokenStore(), refresh_buffer_seconds=config.TOKEN_REFRESH_BUFFER_SECONDS
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events."""
    print("🔨 Starting DelayGuard Worker Service...")
    print(f"   Environment: {os.getenv('GOOGLE_CLOUD_PROJECT', 'local')}")

    db_initialized = _init_database()

    # One HTTP session per worker thread, reused across polls
    session = ThreadLocalSession()
    registry = build_default_registry(
        _build_credential_cache(db_initialized), session=session
    )
    app.state.orchestrator = CarrierPollOrchestrator(registry)
    print(f"   Carriers: {', '.join(str(c) for c in registry.carriers)}")

    yield

    session.close()

    if db_initialized:
        from delayguard.db import DatabaseConnection

        DatabaseConnection.close()
        print("   Database: Connection closed")

    print("👋 Shutting down DelayGuard Worker Service...")


app = FastAPI(
    title="DelayGuard Worker API",
    description="Background worker polling carrier APIs for shipment delays",
    version="0.1.0",
    lifespan=lifespan,
)


@app.get("/")
async def root():
    """Root endpoint - service information."""
    return {
        "service": "DelayGuard Worker API",
        "version": "0.1.0",
        "status": "operational",
        "description": "Carrier polling and delay detection",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint for Cloud Run."""
    return {
        "status": "healthy",
        "service": "delayguard-worker",
        "environment": os.getenv("GOOGLE_CLOUD_PROJECT", "local"),
    }


from delayguard.worker.routes import tasks

app.include_router(tasks.router, prefix="/tasks", tags=["tasks"])
