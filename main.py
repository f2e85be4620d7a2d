# ============================================================================
# MINT COORDINATOR - MAIN APPLICATION
# ============================================================================
# EPOCH: 1 - MINT COORDINATION
# STATUS: Core - FastAPI application entry point
# PURPOSE: Wire store, providers, chain and dispatcher behind the HTTP API
# CREATED: 03 OCT 2026
# ============================================================================
"""
Mint Coordinator Main Application

FastAPI application that:
1. Accepts /process requests and queues generate-and-mint tasks
2. Drains the queue on /cron ticks (or inline, with INLINE_DISPATCH=true)
3. Serves status polling, metrics and health

The schema is not created here; deploy it with scripts/deploy_schema.py.

Usage:
    uvicorn main:app --host 0.0.0.0 --port 8000
"""

import logging
import os
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Optional

from fastapi import FastAPI

from __version__ import __version__, BUILD_DATE, EPOCH

from core.config import AppConfig, get_config
from core.errors import ChainError, StoreFatalError
from infrastructure.chain import MintChain, Web3MintContract
from infrastructure.ipfs import PinataArtifactStore
from orchestrator import CronTickHandler, Dispatcher, MintQueue
from providers import ProviderRegistry
from repositories import PersistenceAdapter, build_backend
from services import QueryService, TaskService

from api.routes import router, set_services
from api.middleware import install_cors, install_error_handlers

# Configure logging using our structured logging system
from core.logging import configure_logging

configure_logging(
    level=os.environ.get("LOG_LEVEL", "INFO"),
    json_output=os.environ.get("LOG_FORMAT", "").lower() == "json",
)

logger = logging.getLogger(__name__)


@dataclass
class Components:
    """Everything the lifespan builds, so shutdown can close it in order."""
    adapter: PersistenceAdapter
    registry: ProviderRegistry
    artifacts: PinataArtifactStore
    chain: Optional[MintChain]
    queue: MintQueue
    task_service: TaskService
    query_service: QueryService
    dispatcher: Dispatcher
    cron: CronTickHandler


def build_components(config: AppConfig) -> Components:
    adapter = PersistenceAdapter(build_backend(config.store), config.store)
    registry = ProviderRegistry.from_config(config.providers)
    artifacts = PinataArtifactStore(config.artifacts)

    chain: Optional[MintChain] = None
    if config.chain.is_configured:
        try:
            chain = Web3MintContract(config.chain)
        except ChainError as e:
            logger.warning(f"Chain client disabled: {e.message}")
    else:
        logger.warning("RPC_URL / CONTRACT_ADDRESS not set; finalizeMint and event scan disabled")

    queue = MintQueue()
    task_service = TaskService(adapter, registry, queue, config.coordinator, chain=chain)
    dispatcher = Dispatcher(
        task_service,
        registry,
        queue,
        artifacts,
        chain=chain,
        config=config.coordinator,
        placeholder_uri=config.chain.placeholder_uri,
    )
    if config.coordinator.inline_dispatch:
        task_service.on_enqueue = dispatcher.trigger

    return Components(
        adapter=adapter,
        registry=registry,
        artifacts=artifacts,
        chain=chain,
        queue=queue,
        task_service=task_service,
        query_service=QueryService(adapter, task_service),
        dispatcher=dispatcher,
        cron=CronTickHandler(adapter, task_service, dispatcher, queue, chain=chain, config=config.coordinator),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Builds components on startup, reseeds the queue from the store and
    closes everything on shutdown.
    """
    config = get_config()
    logger.info(f"Starting Mint Coordinator v{__version__} (Epoch {EPOCH}, Build {BUILD_DATE})")

    components = build_components(config)
    components.adapter.install_signal_handlers()

    set_services(
        task_service=components.task_service,
        query_service=components.query_service,
        cron_handler=components.cron,
        adapter=components.adapter,
        dispatcher=components.dispatcher,
    )

    try:
        seeded = await components.cron.reseed()
        logger.info(f"Startup reseed queued {seeded} task(s)")
    except StoreFatalError as e:
        # The first cron tick reseeds once the store is back
        logger.error(f"Startup reseed failed: {e.message}")

    if config.coordinator.inline_dispatch and not components.queue.empty:
        components.dispatcher.trigger()

    yield

    # Shutdown
    logger.info("Shutting down Mint Coordinator...")
    await components.dispatcher.shutdown()
    await components.registry.aclose()
    await components.artifacts.aclose()
    await components.adapter.close()
    logger.info("Mint Coordinator stopped")


# Create FastAPI app
app = FastAPI(
    title="Mint Coordinator",
    description=f"Epoch {EPOCH} asynchronous image generation and mint task coordinator",
    version=__version__,
    lifespan=lifespan,
)

install_cors(app, origin=get_config().cors_origin)
install_error_handlers(app, origin=get_config().cors_origin)

app.include_router(router)


# Root endpoint
@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "service": "Mint Coordinator",
        "version": __version__,
        "epoch": EPOCH,
        "build_date": BUILD_DATE,
        "status": "running",
        "docs": "/docs",
    }


# ============================================================================
# MAIN ENTRY POINT
# ============================================================================

if __name__ == "__main__":
    import uvicorn

    host = os.environ.get("HOST", "0.0.0.0")
    port = int(os.environ.get("PORT", "8000"))

    uvicorn.run(
        "main:app",
        host=host,
        port=port,
        reload=os.environ.get("RELOAD", "false").lower() == "true",
    )
