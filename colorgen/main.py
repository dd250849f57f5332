from contextlib import asynccontextmanager
from typing import Optional
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from . import __version__
from .api.errors import register_exception_handlers
from .api.routers import accounts, artifacts, generate, system, tasks
from .core.container import Container
from .core.logger import configure_logging
from .database import init_db

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # --- STARTUP ---
    container: Container = app.state.container

    init_db(container.engine())

    # Nothing is queued yet, so every processing task belongs to a dead process
    recovered = await container.generation_service().recover_interrupted()
    if recovered:
        logger.warning(f"[STARTUP] Failed and refunded {recovered} interrupted tasks")
    else:
        logger.info("[STARTUP] No interrupted tasks found")

    worker_manager = container.worker_manager()
    await worker_manager.start_all()

    yield

    # --- SHUTDOWN ---
    logger.warning("[SHUTDOWN] Application shutdown triggered. Stopping workers...")
    await worker_manager.stop_all()
    container.engine().dispose()
    logger.info("[OK] Shutdown complete.")


def create_app(container: Optional[Container] = None) -> FastAPI:
    """
    Build the FastAPI application

    Args:
        container: pre-configured container (tests); a default one otherwise
    """
    container = container or Container()
    settings = container.settings()
    configure_logging(settings)

    app = FastAPI(title="colorgen", version=__version__, lifespan=lifespan)
    app.state.container = container

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    # Published artifacts only; references and staging stay private
    storage = container.storage()
    storage.ensure_dirs()
    app.mount(
        storage.images_url_prefix,
        StaticFiles(directory=str(storage.images_dir)),
        name="images"
    )

    app.include_router(accounts.router, prefix="/api")
    app.include_router(generate.router, prefix="/api")
    app.include_router(tasks.router, prefix="/api")
    app.include_router(artifacts.router, prefix="/api")
    app.include_router(system.router, prefix="/api")

    @app.get("/api/health", tags=["system"])
    async def health():
        return {"ok": True, "version": __version__}

    return app
