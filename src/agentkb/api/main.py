"""FastAPI application factory and entry point."""

import argparse
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from agentkb import __version__
from agentkb.api.routes import config, notifications, sources, tasks, training
from agentkb.api.schemas import HealthResponse
from agentkb.app_utils.logging_config import setup_logging

logger = logging.getLogger(__name__)

AGENT_PREFIX = "/api/agents/{agent_id}"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    from agentkb.api.deps import close_workspaces, get_config_service, get_task_runner

    logger.info("Initializing agentkb API...")

    config = get_config_service().load()
    logger.info("Knowledge-base service: %s", config.api.base_url)

    task_runner = get_task_runner()
    await task_runner.start()

    logger.info("✓ agentkb API startup complete")

    yield

    logger.info("Shutting down agentkb API...")

    await close_workspaces()
    await task_runner.stop()

    get_config_service.cache_clear()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="agentkb API",
        description="Knowledge sources, selection and training for support agents",
        version=__version__,
        lifespan=lifespan,
    )

    # CORS middleware - allow all origins in development
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(sources.router, prefix=AGENT_PREFIX, tags=["sources"])
    app.include_router(training.router, prefix=AGENT_PREFIX, tags=["training"])
    app.include_router(
        notifications.router, prefix=AGENT_PREFIX, tags=["notifications"]
    )
    app.include_router(config.router, prefix="/api/config", tags=["config"])
    app.include_router(tasks.router, prefix="/api/tasks", tags=["tasks"])

    @app.get("/health", response_model=HealthResponse, tags=["health"])
    async def health_check() -> HealthResponse:
        """Health check endpoint."""
        return HealthResponse(status="ok", version=__version__)

    return app


# Create default app instance
app = create_app()


def run() -> None:
    """Run the API server (CLI entry point)."""
    parser = argparse.ArgumentParser(description="agentkb API Server")
    parser.add_argument(
        "--host",
        default="0.0.0.0",
        help="Host to bind to (default: 0.0.0.0)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8000,
        help="Port to bind to (default: 8000)",
    )
    parser.add_argument(
        "--reload",
        action="store_true",
        help="Enable auto-reload for development",
    )
    args = parser.parse_args()

    setup_logging()
    host = "localhost" if args.host in ("0.0.0.0", "::") else args.host
    print(f"\n  agentkb v{__version__}")
    print(f"  API listening on: http://{host}:{args.port}/api\n")

    uvicorn.run(
        "agentkb.api.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
    )


if __name__ == "__main__":
    run()
