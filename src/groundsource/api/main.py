"""FastAPI application factory and entry point."""

import argparse
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from groundsource import __version__
from groundsource.api.routes import grounding
from groundsource.api.schemas import HealthResponse
from groundsource.app_utils.logging_config import configure_logging

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    from groundsource.api.deps import get_config_service, get_grounding_service

    logger.info("Initializing GroundSource API...")
    config = get_config_service().load()
    logger.info(
        f"Pipeline: {config.pipeline.max_concurrent_requests} concurrent requests, "
        f"similarity threshold {config.pipeline.similarity_threshold}"
    )
    if config.ollama.enable_relevance_scoring:
        logger.info(f"LLM relevance scoring via {config.ollama.base_url}")
    logger.info("✓ GroundSource API startup complete")

    yield

    logger.info("Shutting down GroundSource API...")
    get_grounding_service.cache_clear()
    get_config_service.cache_clear()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="GroundSource API",
        description="Source validation and citation API for grounded answers",
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

    app.include_router(grounding.router, prefix="/api/grounding", tags=["grounding"])

    @app.get("/health", response_model=HealthResponse, tags=["health"])
    async def health_check() -> HealthResponse:
        """Health check endpoint."""
        return HealthResponse(status="ok", version=__version__)

    return app


# Create default app instance
app = create_app()


def run(argv=None) -> None:
    """Run the API server (CLI entry point)."""
    parser = argparse.ArgumentParser(description="GroundSource API Server")
    add_server_arguments(parser)
    args = parser.parse_args(argv)
    configure_logging()
    serve(args.host, args.port, args.reload)


def add_server_arguments(parser: argparse.ArgumentParser) -> None:
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


def serve(host: str, port: int, reload: bool = False) -> None:
    display_host = "localhost" if host in ("0.0.0.0", "::") else host
    print(f"\n  GroundSource v{__version__}")
    print(f"  API listening at: http://{display_host}:{port}\n")

    uvicorn.run(
        "groundsource.api.main:app",
        host=host,
        port=port,
        reload=reload,
    )


if __name__ == "__main__":
    run()
