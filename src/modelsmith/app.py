"""FastAPI application factory."""

from contextlib import asynccontextmanager
from typing import Optional

import httpx
import structlog
from fastapi import FastAPI
from modelsmith.api.middleware import RelayExemptCORSMiddleware
from modelsmith.api.routes import models, relay, sessions
from modelsmith.core.config import Settings, configure_logging
from modelsmith.repositories.saved_model import SavedModelRepository
from modelsmith.services.artifacts import ArtifactResolver
from modelsmith.services.rodin.rodin_client import RodinClient
from modelsmith.services.session import SessionRegistry

logger = structlog.get_logger()


def build_session_registry(settings: Settings, http_client: httpx.AsyncClient) -> SessionRegistry:
    """Wire the Rodin client, artifact resolver and session registry together."""
    rodin_client = RodinClient(
        http_client=http_client,
        api_key=settings.rodin_api_key,
        base_url=settings.rodin_base_url,
    )
    resolver = ArtifactResolver(
        client=rodin_client,
        probe_client=http_client,
        relay_path=settings.relay_path,
        relay_probe_base=settings.relay_probe_base,
        settle_seconds=settings.artifact_settle_seconds,
    )
    return SessionRegistry(client=rodin_client, resolver=resolver, settings=settings)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan context manager.

    Handles startup and shutdown tasks:
    - Startup: Configure logging, open the shared HTTP client, build the session registry
    - Shutdown: Cancel in-flight generation runs, close the HTTP client

    A transport injected via ``app.state.http_transport`` (tests) is used for
    every outbound request.
    """
    settings: Settings = app.state.settings
    configure_logging(settings)

    transport: Optional[httpx.AsyncBaseTransport] = getattr(app.state, "http_transport", None)
    http_client = httpx.AsyncClient(
        timeout=settings.upstream_timeout_seconds,
        follow_redirects=True,
        transport=transport,
    )

    app.state.http_client = http_client
    app.state.session_registry = build_session_registry(settings, http_client)
    app.state.saved_models = SavedModelRepository()

    logger.info(
        "application.startup",
        rodin_base_url=settings.rodin_base_url,
        poll_interval=settings.poll_interval_seconds,
    )

    yield

    logger.info("application.shutdown", sessions=len(app.state.session_registry))
    await app.state.session_registry.shutdown()
    await http_client.aclose()


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Create and configure FastAPI application.

    Args:
        settings: Settings to use (loaded from the environment if omitted)

    Returns:
        Configured FastAPI application instance
    """
    settings = settings or Settings()  # type: ignore[call-arg]

    app = FastAPI(
        title="Modelsmith API",
        description="3D asset generation job orchestration and download relay",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_middleware(
        RelayExemptCORSMiddleware,
        relay_path=settings.relay_path,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(sessions.router)
    app.include_router(relay.router)
    app.include_router(models.router)

    @app.get("/health")
    async def health_check():
        """Liveness check.

        Returns:
            200: {"status": "healthy"}
        """
        logger.debug("health_check.success")
        return {"status": "healthy"}

    return app
