"""FastAPI dependencies for shared application state.

This module provides reusable FastAPI dependencies for:
- Settings access
- The shared outbound HTTP client (used by the download relay)
- The generation session registry and saved model repository
"""

import httpx
from fastapi import Depends, HTTPException, Request, status

from modelsmith.core.config import Settings
from modelsmith.repositories.saved_model import SavedModelRepository
from modelsmith.services.session import GenerationSession, SessionRegistry


def get_settings(request: Request) -> Settings:
    """Get application settings instance from app state.

    Returns:
        Settings instance loaded from environment variables at startup.
    """
    return request.app.state.settings


def get_http_client(request: Request) -> httpx.AsyncClient:
    """Get the shared outbound HTTP client from app state."""
    return request.app.state.http_client


def get_session_registry(request: Request) -> SessionRegistry:
    """Get the generation session registry from app state."""
    return request.app.state.session_registry


def get_saved_models(request: Request) -> SavedModelRepository:
    """Get the saved model repository from app state."""
    return request.app.state.saved_models


def get_session(
    session_id: str,
    registry: SessionRegistry = Depends(get_session_registry),
) -> GenerationSession:
    """Resolve the ``session_id`` path parameter to a live session.

    Raises:
        HTTPException: 404 Not Found if the session does not exist
    """
    session = registry.get(session_id)
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail=f"Session not found: {session_id}"
        )
    return session
