"""
Dependency injection module for API routes.

Provides process-wide service instances to FastAPI routes. Tests replace
them through ``app.dependency_overrides`` or ``set_services``.
"""

import threading
from typing import Optional

from courtroom.app.services.chat_service import ChatService
from courtroom.app.services.roster_service import RosterService
from courtroom.app.services.session_service import SessionService
from courtroom.app.utils.logging import get_logger

logger = get_logger(__name__)


_session_service_instance: Optional[SessionService] = None
_session_service_lock = threading.Lock()

_roster_service_instance: Optional[RosterService] = None
_roster_service_lock = threading.Lock()

_chat_service_instance: Optional[ChatService] = None
_chat_service_lock = threading.Lock()


async def get_session_service() -> SessionService:
    """
    Get the session lifecycle service (FastAPI dependency).

    Usage:
        @router.post("/sessions/{session_id}/start")
        async def start_session(
            session_id: str,
            service: SessionService = Depends(get_session_service)
        ):
            return await service.start_session(session_id)
    """
    global _session_service_instance

    if _session_service_instance is None:
        with _session_service_lock:
            if _session_service_instance is None:
                _session_service_instance = SessionService()
                logger.debug("Session service created")

    return _session_service_instance


async def get_roster_service() -> RosterService:
    """Get the participant roster service (FastAPI dependency)."""
    global _roster_service_instance

    if _roster_service_instance is None:
        with _roster_service_lock:
            if _roster_service_instance is None:
                _roster_service_instance = RosterService()
                logger.debug("Roster service created")

    return _roster_service_instance


async def get_chat_service() -> ChatService:
    """Get the chat log service (FastAPI dependency)."""
    global _chat_service_instance

    if _chat_service_instance is None:
        with _chat_service_lock:
            if _chat_service_instance is None:
                _chat_service_instance = ChatService()
                logger.debug("Chat service created")

    return _chat_service_instance


def set_services(
    session_service: Optional[SessionService] = None,
    roster_service: Optional[RosterService] = None,
    chat_service: Optional[ChatService] = None
) -> None:
    """Install explicit service instances, e.g. ones sharing a test database."""
    global _session_service_instance, _roster_service_instance, _chat_service_instance

    with _session_service_lock:
        _session_service_instance = session_service
    with _roster_service_lock:
        _roster_service_instance = roster_service
    with _chat_service_lock:
        _chat_service_instance = chat_service


def reset_services() -> None:
    """Drop all cached service instances."""
    set_services()
