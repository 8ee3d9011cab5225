"""
Court Session API Routes

REST endpoints for the session lifecycle: scheduling, listing, editing,
starting, docket progression, ending and deleting court sessions.

Lifecycle rules enforced by the service layer:
- Only scheduled sessions can be edited, started or deleted
- Exactly one docket entry is active at a time
- Ending a session resolves every open docket entry and releases its case

Errors propagate as the service's own exceptions and are rendered by the
global error handler.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status

from courtroom.app.api.deps import get_session_service
from courtroom.app.models.api.session_schemas import (
    MessageResponse,
    SessionCreatedResponse,
    SessionCreateRequest,
    SessionEndResponse,
    SessionListResponse,
    SessionResponse,
    SessionUpdateRequest
)
from courtroom.app.services.session_service import SessionService
from courtroom.app.utils.logging import log_business_event, log_route_entry, log_route_exit

router = APIRouter(tags=["sessions"])


@router.post(
    "/sessions",
    response_model=SessionCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Schedule Court Session",
    description="Create a scheduled court session and link its docket cases to it"
)
async def create_session(
    request: Request,
    session_request: SessionCreateRequest,
    session_service: SessionService = Depends(get_session_service)
) -> SessionCreatedResponse:
    log_route_entry(
        request,
        community_id=session_request.community_id,
        docket_size=len(session_request.docket)
    )

    session = await session_service.create_session(session_request)

    log_business_event(
        "session_created",
        request,
        session_id=session.session_id,
        community_id=session.community_id,
        docket_size=len(session.docket)
    )

    response = SessionCreatedResponse(id=session.session_id)
    log_route_exit(request, response, status_code=status.HTTP_201_CREATED)
    return response


@router.get(
    "/sessions/{session_id}",
    response_model=SessionResponse,
    summary="Get Court Session"
)
async def get_session(
    request: Request,
    session_id: str,
    session_service: SessionService = Depends(get_session_service)
) -> SessionResponse:
    log_route_entry(request, session_id=session_id)

    session = await session_service.get_session(session_id)

    response = SessionResponse.from_domain(session)
    log_route_exit(request, response)
    return response


@router.get(
    "/communities/{community_id}/sessions",
    response_model=SessionListResponse,
    summary="List Community Sessions",
    description="Newest first. ``status`` accepts a comma-separated list of statuses."
)
async def list_sessions(
    request: Request,
    community_id: str,
    status_filter: Optional[str] = Query(
        None,
        alias="status",
        description="Comma-separated statuses, e.g. scheduled,in_progress"
    ),
    department_id: Optional[str] = Query(None, alias="departmentId"),
    page: int = Query(0, description="Zero-based page number"),
    limit: int = Query(0, description="Page size; defaults when not positive"),
    session_service: SessionService = Depends(get_session_service)
) -> SessionListResponse:
    log_route_entry(
        request,
        community_id=community_id,
        status=status_filter,
        department_id=department_id,
        page=page,
        limit=limit
    )

    result = await session_service.list_sessions(
        community_id,
        status=status_filter,
        department_id=department_id,
        page=page,
        limit=limit
    )

    response = SessionListResponse.from_page(result)
    log_route_exit(
        request,
        response,
        result_count=len(result.items),
        total_count=result.total_count,
        count_degraded=result.count_degraded
    )
    return response


@router.put(
    "/sessions/{session_id}",
    response_model=SessionResponse,
    summary="Edit Court Session",
    description="Partially update a scheduled session; a docket replaces the whole docket"
)
async def edit_session(
    request: Request,
    session_id: str,
    update_request: SessionUpdateRequest,
    session_service: SessionService = Depends(get_session_service)
) -> SessionResponse:
    log_route_entry(
        request,
        session_id=session_id,
        docket_replaced=update_request.docket is not None
    )

    session = await session_service.edit_session(session_id, update_request)

    log_business_event("session_edited", request, session_id=session_id)

    response = SessionResponse.from_domain(session)
    log_route_exit(request, response)
    return response


@router.delete(
    "/sessions/{session_id}",
    response_model=MessageResponse,
    summary="Delete Court Session",
    description="Delete a scheduled session and unlink its docket cases"
)
async def delete_session(
    request: Request,
    session_id: str,
    session_service: SessionService = Depends(get_session_service)
) -> MessageResponse:
    log_route_entry(request, session_id=session_id)

    await session_service.delete_session(session_id)

    log_business_event("session_deleted", request, session_id=session_id)

    response = MessageResponse(message="Court session deleted successfully")
    log_route_exit(request, response)
    return response


@router.post(
    "/sessions/{session_id}/start",
    response_model=SessionResponse,
    summary="Start Court Session"
)
async def start_session(
    request: Request,
    session_id: str,
    session_service: SessionService = Depends(get_session_service)
) -> SessionResponse:
    log_route_entry(request, session_id=session_id)

    session = await session_service.start_session(session_id)

    log_business_event(
        "session_started",
        request,
        session_id=session_id,
        docket_size=len(session.docket)
    )

    response = SessionResponse.from_domain(session)
    log_route_exit(request, response)
    return response


@router.post(
    "/sessions/{session_id}/end",
    response_model=SessionEndResponse,
    summary="End Court Session",
    description=(
        "Resolve every pending or active docket entry as unresolved and return "
        "those cases to scheduled. The session completes when nothing was left "
        "unresolved and is cancelled otherwise."
    )
)
async def end_session(
    request: Request,
    session_id: str,
    session_service: SessionService = Depends(get_session_service)
) -> SessionEndResponse:
    log_route_entry(request, session_id=session_id)

    result = await session_service.end_session(session_id)

    log_business_event(
        "session_ended",
        request,
        session_id=session_id,
        status=result.session.status.value,
        unresolved_count=result.unresolved_count
    )

    response = SessionEndResponse(
        unresolved_count=result.unresolved_count,
        status=result.session.status
    )
    log_route_exit(request, response)
    return response


@router.post(
    "/sessions/{session_id}/docket/{case_id}/activate",
    response_model=SessionResponse,
    summary="Activate Docket Entry",
    description=(
        "Make a case the active docket entry. The previously active entry is "
        "completed, or put back to pending when ``skip`` is true."
    )
)
async def activate_docket_entry(
    request: Request,
    session_id: str,
    case_id: str,
    skip: bool = Query(False, description="Return the previous entry to pending"),
    session_service: SessionService = Depends(get_session_service)
) -> SessionResponse:
    log_route_entry(request, session_id=session_id, case_id=case_id, skip=skip)

    session = await session_service.activate_entry(session_id, case_id, skip=skip)

    log_business_event(
        "docket_entry_activated",
        request,
        session_id=session_id,
        case_id=case_id,
        skip=skip
    )

    response = SessionResponse.from_domain(session)
    log_route_exit(request, response)
    return response


@router.post(
    "/sessions/{session_id}/docket/{case_id}/complete",
    response_model=SessionResponse,
    summary="Complete Docket Entry"
)
async def complete_docket_entry(
    request: Request,
    session_id: str,
    case_id: str,
    session_service: SessionService = Depends(get_session_service)
) -> SessionResponse:
    log_route_entry(request, session_id=session_id, case_id=case_id)

    session = await session_service.complete_entry(session_id, case_id)

    log_business_event(
        "docket_entry_completed",
        request,
        session_id=session_id,
        case_id=case_id
    )

    response = SessionResponse.from_domain(session)
    log_route_exit(request, response)
    return response
