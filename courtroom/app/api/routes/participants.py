"""
Participant Roster API Routes

Joining is idempotent per user: joining again replaces the earlier entry.
Leaving when not on the roster succeeds without changing anything.
"""

from fastapi import APIRouter, Depends, Request

from courtroom.app.api.deps import get_roster_service
from courtroom.app.models.api.roster_schemas import ParticipantJoinRequest
from courtroom.app.models.api.session_schemas import MessageResponse, ParticipantResponse
from courtroom.app.services.roster_service import RosterService
from courtroom.app.utils.logging import log_business_event, log_route_entry, log_route_exit

router = APIRouter(tags=["participants"])


@router.post(
    "/sessions/{session_id}/participants",
    response_model=ParticipantResponse,
    summary="Join Court Session"
)
async def join_session(
    request: Request,
    session_id: str,
    join_request: ParticipantJoinRequest,
    roster_service: RosterService = Depends(get_roster_service)
) -> ParticipantResponse:
    log_route_entry(request, session_id=session_id, user_id=join_request.user_id)

    participant = await roster_service.join(session_id, join_request.to_domain())

    log_business_event(
        "participant_joined",
        request,
        user_id=participant.user_id,
        session_id=session_id,
        role=participant.role
    )

    response = ParticipantResponse.from_domain(participant)
    log_route_exit(request, response)
    return response


@router.delete(
    "/sessions/{session_id}/participants/{user_id}",
    response_model=MessageResponse,
    summary="Leave Court Session"
)
async def leave_session(
    request: Request,
    session_id: str,
    user_id: str,
    roster_service: RosterService = Depends(get_roster_service)
) -> MessageResponse:
    log_route_entry(request, session_id=session_id, user_id=user_id)

    was_member = await roster_service.leave(session_id, user_id)

    log_business_event(
        "participant_left",
        request,
        user_id=user_id,
        session_id=session_id,
        was_member=was_member
    )

    response = MessageResponse(message="Left court session")
    log_route_exit(request, response)
    return response
