"""Court session chat API routes."""

from fastapi import APIRouter, Depends, Query, Request, status

from courtroom.app.api.deps import get_chat_service
from courtroom.app.models.api.chat_schemas import (
    ChatListResponse,
    ChatMessageResponse,
    ChatPostRequest,
    ChatPostResponse
)
from courtroom.app.services.chat_service import ChatService
from courtroom.app.utils.logging import log_business_event, log_route_entry, log_route_exit

router = APIRouter(tags=["chat"])


@router.get(
    "/sessions/{session_id}/chat",
    response_model=ChatListResponse,
    summary="List Chat Messages",
    description="Messages of one session, oldest first"
)
async def list_chat_messages(
    request: Request,
    session_id: str,
    page: int = Query(0, description="Zero-based page number"),
    limit: int = Query(0, description="Page size; defaults when not positive"),
    chat_service: ChatService = Depends(get_chat_service)
) -> ChatListResponse:
    log_route_entry(request, session_id=session_id, page=page, limit=limit)

    result = await chat_service.list_messages(session_id, page=page, limit=limit)

    response = ChatListResponse.from_page(result)
    log_route_exit(request, response, result_count=len(result.items), total_count=result.total_count)
    return response


@router.post(
    "/sessions/{session_id}/chat",
    response_model=ChatPostResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Post Chat Message"
)
async def post_chat_message(
    request: Request,
    session_id: str,
    chat_request: ChatPostRequest,
    chat_service: ChatService = Depends(get_chat_service)
) -> ChatPostResponse:
    log_route_entry(request, session_id=session_id, user_id=chat_request.user_id)

    message = await chat_service.post_message(session_id, chat_request.sender(), chat_request.message)

    log_business_event(
        "chat_message_posted",
        request,
        user_id=chat_request.user_id,
        session_id=session_id,
        message_id=message.message_id
    )

    response = ChatPostResponse(chat_message=ChatMessageResponse.from_domain(message))
    log_route_exit(request, response, status_code=status.HTTP_201_CREATED)
    return response
