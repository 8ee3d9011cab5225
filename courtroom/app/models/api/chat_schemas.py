"""Pydantic API schemas for the court session chat log."""

from datetime import datetime
from typing import List

from pydantic import BaseModel, ConfigDict, Field

from courtroom.app.core.pagination import Page
from courtroom.app.models.domain.chat import ChatMessage, ChatSender


class ChatPostRequest(BaseModel):
    """Schema for posting a chat message."""

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "userID": "user-42",
                "userName": "Judge Rivera",
                "role": "judge",
                "message": "Court is now in session."
            }
        }
    )

    user_id: str = Field(..., alias="userID", min_length=1)
    user_name: str = Field("", alias="userName")
    role: str = ""
    message: str = Field(..., description="Message text")

    def sender(self) -> ChatSender:
        return ChatSender(user_id=self.user_id, user_name=self.user_name, role=self.role)


class ChatMessageResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    session_id: str = Field(..., alias="sessionID")
    user_id: str = Field(..., alias="userID")
    user_name: str = Field("", alias="userName")
    role: str = ""
    message: str
    created_at: datetime = Field(..., alias="createdAt")

    @classmethod
    def from_domain(cls, message: ChatMessage) -> "ChatMessageResponse":
        return cls(
            id=message.message_id,
            session_id=message.session_id,
            user_id=message.sender.user_id,
            user_name=message.sender.user_name,
            role=message.sender.role,
            message=message.content,
            created_at=message.created_at
        )


class ChatPostResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str = "Chat message posted"
    chat_message: ChatMessageResponse = Field(..., alias="chatMessage")


class ChatListResponse(BaseModel):
    """Schema for a page of chat messages, oldest first."""

    model_config = ConfigDict(populate_by_name=True)

    data: List[ChatMessageResponse]
    page: int = Field(..., ge=0)
    limit: int = Field(..., ge=1)
    total_count: int = Field(..., alias="totalCount", ge=0)
    total_pages: int = Field(..., alias="totalPages", ge=0)
    has_next: bool = Field(..., alias="hasNext")
    has_prev: bool = Field(..., alias="hasPrev")

    @classmethod
    def from_page(cls, page: Page[ChatMessage]) -> "ChatListResponse":
        return cls(
            data=[ChatMessageResponse.from_domain(m) for m in page.items],
            page=page.page,
            limit=page.limit,
            total_count=page.total_count,
            total_pages=page.total_pages,
            has_next=page.has_next,
            has_prev=page.has_prev
        )
