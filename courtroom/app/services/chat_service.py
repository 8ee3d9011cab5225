"""
Chat Log service.

Messages are appended with a server-assigned id and timestamp and are never
changed afterwards. Listing reads oldest first, paginated independently of
the session itself.
"""

from datetime import datetime, timezone
from typing import Optional

from bson import ObjectId

from courtroom.app.core.exceptions import raise_session_not_found
from courtroom.app.core.pagination import Page, PageRequest
from courtroom.app.models.domain.chat import ChatMessage, ChatSender
from courtroom.app.repositories.mongodb.chat_repository import ChatRepository
from courtroom.app.repositories.mongodb.session_repository import SessionRepository
from courtroom.app.utils.decorators import async_timeout
from courtroom.app.utils.logging import get_logger
from courtroom.app.utils.validators import validate_object_id
from courtroom.config.settings import Settings, get_settings

logger = get_logger(__name__)


class ChatService:
    """Append-only chat scoped to one court session."""

    def __init__(
        self,
        chat_repository: Optional[ChatRepository] = None,
        session_repository: Optional[SessionRepository] = None,
        settings: Optional[Settings] = None
    ):
        self.settings = settings or get_settings()
        self.chat_repository = chat_repository or ChatRepository(settings=self.settings)
        self.session_repository = session_repository or SessionRepository(settings=self.settings)

    @async_timeout()
    async def post_message(self, session_id: str, sender: ChatSender, content: str) -> ChatMessage:
        """
        Append a message to a session's chat.

        Raises:
            ValidationError: Malformed session id, or empty message
            SessionManagementError: Session does not exist
        """
        validate_object_id(session_id, field="sessionID")
        text = ChatMessage.validate_content(content)

        session = await self.session_repository.get_session_by_id(session_id)
        if session is None:
            raise_session_not_found(session_id)

        message = ChatMessage(
            message_id=str(ObjectId()),
            session_id=session_id,
            sender=sender,
            content=text,
            created_at=datetime.now(timezone.utc)
        )
        await self.chat_repository.append_message(message)

        logger.info(
            "Chat message posted",
            session_id=session_id,
            message_id=message.message_id,
            user_id=sender.user_id
        )
        return message

    @async_timeout()
    async def list_messages(self, session_id: str, page: int = 0, limit: int = 0) -> Page[ChatMessage]:
        """List a session's messages, oldest first."""
        validate_object_id(session_id, field="sessionID")
        page_request = PageRequest.normalized(
            page, limit, self.settings.pagination.chat_default_limit
        )
        return await self.chat_repository.list_messages(session_id, page_request)
