"""Domain model for court session chat messages."""

from dataclasses import dataclass
from datetime import datetime

from courtroom.app.core.exceptions import ErrorCode, raise_validation_error

MAX_MESSAGE_LENGTH = 4000


@dataclass(frozen=True)
class ChatSender:
    """Who posted a message, as shown to other participants."""

    user_id: str
    user_name: str = ""
    role: str = ""


@dataclass(frozen=True)
class ChatMessage:
    """An append-only chat message. Never edited once stored."""

    message_id: str
    session_id: str
    sender: ChatSender
    content: str
    created_at: datetime

    @staticmethod
    def validate_content(content: str) -> str:
        """Return the trimmed content or raise for empty and oversized messages."""
        text = (content or "").strip()
        if not text:
            raise_validation_error(
                "chat message cannot be empty",
                field="message",
                error_code=ErrorCode.CHAT_MESSAGE_INVALID
            )
        if len(text) > MAX_MESSAGE_LENGTH:
            raise_validation_error(
                f"chat message exceeds {MAX_MESSAGE_LENGTH} characters",
                field="message",
                error_code=ErrorCode.CHAT_MESSAGE_INVALID
            )
        return text
