"""
MongoDB repository for court session chat messages.

Messages are stored flat in their own collection, keyed by ``sessionID``.
The repository only inserts and reads; stored messages are never modified.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorCollection, AsyncIOMotorDatabase
from pymongo import ASCENDING

from courtroom.app.core.database import get_mongodb_database
from courtroom.app.core.exceptions import raise_database_error
from courtroom.app.core.pagination import Page, PageRequest, paginate
from courtroom.app.models.domain.chat import ChatMessage, ChatSender
from courtroom.app.utils.logging import (
    database_logger,
    get_logger,
    performance_context
)
from courtroom.config.settings import Settings, get_settings

logger = get_logger(__name__)


class ChatRepository:
    """MongoDB repository for the append-only chat log."""

    def __init__(
        self,
        database: Optional[AsyncIOMotorDatabase] = None,
        settings: Optional[Settings] = None
    ):
        settings = settings or get_settings()
        self._db = database
        self._collection: Optional[AsyncIOMotorCollection] = None
        self._collection_name = settings.database.chat_collection

    async def _get_collection(self) -> AsyncIOMotorCollection:
        if self._collection is None:
            if self._db is None:
                self._db = await get_mongodb_database()
            self._collection = self._db[self._collection_name]
        return self._collection

    async def append_message(self, message: ChatMessage) -> None:
        """Insert a new chat message."""
        collection = await self._get_collection()

        try:
            with performance_context("mongodb_append_chat", session_id=message.session_id):
                await collection.insert_one(self._message_to_document(message))

                database_logger.query_executed(
                    database_type="mongodb",
                    operation="insert_one",
                    collection=self._collection_name,
                    result_count=1
                )

        except Exception as e:
            raise_database_error(
                f"Failed to store chat message for session {message.session_id}: {e}",
                database_type="mongodb",
                operation="append_message",
                collection_name=self._collection_name
            )

    async def list_messages(self, session_id: str, page_request: PageRequest) -> Page[ChatMessage]:
        """List a session's messages oldest first, with ties broken by insertion id."""
        collection = await self._get_collection()
        query = {"sessionID": session_id}

        async def find_page(skip: int, limit: int) -> List[ChatMessage]:
            try:
                cursor = (
                    collection.find(query)
                    .sort([("createdAt", ASCENDING), ("_id", ASCENDING)])
                    .skip(skip)
                    .limit(limit)
                )
                documents = await cursor.to_list(length=limit)
            except Exception as e:
                raise_database_error(
                    f"Failed to list chat for session {session_id}: {e}",
                    database_type="mongodb",
                    operation="list_messages",
                    collection_name=self._collection_name
                )
            database_logger.query_executed(
                database_type="mongodb",
                operation="find",
                collection=self._collection_name,
                result_count=len(documents)
            )
            return [self._document_to_message(doc) for doc in documents]

        async def count_total() -> int:
            return await collection.count_documents(query)

        with performance_context(
            "mongodb_list_chat",
            session_id=session_id,
            page=page_request.page,
            limit=page_request.limit
        ):
            return await paginate(find_page, count_total, page_request, operation="list_chat")

    @staticmethod
    def _message_to_document(message: ChatMessage) -> Dict[str, Any]:
        return {
            "_id": ObjectId(message.message_id),
            "sessionID": message.session_id,
            "userID": message.sender.user_id,
            "userName": message.sender.user_name,
            "role": message.sender.role,
            "message": message.content,
            "createdAt": message.created_at,
        }

    @staticmethod
    def _document_to_message(doc: Dict[str, Any]) -> ChatMessage:
        created_at = doc.get("createdAt")
        if not isinstance(created_at, datetime):
            # Untimestamped messages fall back to the id's creation time
            created_at = ObjectId(doc["_id"]).generation_time
        elif created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        return ChatMessage(
            message_id=str(doc["_id"]),
            session_id=doc.get("sessionID", ""),
            sender=ChatSender(
                user_id=doc.get("userID") or "",
                user_name=doc.get("userName") or "",
                role=doc.get("role") or ""
            ),
            content=doc.get("message") or "",
            created_at=created_at
        )
