"""
MongoDB repository for court sessions.

Sessions are stored in the shared dispatch database using the document shape
the rest of the backend already reads:

    {
        "_id": ObjectId,
        "courtSession": {
            "communityID", "departmentID", "judgeID", "judgeName", "title",
            "docket": [{"courtCaseID", "civilianName", "userID", "order", "status"}],
            "status",
            "participants": [{"userID", "userName", "role", "joinedAt"}],
            "scheduledStart", "scheduledEnd", "startedAt", "endedAt",
            "createdAt", "updatedAt"
        },
        "__v": int
    }

``__v`` is the document revision used for optimistic concurrency. Documents
written before revisions existed are read as revision 0.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Type, TypeVar

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorCollection, AsyncIOMotorDatabase
from pymongo import DESCENDING

from courtroom.app.core.database import get_mongodb_database
from courtroom.app.core.exceptions import (
    BaseCustomException,
    raise_database_error,
    raise_session_not_found,
    raise_version_conflict
)
from courtroom.app.core.pagination import Page, PageRequest, paginate
from courtroom.app.models.domain.case import CaseSnapshot
from courtroom.app.models.domain.docket import Docket, DocketEntry, DocketEntryStatus
from courtroom.app.models.domain.session import (
    CourtSession,
    SessionParticipant,
    SessionStatus
)
from courtroom.app.utils.logging import (
    database_logger,
    get_logger,
    performance_context
)
from courtroom.config.settings import Settings, get_settings

logger = get_logger(__name__)

VERSION_FIELD = "__v"
ROOT = "courtSession"
StatusT = TypeVar("StatusT", bound=Enum)

# Domain attribute -> stored field under "courtSession"
SESSION_FIELDS = {
    "community_id": "communityID",
    "department_id": "departmentID",
    "judge_id": "judgeID",
    "judge_name": "judgeName",
    "title": "title",
    "docket": "docket",
    "status": "status",
    "participants": "participants",
    "scheduled_start": "scheduledStart",
    "scheduled_end": "scheduledEnd",
    "started_at": "startedAt",
    "ended_at": "endedAt",
    "created_at": "createdAt",
    "updated_at": "updatedAt",
}


def build_session_filter(
    community_id: str,
    statuses: Optional[Iterable[SessionStatus]] = None,
    department_id: Optional[str] = None
) -> Dict[str, Any]:
    """Filter for sessions in a community, optionally narrowed by status (OR) and department."""
    query: Dict[str, Any] = {f"{ROOT}.communityID": community_id}

    status_values = [s.value for s in statuses or []]
    if len(status_values) == 1:
        query[f"{ROOT}.status"] = status_values[0]
    elif status_values:
        query[f"{ROOT}.status"] = {"$in": status_values}

    if department_id:
        query[f"{ROOT}.departmentID"] = department_id

    return query


def _as_datetime(value: Any) -> Optional[datetime]:
    """Stored timestamps may be missing, zero-valued or naive."""
    if not isinstance(value, datetime) or value.year <= 1:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _as_status(enum_type: Type[StatusT], value: Any, default: StatusT, **context: Any) -> StatusT:
    """Stored statuses outside the known set are read as ``default``."""
    if not value:
        return default
    try:
        return enum_type(value)
    except ValueError:
        logger.warning(
            "Unknown stored status, using default",
            status_type=enum_type.__name__,
            stored_value=value,
            default=default.value,
            **context
        )
        return default


class SessionRepository:
    """
    MongoDB repository for court session aggregates.

    Every read returns a fresh ``CourtSession``; nothing is cached between
    calls.
    """

    def __init__(
        self,
        database: Optional[AsyncIOMotorDatabase] = None,
        settings: Optional[Settings] = None
    ):
        settings = settings or get_settings()
        self._db = database
        self._collection: Optional[AsyncIOMotorCollection] = None
        self._collection_name = settings.database.sessions_collection

    async def _get_collection(self) -> AsyncIOMotorCollection:
        """Get MongoDB collection with lazy initialization."""
        if self._collection is None:
            if self._db is None:
                self._db = await get_mongodb_database()
            self._collection = self._db[self._collection_name]
        return self._collection

    async def create_session(self, session: CourtSession) -> str:
        """
        Insert a new session document.

        Returns:
            The session id
        """
        collection = await self._get_collection()

        try:
            with performance_context("mongodb_create_session", session_id=session.session_id):
                document = self._session_to_document(session)
                result = await collection.insert_one(document)

                database_logger.query_executed(
                    database_type="mongodb",
                    operation="insert_one",
                    collection=self._collection_name,
                    result_count=1 if result.inserted_id else 0
                )

                logger.info(
                    "Court session created",
                    session_id=session.session_id,
                    community_id=session.community_id,
                    docket_size=len(session.docket)
                )
                return session.session_id

        except Exception as e:
            raise_database_error(
                f"Failed to create court session {session.session_id}: {e}",
                database_type="mongodb",
                operation="create_session",
                collection_name=self._collection_name
            )

    async def get_session_by_id(self, session_id: str) -> Optional[CourtSession]:
        """
        Get a session by its id.

        Returns:
            The session, or None when no document matches
        """
        collection = await self._get_collection()

        try:
            with performance_context("mongodb_get_session", session_id=session_id):
                document = await collection.find_one({"_id": ObjectId(session_id)})

                database_logger.query_executed(
                    database_type="mongodb",
                    operation="find_one",
                    collection=self._collection_name,
                    result_count=1 if document else 0
                )

                if not document:
                    return None
                return self._document_to_session(document)

        except Exception as e:
            raise_database_error(
                f"Failed to get court session {session_id}: {e}",
                database_type="mongodb",
                operation="get_session_by_id",
                collection_name=self._collection_name
            )

    async def list_sessions(
        self,
        community_id: str,
        page_request: PageRequest,
        statuses: Optional[List[SessionStatus]] = None,
        department_id: Optional[str] = None
    ) -> Page[CourtSession]:
        """
        List a community's sessions, newest first.

        The page and the total count are read concurrently. A failed count
        degrades to the page length; a failed page read raises.
        """
        collection = await self._get_collection()
        query = build_session_filter(community_id, statuses, department_id)

        async def find_page(skip: int, limit: int) -> List[CourtSession]:
            try:
                cursor = collection.find(query).sort("_id", DESCENDING).skip(skip).limit(limit)
                documents = await cursor.to_list(length=limit)
            except Exception as e:
                raise_database_error(
                    f"Failed to list court sessions for community {community_id}: {e}",
                    database_type="mongodb",
                    operation="list_sessions",
                    collection_name=self._collection_name
                )
            database_logger.query_executed(
                database_type="mongodb",
                operation="find",
                collection=self._collection_name,
                result_count=len(documents)
            )
            return [self._document_to_session(doc) for doc in documents]

        async def count_total() -> int:
            total = await collection.count_documents(query)
            database_logger.query_executed(
                database_type="mongodb",
                operation="count_documents",
                collection=self._collection_name,
                result_count=total
            )
            return total

        with performance_context(
            "mongodb_list_sessions",
            community_id=community_id,
            page=page_request.page,
            limit=page_request.limit
        ):
            return await paginate(find_page, count_total, page_request, operation="list_sessions")

    async def update_session(
        self,
        session: CourtSession,
        fields: Iterable[str],
        enforce_version: bool = True
    ) -> int:
        """
        Write the named session fields back in one update.

        Args:
            session: Session holding the new values, read at ``session.version``
            fields: Domain attribute names to write (keys of ``SESSION_FIELDS``)
            enforce_version: Reject the write if the stored revision moved on

        Returns:
            The new revision number

        Raises:
            SessionManagementError: Not found, or revision conflict
            DatabaseError: If the update fails
        """
        collection = await self._get_collection()
        document = self._session_to_document(session)[ROOT]

        updates = {}
        for name in set(fields) | {"updated_at"}:
            stored = SESSION_FIELDS[name]
            updates[f"{ROOT}.{stored}"] = document[stored]

        query = self._revision_filter(session, enforce_version)

        try:
            with performance_context(
                "mongodb_update_session",
                session_id=session.session_id,
                fields=sorted(updates)
            ):
                result = await collection.update_one(
                    query,
                    {"$set": updates, "$inc": {VERSION_FIELD: 1}}
                )

                database_logger.query_executed(
                    database_type="mongodb",
                    operation="update_one",
                    collection=self._collection_name,
                    result_count=result.matched_count
                )

                if result.matched_count == 0:
                    await self._raise_missing_or_conflict(collection, session)

                return session.version + 1

        except BaseCustomException:
            raise
        except Exception as e:
            raise_database_error(
                f"Failed to update court session {session.session_id}: {e}",
                database_type="mongodb",
                operation="update_session",
                collection_name=self._collection_name
            )

    async def delete_session(self, session: CourtSession, enforce_version: bool = True) -> None:
        """
        Delete a session document.

        Raises:
            SessionManagementError: Not found, or revision conflict
            DatabaseError: If the delete fails
        """
        collection = await self._get_collection()
        query = self._revision_filter(session, enforce_version)

        try:
            with performance_context("mongodb_delete_session", session_id=session.session_id):
                result = await collection.delete_one(query)

                database_logger.query_executed(
                    database_type="mongodb",
                    operation="delete_one",
                    collection=self._collection_name,
                    result_count=result.deleted_count
                )

                if result.deleted_count == 0:
                    await self._raise_missing_or_conflict(collection, session)

                logger.info("Court session deleted", session_id=session.session_id)

        except BaseCustomException:
            raise
        except Exception as e:
            raise_database_error(
                f"Failed to delete court session {session.session_id}: {e}",
                database_type="mongodb",
                operation="delete_session",
                collection_name=self._collection_name
            )

    @staticmethod
    def _revision_filter(session: CourtSession, enforce_version: bool) -> Dict[str, Any]:
        query: Dict[str, Any] = {"_id": ObjectId(session.session_id)}
        if not enforce_version:
            return query
        if session.version == 0:
            query["$or"] = [
                {VERSION_FIELD: 0},
                {VERSION_FIELD: {"$exists": False}},
            ]
        else:
            query[VERSION_FIELD] = session.version
        return query

    async def _raise_missing_or_conflict(
        self,
        collection: AsyncIOMotorCollection,
        session: CourtSession
    ) -> None:
        exists = await collection.count_documents({"_id": ObjectId(session.session_id)}, limit=1)
        if not exists:
            raise_session_not_found(session.session_id)

        logger.warning(
            "Court session revision conflict",
            session_id=session.session_id,
            expected_version=session.version
        )
        raise_version_conflict(session.session_id, session.version)

    def _session_to_document(self, session: CourtSession) -> Dict[str, Any]:
        """Convert a CourtSession domain object to a MongoDB document."""
        return {
            "_id": ObjectId(session.session_id),
            ROOT: {
                "communityID": session.community_id,
                "departmentID": session.department_id,
                "judgeID": session.judge_id,
                "judgeName": session.judge_name,
                "title": session.title,
                "docket": [
                    {
                        "courtCaseID": entry.case_id,
                        "civilianName": entry.snapshot.civilian_name,
                        "userID": entry.snapshot.owner_user_id,
                        # Mirrors list position for readers that sort on it
                        "order": index,
                        "status": entry.status.value,
                    }
                    for index, entry in enumerate(session.docket)
                ],
                "status": session.status.value,
                "participants": [
                    {
                        "userID": p.user_id,
                        "userName": p.user_name,
                        "role": p.role,
                        "joinedAt": p.joined_at,
                    }
                    for p in session.participants
                ],
                "scheduledStart": session.scheduled_start,
                "scheduledEnd": session.scheduled_end,
                "startedAt": session.started_at,
                "endedAt": session.ended_at,
                "createdAt": session.created_at,
                "updatedAt": session.updated_at,
            },
            VERSION_FIELD: session.version,
        }

    def _document_to_session(self, doc: Dict[str, Any]) -> CourtSession:
        """Convert a MongoDB document to a CourtSession domain object."""
        session_id = str(doc["_id"])
        data = doc.get(ROOT) or {}

        entries = [
            DocketEntry(
                case_id=item.get("courtCaseID") or "",
                snapshot=CaseSnapshot(
                    civilian_name=item.get("civilianName") or "",
                    owner_user_id=item.get("userID") or ""
                ),
                status=_as_status(
                    DocketEntryStatus,
                    item.get("status"),
                    DocketEntryStatus.PENDING,
                    session_id=session_id
                )
            )
            for item in data.get("docket") or []
        ]

        # Sessions created before rosters existed store null here
        participants = [
            SessionParticipant(
                user_id=item.get("userID", ""),
                user_name=item.get("userName") or "",
                role=item.get("role") or "",
                joined_at=_as_datetime(item.get("joinedAt"))
            )
            for item in data.get("participants") or []
        ]

        return CourtSession(
            session_id=session_id,
            community_id=data.get("communityID", ""),
            department_id=data.get("departmentID") or "",
            title=data.get("title") or "",
            judge_id=data.get("judgeID") or "",
            judge_name=data.get("judgeName") or "",
            scheduled_start=_as_datetime(data.get("scheduledStart")),
            scheduled_end=_as_datetime(data.get("scheduledEnd")),
            status=_as_status(
                SessionStatus,
                data.get("status"),
                SessionStatus.SCHEDULED,
                session_id=session_id
            ),
            docket=Docket.restore(entries),
            participants=participants,
            started_at=_as_datetime(data.get("startedAt")),
            ended_at=_as_datetime(data.get("endedAt")),
            created_at=_as_datetime(data.get("createdAt")),
            updated_at=_as_datetime(data.get("updatedAt")),
            version=doc.get(VERSION_FIELD, 0) or 0,
        )
