"""
MongoDB access to the external court case records.

Case records belong to the case management subsystem. This repository reads
their display fields and writes only ``courtCase.status`` and the
``courtCase.courtSessionID`` back-reference.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorCollection, AsyncIOMotorDatabase

from courtroom.app.core.database import get_mongodb_database
from courtroom.app.core.exceptions import raise_database_error
from courtroom.app.models.domain.case import CaseRecord, CaseStatus
from courtroom.app.utils.logging import (
    database_logger,
    get_logger,
    performance_context
)
from courtroom.config.settings import Settings, get_settings

logger = get_logger(__name__)


class CaseRepository:
    """Narrow MongoDB repository over the ``courtcases`` collection."""

    def __init__(
        self,
        database: Optional[AsyncIOMotorDatabase] = None,
        settings: Optional[Settings] = None
    ):
        settings = settings or get_settings()
        self._db = database
        self._collection: Optional[AsyncIOMotorCollection] = None
        self._collection_name = settings.database.cases_collection

    async def _get_collection(self) -> AsyncIOMotorCollection:
        if self._collection is None:
            if self._db is None:
                self._db = await get_mongodb_database()
            self._collection = self._db[self._collection_name]
        return self._collection

    async def find_by_id(self, case_id: str) -> Optional[CaseRecord]:
        """
        Get a case record by id.

        Returns:
            The case, or None when it does not exist
        """
        collection = await self._get_collection()

        try:
            with performance_context("mongodb_get_court_case", case_id=case_id):
                document = await collection.find_one(
                    {"_id": ObjectId(case_id)},
                    projection={
                        "courtCase.civilianName": 1,
                        "courtCase.userID": 1,
                        "courtCase.status": 1,
                        "courtCase.courtSessionID": 1,
                    }
                )

                database_logger.query_executed(
                    database_type="mongodb",
                    operation="find_one",
                    collection=self._collection_name,
                    result_count=1 if document else 0
                )

                if not document:
                    return None
                return self._document_to_case(document)

        except Exception as e:
            raise_database_error(
                f"Failed to get court case {case_id}: {e}",
                database_type="mongodb",
                operation="find_by_id",
                collection_name=self._collection_name
            )

    async def update_status_and_link(
        self,
        case_id: str,
        status: Optional[CaseStatus] = None,
        court_session_id: Optional[str] = None
    ) -> bool:
        """
        Update a case's status and/or session back-reference in one write.

        Args:
            case_id: Case identifier
            status: New status, or None to leave it unchanged
            court_session_id: Session id to link, ``""`` to clear the link,
                or None to leave it unchanged

        Returns:
            True if a case matched
        """
        updates: Dict[str, Any] = {"courtCase.updatedAt": datetime.now(timezone.utc)}
        if status is not None:
            updates["courtCase.status"] = status.value
        if court_session_id is not None:
            updates["courtCase.courtSessionID"] = court_session_id

        collection = await self._get_collection()

        try:
            with performance_context(
                "mongodb_update_court_case",
                case_id=case_id,
                status=status.value if status else None,
                court_session_id=court_session_id
            ):
                result = await collection.update_one(
                    {"_id": ObjectId(case_id)},
                    {"$set": updates}
                )

                database_logger.query_executed(
                    database_type="mongodb",
                    operation="update_one",
                    collection=self._collection_name,
                    result_count=result.matched_count
                )

                return result.matched_count > 0

        except Exception as e:
            raise_database_error(
                f"Failed to update court case {case_id}: {e}",
                database_type="mongodb",
                operation="update_status_and_link",
                collection_name=self._collection_name
            )

    @staticmethod
    def _document_to_case(doc: Dict[str, Any]) -> CaseRecord:
        data = doc.get("courtCase") or {}
        return CaseRecord(
            case_id=str(doc["_id"]),
            civilian_name=data.get("civilianName") or "",
            user_id=data.get("userID") or "",
            status=data.get("status") or "",
            court_session_id=data.get("courtSessionID") or ""
        )
