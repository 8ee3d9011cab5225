"""
Domain types for the external court case records.

Case records are owned by the case management subsystem. Court sessions only
read their display fields and write two of their fields: ``status`` and the
``court_session_id`` back-reference.
"""

from dataclasses import dataclass
from enum import Enum


class CaseStatus(str, Enum):
    """Case statuses written by the court session lifecycle."""

    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"


@dataclass(frozen=True)
class CaseSnapshot:
    """
    Point-in-time copy of a case's display fields stored on a docket entry.

    Snapshots are only refreshed when a docket is (re)enriched on session
    create or edit. They are never updated when the case itself changes.
    """

    civilian_name: str = ""
    owner_user_id: str = ""

    @classmethod
    def blank(cls) -> "CaseSnapshot":
        return cls()


@dataclass
class CaseRecord:
    """The subset of an external case record visible to this service."""

    case_id: str
    civilian_name: str = ""
    user_id: str = ""
    status: str = ""
    court_session_id: str = ""

    def snapshot(self) -> CaseSnapshot:
        return CaseSnapshot(civilian_name=self.civilian_name, owner_user_id=self.user_id)
