"""
Domain model for court sessions.

A court session is a scheduled block of court time with an ordered docket of
cases and a roster of participants. The session status drives what may
happen to it:

    scheduled --start--> in_progress --end--> completed | cancelled

Editing and deleting are only possible while the session is still
scheduled. Ending is allowed from any status.
"""

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Iterable, List, Optional

from courtroom.app.core.exceptions import (
    raise_docket_entry_not_found,
    raise_invalid_session_state,
    raise_validation_error
)
from courtroom.app.models.domain.docket import Docket, DocketEntry
from courtroom.app.utils.logging import get_logger

logger = get_logger(__name__)


class SessionStatus(str, Enum):
    """Court session lifecycle status."""

    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def holds_cases(self) -> bool:
        """Sessions in these statuses keep a back-reference on their docket's cases."""
        return self in (SessionStatus.SCHEDULED, SessionStatus.IN_PROGRESS)


class ParticipantRole(str, Enum):
    """Well-known participant roles. Other role strings are accepted as-is."""

    JUDGE = "judge"
    DEFENDANT = "defendant"
    SPECTATOR = "spectator"


@dataclass(frozen=True)
class SessionParticipant:
    """A user present in a court session. Unique per session by ``user_id``."""

    user_id: str
    user_name: str = ""
    role: str = ParticipantRole.SPECTATOR.value
    joined_at: Optional[datetime] = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CourtSession:
    """
    Court session aggregate.

    Every mutating method validates the current status first and then builds
    the full replacement state, so a failed precondition leaves the session
    untouched.
    """

    def __init__(
        self,
        session_id: str,
        community_id: str,
        department_id: str = "",
        title: str = "",
        judge_id: str = "",
        judge_name: str = "",
        scheduled_start: Optional[datetime] = None,
        scheduled_end: Optional[datetime] = None,
        status: SessionStatus = SessionStatus.SCHEDULED,
        docket: Optional[Docket] = None,
        participants: Optional[Iterable[SessionParticipant]] = None,
        started_at: Optional[datetime] = None,
        ended_at: Optional[datetime] = None,
        created_at: Optional[datetime] = None,
        updated_at: Optional[datetime] = None,
        version: int = 0
    ):
        self._session_id = session_id
        self._community_id = community_id
        self._department_id = department_id
        self._title = title
        self._judge_id = judge_id
        self._judge_name = judge_name
        self._scheduled_start = scheduled_start
        self._scheduled_end = scheduled_end
        self._status = status
        self._docket = docket if docket is not None else Docket()
        self._participants: List[SessionParticipant] = list(participants or [])
        self._started_at = started_at
        self._ended_at = ended_at

        now = _utcnow()
        self._created_at = created_at or now
        self._updated_at = updated_at or self._created_at
        self._version = version

    @classmethod
    def create_new(
        cls,
        session_id: str,
        community_id: str,
        department_id: str = "",
        title: str = "",
        judge_id: str = "",
        judge_name: str = "",
        scheduled_start: Optional[datetime] = None,
        scheduled_end: Optional[datetime] = None,
        docket: Optional[Docket] = None,
        now: Optional[datetime] = None
    ) -> "CourtSession":
        """Create a new session in ``scheduled`` status with an empty roster."""
        if not community_id or not community_id.strip():
            raise_validation_error("community id is required", field="communityID")
        cls._validate_schedule(scheduled_start, scheduled_end)

        now = now or _utcnow()
        return cls(
            session_id=session_id,
            community_id=community_id.strip(),
            department_id=department_id,
            title=title,
            judge_id=judge_id,
            judge_name=judge_name,
            scheduled_start=scheduled_start,
            scheduled_end=scheduled_end,
            status=SessionStatus.SCHEDULED,
            docket=docket,
            participants=[],
            created_at=now,
            updated_at=now,
        )

    @staticmethod
    def _validate_schedule(start: Optional[datetime], end: Optional[datetime]) -> None:
        if start is not None and end is not None and end < start:
            raise_validation_error(
                "scheduled end must not be before scheduled start",
                field="scheduledEnd",
                value=end.isoformat()
            )

    @property
    def session_id(self) -> str:
        return self._session_id

    @property
    def community_id(self) -> str:
        return self._community_id

    @property
    def department_id(self) -> str:
        return self._department_id

    @property
    def title(self) -> str:
        return self._title

    @property
    def judge_id(self) -> str:
        return self._judge_id

    @property
    def judge_name(self) -> str:
        return self._judge_name

    @property
    def scheduled_start(self) -> Optional[datetime]:
        return self._scheduled_start

    @property
    def scheduled_end(self) -> Optional[datetime]:
        return self._scheduled_end

    @property
    def status(self) -> SessionStatus:
        return self._status

    @property
    def docket(self) -> Docket:
        return self._docket

    @property
    def participants(self) -> List[SessionParticipant]:
        return list(self._participants)

    @property
    def started_at(self) -> Optional[datetime]:
        return self._started_at

    @property
    def ended_at(self) -> Optional[datetime]:
        return self._ended_at

    @property
    def created_at(self) -> datetime:
        return self._created_at

    @property
    def updated_at(self) -> datetime:
        return self._updated_at

    @property
    def version(self) -> int:
        """Revision of the stored document this instance was read from."""
        return self._version

    def mark_saved(self, version: int) -> None:
        """Record the revision the store assigned to the last successful write."""
        self._version = version

    @property
    def is_closed(self) -> bool:
        return self._status in (SessionStatus.COMPLETED, SessionStatus.CANCELLED)

    def _ensure_scheduled(self, action: str) -> None:
        if self._status != SessionStatus.SCHEDULED:
            raise_invalid_session_state(
                self._session_id,
                self._status.value,
                f"cannot {action} court session in {self._status.value} status; "
                f"session must be {SessionStatus.SCHEDULED.value}"
            )

    def _ensure_on_docket(self, case_id: str) -> None:
        if case_id not in self._docket:
            raise_docket_entry_not_found(self._session_id, case_id)

    def _touch(self, now: Optional[datetime] = None) -> None:
        self._updated_at = now or _utcnow()

    def edit(
        self,
        title: Optional[str] = None,
        scheduled_start: Optional[datetime] = None,
        scheduled_end: Optional[datetime] = None,
        docket: Optional[Docket] = None,
        now: Optional[datetime] = None
    ) -> List[str]:
        """
        Apply a partial edit to a scheduled session.

        Empty titles and missing values leave the current value in place.
        When ``docket`` is given it replaces the whole docket.

        Returns:
            Case ids that were on the old docket but not on the new one
        """
        self._ensure_scheduled("edit")

        new_start = scheduled_start if scheduled_start is not None else self._scheduled_start
        new_end = scheduled_end if scheduled_end is not None else self._scheduled_end
        self._validate_schedule(new_start, new_end)

        removed: List[str] = []
        if docket is not None:
            removed = self._docket.removed_case_ids(docket)
            self._docket = docket

        if title:
            self._title = title
        self._scheduled_start = new_start
        self._scheduled_end = new_end
        self._touch(now)

        logger.debug(
            "Court session edited",
            session_id=self._session_id,
            docket_replaced=docket is not None,
            removed_cases=len(removed)
        )
        return removed

    def start(self, now: Optional[datetime] = None) -> None:
        """Move a scheduled session to ``in_progress``."""
        self._ensure_scheduled("start")

        now = now or _utcnow()
        self._status = SessionStatus.IN_PROGRESS
        self._started_at = now
        self._touch(now)

    def activate_entry(self, case_id: str, skip: bool = False, now: Optional[datetime] = None) -> None:
        """Make ``case_id`` the single active docket entry."""
        self._ensure_on_docket(case_id)
        self._docket = self._docket.activate(case_id, skip=skip)
        self._touch(now)

    def complete_entry(self, case_id: str, now: Optional[datetime] = None) -> None:
        """Mark the docket entry for a resolved case as completed."""
        self._ensure_on_docket(case_id)
        self._docket = self._docket.complete(case_id)
        self._touch(now)

    def end(self, now: Optional[datetime] = None) -> List[DocketEntry]:
        """
        End the session.

        Every pending or active entry becomes ``unresolved``. The session is
        ``completed`` when nothing was left unresolved, ``cancelled``
        otherwise. No status precondition is enforced.

        Returns:
            The entries that were left unresolved
        """
        now = now or _utcnow()
        self._docket, unresolved = self._docket.resolve_open()
        self._status = SessionStatus.CANCELLED if unresolved else SessionStatus.COMPLETED
        self._ended_at = now
        self._touch(now)
        return unresolved

    def ensure_editable(self) -> None:
        self._ensure_scheduled("edit")

    def ensure_deletable(self) -> None:
        self._ensure_scheduled("delete")

    def join(self, participant: SessionParticipant, now: Optional[datetime] = None) -> SessionParticipant:
        """Add ``participant``, replacing any earlier entry for the same user."""
        if not participant.user_id:
            raise_validation_error("participant user id is required", field="userID")

        now = now or _utcnow()
        joined = replace(participant, joined_at=now)
        self._participants = [
            p for p in self._participants if p.user_id != participant.user_id
        ]
        self._participants.append(joined)
        self._touch(now)
        return joined

    def leave(self, user_id: str, now: Optional[datetime] = None) -> bool:
        """Remove ``user_id`` from the roster. Returns whether they were present."""
        remaining = [p for p in self._participants if p.user_id != user_id]
        removed = len(remaining) != len(self._participants)
        self._participants = remaining
        self._touch(now)
        return removed

    def __repr__(self) -> str:
        return (
            f"CourtSession(session_id='{self._session_id}', community_id='{self._community_id}', "
            f"status={self._status.value}, docket={len(self._docket)}, "
            f"participants={len(self._participants)})"
        )
