"""
Participant Roster service.

Join and leave are read-modify-write on the whole participant list rather
than atomic array operators, so sessions stored with a null roster are
handled like an empty one.
"""

from typing import Optional

from courtroom.app.core.exceptions import raise_session_not_found
from courtroom.app.models.domain.session import CourtSession, SessionParticipant
from courtroom.app.repositories.mongodb.session_repository import SessionRepository
from courtroom.app.utils.decorators import async_timeout
from courtroom.app.utils.logging import get_logger
from courtroom.app.utils.validators import validate_object_id
from courtroom.config.settings import Settings, get_settings

logger = get_logger(__name__)


class RosterService:
    """Idempotent membership of a court session, keyed by user id."""

    def __init__(
        self,
        session_repository: Optional[SessionRepository] = None,
        settings: Optional[Settings] = None
    ):
        self.settings = settings or get_settings()
        self.session_repository = session_repository or SessionRepository(settings=self.settings)

    async def _load(self, session_id: str) -> CourtSession:
        validate_object_id(session_id, field="sessionID")
        session = await self.session_repository.get_session_by_id(session_id)
        if session is None:
            raise_session_not_found(session_id)
        return session

    async def _save(self, session: CourtSession) -> None:
        version = await self.session_repository.update_session(
            session,
            ["participants"],
            enforce_version=self.settings.sessions.enforce_version_check
        )
        session.mark_saved(version)

    @async_timeout()
    async def join(self, session_id: str, participant: SessionParticipant) -> SessionParticipant:
        """
        Add a participant, replacing any earlier entry for the same user.

        Returns:
            The stored participant with its join time
        """
        session = await self._load(session_id)
        joined = session.join(participant)
        await self._save(session)

        logger.info(
            "Participant joined court session",
            session_id=session_id,
            user_id=joined.user_id,
            role=joined.role,
            participant_count=len(session.participants)
        )
        return joined

    @async_timeout()
    async def leave(self, session_id: str, user_id: str) -> bool:
        """
        Remove a participant. Leaving when not a member changes nothing.

        Returns:
            Whether the user was on the roster
        """
        session = await self._load(session_id)
        removed = session.leave(user_id)
        await self._save(session)

        logger.info(
            "Participant left court session",
            session_id=session_id,
            user_id=user_id,
            was_member=removed
        )
        return removed
