"""
Court Session Service - Session Lifecycle Controller

Business logic for court sessions: create, read, list, edit, start, docket
activation, entry completion, end and delete.

Every operation re-reads the session from the store, applies the transition
on the ``CourtSession`` aggregate and writes the changed fields back in one
update. Case side effects (snapshots, status, back-references) go through
the ``CaseGateway`` only after the session write succeeded; they are
best-effort and never fail the request.

Cross-record rule maintained here: a case carries a session back-reference
exactly while it sits on the docket of a scheduled or in-progress session.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from bson import ObjectId

from courtroom.app.core.exceptions import raise_session_not_found, raise_validation_error
from courtroom.app.core.pagination import Page, PageRequest
from courtroom.app.models.api.session_schemas import (
    SessionCreateRequest,
    SessionUpdateRequest,
    docket_from_schema
)
from courtroom.app.models.domain.case import CaseStatus
from courtroom.app.models.domain.docket import Docket
from courtroom.app.models.domain.session import CourtSession
from courtroom.app.repositories.mongodb.session_repository import SessionRepository
from courtroom.app.services.case_gateway import CaseGateway
from courtroom.app.utils.decorators import async_timeout
from courtroom.app.utils.logging import get_logger, performance_context
from courtroom.app.utils.validators import parse_status_filter, validate_object_id
from courtroom.config.settings import Settings, get_settings

logger = get_logger(__name__)


@dataclass
class SessionEndResult:
    """Outcome of ending a session."""
    session: CourtSession
    unresolved_case_ids: List[str] = field(default_factory=list)

    @property
    def unresolved_count(self) -> int:
        return len(self.unresolved_case_ids)


class SessionService:
    """
    Business logic service for court session lifecycle management.

    Store writes are optimistic: the session revision read at the start of
    the request must still be current when it is written back, unless
    ``sessions.enforce_version_check`` is disabled.
    """

    def __init__(
        self,
        session_repository: Optional[SessionRepository] = None,
        case_gateway: Optional[CaseGateway] = None,
        settings: Optional[Settings] = None
    ):
        self.settings = settings or get_settings()
        self.session_repository = session_repository or SessionRepository(settings=self.settings)
        self.case_gateway = case_gateway or CaseGateway()

    async def _load(self, session_id: str) -> CourtSession:
        validate_object_id(session_id, field="sessionID")
        session = await self.session_repository.get_session_by_id(session_id)
        if session is None:
            raise_session_not_found(session_id)
        return session

    async def _save(self, session: CourtSession, *fields: str) -> None:
        version = await self.session_repository.update_session(
            session,
            fields,
            enforce_version=self.settings.sessions.enforce_version_check
        )
        session.mark_saved(version)

    async def _enrich(self, docket: Docket) -> Docket:
        """Refresh every entry's case snapshot from the case records."""
        snapshots = await self.case_gateway.snapshots(docket.case_ids())
        return docket.with_snapshots(snapshots)

    @async_timeout()
    async def create_session(self, request: SessionCreateRequest) -> CourtSession:
        """
        Create a scheduled session and link every docket case to it.

        Docket entries default to pending. Snapshots are read from the case
        records; where a case cannot be read the submitted values are kept.
        """
        docket = docket_from_schema(request.docket)

        with performance_context("session_create", community_id=request.community_id):
            docket = await self._enrich(docket)

            session = CourtSession.create_new(
                session_id=str(ObjectId()),
                community_id=request.community_id,
                department_id=request.department_id,
                title=request.title,
                judge_id=request.judge_id,
                judge_name=request.judge_name,
                scheduled_start=request.scheduled_start,
                scheduled_end=request.scheduled_end,
                docket=docket
            )

            await self.session_repository.create_session(session)
            await self.case_gateway.link_all(docket.case_ids(), session.session_id)

        logger.info(
            "Court session scheduled",
            session_id=session.session_id,
            community_id=session.community_id,
            docket_size=len(docket)
        )
        return session

    @async_timeout()
    async def get_session(self, session_id: str) -> CourtSession:
        """Get a session or raise not found."""
        return await self._load(session_id)

    @async_timeout()
    async def list_sessions(
        self,
        community_id: str,
        status: Optional[str] = None,
        department_id: Optional[str] = None,
        page: int = 0,
        limit: int = 0
    ) -> Page[CourtSession]:
        """
        List a community's sessions, newest first.

        Args:
            community_id: Community scope
            status: Comma-separated statuses, any of which may match
            department_id: Optional department scope
            page: Zero-based page; negative values read page 0
            limit: Page size; non-positive values use the configured default
        """
        if not community_id or not community_id.strip():
            raise_validation_error("community id is required", field="communityID")

        statuses = parse_status_filter(status)
        page_request = PageRequest.normalized(
            page, limit, self.settings.pagination.session_default_limit
        )

        return await self.session_repository.list_sessions(
            community_id.strip(),
            page_request,
            statuses=statuses,
            department_id=department_id or None
        )

    @async_timeout()
    async def edit_session(self, session_id: str, request: SessionUpdateRequest) -> CourtSession:
        """
        Apply a partial edit to a scheduled session.

        A replacement docket is fully re-enriched. Cases dropped from the
        docket are unlinked and every case on the new docket is linked.
        """
        session = await self._load(session_id)
        session.ensure_editable()

        new_docket: Optional[Docket] = None
        if request.docket is not None:
            new_docket = await self._enrich(docket_from_schema(request.docket))

        with performance_context("session_edit", session_id=session_id):
            removed = session.edit(
                title=request.title,
                scheduled_start=request.scheduled_start,
                scheduled_end=request.scheduled_end,
                docket=new_docket
            )

            fields = ["title", "scheduled_start", "scheduled_end"]
            if new_docket is not None:
                fields.append("docket")
            await self._save(session, *fields)

            if new_docket is not None:
                await self.case_gateway.unlink_all(removed)
                await self.case_gateway.link_all(new_docket.case_ids(), session.session_id)

        logger.info(
            "Court session edited",
            session_id=session_id,
            docket_replaced=new_docket is not None,
            unlinked_cases=len(removed)
        )
        return session

    @async_timeout()
    async def start_session(self, session_id: str) -> CourtSession:
        """Start a scheduled session and mark its docket cases in progress."""
        session = await self._load(session_id)

        with performance_context("session_start", session_id=session_id):
            session.start()
            await self._save(session, "status", "started_at")
            await self.case_gateway.set_status_all(
                session.docket.case_ids(),
                CaseStatus.IN_PROGRESS
            )

        logger.info("Court session started", session_id=session_id, docket_size=len(session.docket))
        return session

    @async_timeout()
    async def activate_entry(self, session_id: str, case_id: str, skip: bool = False) -> CourtSession:
        """
        Make ``case_id`` the active docket entry.

        The previously active entry becomes completed, or pending when
        ``skip`` is set.
        """
        validate_object_id(case_id, field="caseID")
        session = await self._load(session_id)

        previous = session.docket.active_entry
        session.activate_entry(case_id, skip=skip)
        await self._save(session, "docket")

        logger.info(
            "Docket entry activated",
            session_id=session_id,
            case_id=case_id,
            previous_case_id=previous.case_id if previous else None,
            skip=skip
        )
        return session

    @async_timeout()
    async def complete_entry(self, session_id: str, case_id: str) -> CourtSession:
        """Mark a docket entry completed once its case has been resolved."""
        validate_object_id(case_id, field="caseID")
        session = await self._load(session_id)

        session.complete_entry(case_id)
        await self._save(session, "docket")

        logger.info("Docket entry completed", session_id=session_id, case_id=case_id)
        return session

    @async_timeout()
    async def end_session(self, session_id: str) -> SessionEndResult:
        """
        End a session.

        Pending and active entries become unresolved and their cases go back
        to scheduled with no session back-reference. The session is
        completed when nothing was unresolved, cancelled otherwise. There is
        no status precondition: ending an already ended session re-applies
        the same rules.
        """
        session = await self._load(session_id)

        if session.is_closed:
            logger.warning(
                "Ending a court session that is already closed",
                session_id=session_id,
                status=session.status.value
            )

        with performance_context("session_end", session_id=session_id):
            unresolved = session.end()
            await self._save(session, "docket", "status", "ended_at")

            unresolved_ids = [entry.case_id for entry in unresolved]
            await self.case_gateway.release_all(unresolved_ids)

        logger.info(
            "Court session ended",
            session_id=session_id,
            status=session.status.value,
            unresolved_count=len(unresolved_ids)
        )
        return SessionEndResult(session=session, unresolved_case_ids=unresolved_ids)

    @async_timeout()
    async def delete_session(self, session_id: str) -> None:
        """Delete a scheduled session and unlink all of its cases."""
        session = await self._load(session_id)
        session.ensure_deletable()

        with performance_context("session_delete", session_id=session_id):
            await self.session_repository.delete_session(
                session,
                enforce_version=self.settings.sessions.enforce_version_check
            )
            await self.case_gateway.unlink_all(session.docket.case_ids())

        logger.info("Court session deleted", session_id=session_id)

