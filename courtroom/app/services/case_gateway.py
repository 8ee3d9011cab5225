"""
Case Reference Gateway.

Read/write facade onto the external case records used by the session
lifecycle. Every call here is best-effort: a failed lookup or write is
logged and the session operation carries on. Lookups that fail produce no
snapshot, so the docket keeps whatever it already had. Case ids that are
not valid ObjectIds are skipped.
"""

import asyncio
from typing import Dict, Iterable, List, Optional

from courtroom.app.models.domain.case import CaseSnapshot, CaseStatus
from courtroom.app.repositories.mongodb.case_repository import CaseRepository
from courtroom.app.utils.decorators import best_effort
from courtroom.app.utils.logging import get_logger
from courtroom.app.utils.validators import is_object_id

logger = get_logger(__name__)


class CaseGateway:
    """Best-effort access to case snapshots, status and session back-references."""

    def __init__(self, case_repository: Optional[CaseRepository] = None):
        self.case_repository = case_repository or CaseRepository()

    def _usable(self, case_id: str, operation: str) -> bool:
        if is_object_id(case_id):
            return True
        logger.warning("Skipping case with malformed id", operation=operation, case_id=case_id)
        return False

    async def snapshot(self, case_id: str) -> Optional[CaseSnapshot]:
        """Current display fields of a case, or None if it cannot be read."""
        if not self._usable(case_id, "case_snapshot"):
            return None

        record = await best_effort(
            "case_snapshot",
            self.case_repository.find_by_id(case_id),
            case_id=case_id
        )
        if record is None:
            logger.debug("No snapshot available for case", case_id=case_id)
            return None
        return record.snapshot()

    async def snapshots(self, case_ids: Iterable[str]) -> Dict[str, CaseSnapshot]:
        """
        Snapshots for several cases, looked up concurrently.

        Cases that could not be read are absent from the result.
        """
        ids = list(dict.fromkeys(case_ids))
        results = await asyncio.gather(*(self.snapshot(case_id) for case_id in ids))
        return {
            case_id: snapshot
            for case_id, snapshot in zip(ids, results)
            if snapshot is not None
        }

    async def _update(
        self,
        operation: str,
        case_id: str,
        status: Optional[CaseStatus] = None,
        court_session_id: Optional[str] = None
    ) -> bool:
        if not self._usable(case_id, operation):
            return False

        matched = await best_effort(
            operation,
            self.case_repository.update_status_and_link(
                case_id,
                status=status,
                court_session_id=court_session_id
            ),
            default=False,
            case_id=case_id
        )
        if not matched:
            logger.debug("Case update had no effect", operation=operation, case_id=case_id)
        return bool(matched)

    async def link(self, case_id: str, session_id: str) -> bool:
        """Point a case's back-reference at ``session_id``."""
        return await self._update("case_link", case_id, court_session_id=session_id)

    async def unlink(self, case_id: str) -> bool:
        """Clear a case's back-reference."""
        return await self._update("case_unlink", case_id, court_session_id="")

    async def set_status(self, case_id: str, status: CaseStatus) -> bool:
        return await self._update("case_set_status", case_id, status=status)

    async def release(self, case_id: str) -> bool:
        """Return an unheard case to ``scheduled`` and clear its back-reference."""
        return await self._update(
            "case_release",
            case_id,
            status=CaseStatus.SCHEDULED,
            court_session_id=""
        )

    async def link_all(self, case_ids: Iterable[str], session_id: str) -> List[bool]:
        return list(await asyncio.gather(*(self.link(c, session_id) for c in case_ids)))

    async def unlink_all(self, case_ids: Iterable[str]) -> List[bool]:
        return list(await asyncio.gather(*(self.unlink(c) for c in case_ids)))

    async def set_status_all(self, case_ids: Iterable[str], status: CaseStatus) -> List[bool]:
        return list(await asyncio.gather(*(self.set_status(c, status) for c in case_ids)))

    async def release_all(self, case_ids: Iterable[str]) -> List[bool]:
        return list(await asyncio.gather(*(self.release(c) for c in case_ids)))
