"""
Docket domain model.

A docket is the ordered list of cases scheduled for a court session. Order
is the list order; there is no separate position field. Every transition
builds a complete replacement docket so the session can persist it in a
single write.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Iterable, Iterator, List, Mapping, Optional, Tuple

from courtroom.app.core.exceptions import raise_validation_error
from courtroom.app.models.domain.case import CaseSnapshot


class DocketEntryStatus(str, Enum):
    """Resolution status of one case slot on a docket."""

    PENDING = "pending"
    ACTIVE = "active"
    COMPLETED = "completed"
    UNRESOLVED = "unresolved"

    @property
    def is_open(self) -> bool:
        """Open entries still need to be heard."""
        return self in (DocketEntryStatus.PENDING, DocketEntryStatus.ACTIVE)


@dataclass(frozen=True)
class DocketEntry:
    """One case slot on a session's docket."""

    case_id: str
    snapshot: CaseSnapshot = field(default_factory=CaseSnapshot.blank)
    status: DocketEntryStatus = DocketEntryStatus.PENDING

    def with_status(self, status: DocketEntryStatus) -> "DocketEntry":
        return replace(self, status=status)

    def with_snapshot(self, snapshot: CaseSnapshot) -> "DocketEntry":
        return replace(self, snapshot=snapshot)


class Docket:
    """
    Ordered, immutable sequence of docket entries.

    Invariants checked when a docket is built from submitted entries:
    - every entry names a case
    - a case appears at most once
    - at most one entry is ``active``

    Stored dockets are rebuilt with ``restore`` and are not re-checked.
    Transitions only maintain the single-active rule.
    """

    def __init__(self, entries: Optional[Iterable[DocketEntry]] = None):
        self._entries: Tuple[DocketEntry, ...] = tuple(entries or ())
        self._validate()

    @classmethod
    def restore(cls, entries: Iterable[DocketEntry]) -> "Docket":
        """Rebuild a stored docket without re-checking invariants."""
        docket = cls.__new__(cls)
        docket._entries = tuple(entries)
        return docket

    def _validate(self) -> None:
        seen = set()
        for entry in self._entries:
            if not entry.case_id:
                raise_validation_error("docket entry is missing a case id", field="docket")
            if entry.case_id in seen:
                raise_validation_error(
                    f"case {entry.case_id} appears more than once on the docket",
                    field="docket",
                    value=entry.case_id
                )
            seen.add(entry.case_id)

        active = [e.case_id for e in self._entries if e.status == DocketEntryStatus.ACTIVE]
        if len(active) > 1:
            raise_validation_error(
                "at most one docket entry may be active",
                field="docket",
                value=",".join(active)
            )

    @property
    def entries(self) -> Tuple[DocketEntry, ...]:
        return self._entries

    def __iter__(self) -> Iterator[DocketEntry]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, case_id: object) -> bool:
        return any(entry.case_id == case_id for entry in self._entries)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Docket):
            return NotImplemented
        return self._entries == other._entries

    def __repr__(self) -> str:
        return f"Docket({[(e.case_id, e.status.value) for e in self._entries]})"

    def case_ids(self) -> List[str]:
        return [entry.case_id for entry in self._entries]

    def get(self, case_id: str) -> Optional[DocketEntry]:
        for entry in self._entries:
            if entry.case_id == case_id:
                return entry
        return None

    @property
    def active_entry(self) -> Optional[DocketEntry]:
        for entry in self._entries:
            if entry.status == DocketEntryStatus.ACTIVE:
                return entry
        return None

    def activate(self, case_id: str, skip: bool = False) -> "Docket":
        """
        Make ``case_id`` the active entry.

        Any other active entry becomes ``completed``, or ``pending`` when
        ``skip`` is set so the court can come back to it later.
        """
        if case_id not in self:
            raise KeyError(case_id)

        previous_status = DocketEntryStatus.PENDING if skip else DocketEntryStatus.COMPLETED
        updated = []
        activated = False
        for entry in self._entries:
            if entry.case_id == case_id and not activated:
                updated.append(entry.with_status(DocketEntryStatus.ACTIVE))
                activated = True
            elif entry.status == DocketEntryStatus.ACTIVE:
                updated.append(entry.with_status(previous_status))
            else:
                updated.append(entry)
        return Docket.restore(updated)

    def complete(self, case_id: str) -> "Docket":
        """Mark the entry for ``case_id`` as completed."""
        if case_id not in self:
            raise KeyError(case_id)

        return Docket.restore(
            entry.with_status(DocketEntryStatus.COMPLETED) if entry.case_id == case_id else entry
            for entry in self._entries
        )

    def resolve_open(self) -> Tuple["Docket", List[DocketEntry]]:
        """
        Close out the docket at the end of a session.

        Returns the replacement docket, where every pending or active entry
        is now ``unresolved``, and the list of entries that were unresolved.
        """
        updated = []
        unresolved = []
        for entry in self._entries:
            if entry.status.is_open:
                entry = entry.with_status(DocketEntryStatus.UNRESOLVED)
                unresolved.append(entry)
            updated.append(entry)
        return Docket.restore(updated), unresolved

    def with_snapshots(self, snapshots: Mapping[str, CaseSnapshot]) -> "Docket":
        """Replace each entry's snapshot; cases missing from ``snapshots`` keep the one they have."""
        return Docket.restore(
            entry.with_snapshot(snapshots[entry.case_id]) if entry.case_id in snapshots else entry
            for entry in self._entries
        )

    def removed_case_ids(self, replacement: "Docket") -> List[str]:
        """Case ids on this docket that are absent from ``replacement``."""
        return [case_id for case_id in self.case_ids() if case_id not in replacement]
