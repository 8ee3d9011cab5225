"""
Pydantic API schemas for court session endpoints.

Wire names follow the dispatch API's camelCase convention
(``communityID``, ``scheduledStart``, ``courtCaseID``...). Python attribute
names are snake_case; both are accepted on input.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from courtroom.app.core.pagination import Page
from courtroom.app.models.domain.case import CaseSnapshot
from courtroom.app.models.domain.docket import Docket, DocketEntry, DocketEntryStatus
from courtroom.app.models.domain.session import (
    CourtSession,
    SessionParticipant,
    SessionStatus
)


class DocketEntrySchema(BaseModel):
    """One docket entry as submitted on create or edit."""

    model_config = ConfigDict(populate_by_name=True)

    case_id: str = Field(
        ...,
        alias="courtCaseID",
        description="Identifier of the court case to hear",
        min_length=1
    )

    civilian_name: str = Field(
        "",
        alias="civilianName",
        description="Display name; replaced by the case record's value when it can be read"
    )

    owner_user_id: str = Field(
        "",
        alias="userID",
        description="Case owner; replaced by the case record's value when it can be read"
    )

    status: Optional[DocketEntryStatus] = Field(
        None,
        description="Entry status, defaults to pending"
    )

    @field_validator('case_id')
    @classmethod
    def strip_case_id(cls, v: str) -> str:
        return v.strip()

    def to_domain(self) -> DocketEntry:
        return DocketEntry(
            case_id=self.case_id,
            snapshot=CaseSnapshot(
                civilian_name=self.civilian_name,
                owner_user_id=self.owner_user_id
            ),
            status=self.status or DocketEntryStatus.PENDING
        )


def docket_from_schema(entries: List[DocketEntrySchema]) -> Docket:
    """Build a domain docket, preserving submission order."""
    return Docket(entry.to_domain() for entry in entries)


class SessionCreateRequest(BaseModel):
    """Schema for creating a court session."""

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "communityID": "64f1c0ffee0000000000c0de",
                "departmentID": "64f1c0ffee0000000000d0e5",
                "judgeID": "user-42",
                "judgeName": "Judge Rivera",
                "title": "Morning traffic court",
                "scheduledStart": "2026-03-02T09:00:00Z",
                "scheduledEnd": "2026-03-02T12:00:00Z",
                "docket": [{"courtCaseID": "64f1c0ffee00000000000001"}]
            }
        }
    )

    community_id: str = Field(..., alias="communityID", min_length=1)
    department_id: str = Field("", alias="departmentID")
    judge_id: str = Field("", alias="judgeID")
    judge_name: str = Field("", alias="judgeName")
    title: str = Field("", max_length=200)
    scheduled_start: Optional[datetime] = Field(None, alias="scheduledStart")
    scheduled_end: Optional[datetime] = Field(None, alias="scheduledEnd")
    docket: List[DocketEntrySchema] = Field(default_factory=list)


class SessionUpdateRequest(BaseModel):
    """
    Schema for editing a scheduled session.

    Omitted fields are left unchanged. An empty title is ignored. A docket,
    when given, replaces the whole docket in the submitted order.
    """

    model_config = ConfigDict(populate_by_name=True)

    title: Optional[str] = Field(None, max_length=200)
    scheduled_start: Optional[datetime] = Field(None, alias="scheduledStart")
    scheduled_end: Optional[datetime] = Field(None, alias="scheduledEnd")
    docket: Optional[List[DocketEntrySchema]] = None


class DocketEntryResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    case_id: str = Field(..., alias="courtCaseID")
    civilian_name: str = Field("", alias="civilianName")
    owner_user_id: str = Field("", alias="userID")
    status: DocketEntryStatus

    @classmethod
    def from_domain(cls, entry: DocketEntry) -> "DocketEntryResponse":
        return cls(
            case_id=entry.case_id,
            civilian_name=entry.snapshot.civilian_name,
            owner_user_id=entry.snapshot.owner_user_id,
            status=entry.status
        )


class ParticipantResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., alias="userID")
    user_name: str = Field("", alias="userName")
    role: str = ""
    joined_at: Optional[datetime] = Field(None, alias="joinedAt")

    @classmethod
    def from_domain(cls, participant: SessionParticipant) -> "ParticipantResponse":
        return cls(
            user_id=participant.user_id,
            user_name=participant.user_name,
            role=participant.role,
            joined_at=participant.joined_at
        )


class SessionResponse(BaseModel):
    """Schema for a court session in API responses."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    community_id: str = Field(..., alias="communityID")
    department_id: str = Field("", alias="departmentID")
    judge_id: str = Field("", alias="judgeID")
    judge_name: str = Field("", alias="judgeName")
    title: str = ""
    status: SessionStatus
    docket: List[DocketEntryResponse] = Field(default_factory=list)
    participants: List[ParticipantResponse] = Field(default_factory=list)
    scheduled_start: Optional[datetime] = Field(None, alias="scheduledStart")
    scheduled_end: Optional[datetime] = Field(None, alias="scheduledEnd")
    started_at: Optional[datetime] = Field(None, alias="startedAt")
    ended_at: Optional[datetime] = Field(None, alias="endedAt")
    created_at: datetime = Field(..., alias="createdAt")
    updated_at: datetime = Field(..., alias="updatedAt")
    version: int = Field(0, alias="__v", description="Document revision")

    @classmethod
    def from_domain(cls, session: CourtSession) -> "SessionResponse":
        return cls(
            id=session.session_id,
            community_id=session.community_id,
            department_id=session.department_id,
            judge_id=session.judge_id,
            judge_name=session.judge_name,
            title=session.title,
            status=session.status,
            docket=[DocketEntryResponse.from_domain(e) for e in session.docket],
            participants=[ParticipantResponse.from_domain(p) for p in session.participants],
            scheduled_start=session.scheduled_start,
            scheduled_end=session.scheduled_end,
            started_at=session.started_at,
            ended_at=session.ended_at,
            created_at=session.created_at,
            updated_at=session.updated_at,
            version=session.version
        )


class SessionListResponse(BaseModel):
    """Schema for a page of sessions."""

    model_config = ConfigDict(populate_by_name=True)

    data: List[SessionResponse]
    page: int = Field(..., ge=0)
    limit: int = Field(..., ge=1)
    total_count: int = Field(..., alias="totalCount", ge=0)
    total_pages: int = Field(..., alias="totalPages", ge=0)
    has_next: bool = Field(..., alias="hasNext")
    has_prev: bool = Field(..., alias="hasPrev")

    @classmethod
    def from_page(cls, page: Page[CourtSession]) -> "SessionListResponse":
        return cls(
            data=[SessionResponse.from_domain(s) for s in page.items],
            page=page.page,
            limit=page.limit,
            total_count=page.total_count,
            total_pages=page.total_pages,
            has_next=page.has_next,
            has_prev=page.has_prev
        )


class SessionCreatedResponse(BaseModel):
    message: str = "Court session created successfully"
    id: str


class MessageResponse(BaseModel):
    """Plain acknowledgement."""

    message: str


class SessionEndResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str = "Court session ended"
    unresolved_count: int = Field(..., alias="unresolvedCount", ge=0)
    status: SessionStatus
