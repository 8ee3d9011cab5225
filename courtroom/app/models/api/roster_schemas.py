"""Pydantic API schemas for the session participant roster."""

from pydantic import BaseModel, ConfigDict, Field, field_validator

from courtroom.app.models.domain.session import ParticipantRole, SessionParticipant


class ParticipantJoinRequest(BaseModel):
    """Schema for joining a court session."""

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {"userID": "user-7", "userName": "Sam Doe", "role": "defendant"}
        }
    )

    user_id: str = Field(..., alias="userID", min_length=1)
    user_name: str = Field("", alias="userName")
    role: str = Field(
        ParticipantRole.SPECTATOR.value,
        description="judge, defendant, spectator or another community-defined role"
    )

    @field_validator('user_id')
    @classmethod
    def strip_user_id(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError('userID cannot be blank')
        return v

    def to_domain(self) -> SessionParticipant:
        return SessionParticipant(
            user_id=self.user_id,
            user_name=self.user_name,
            role=self.role or ParticipantRole.SPECTATOR.value
        )
