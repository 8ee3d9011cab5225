"""
Input validation utilities for the court session service.

Validation failures raise ``ValidationError`` (HTTP 400) so malformed
identifiers are reported separately from records that do not exist.
"""

from typing import List, Optional

from bson import ObjectId

from courtroom.app.core.exceptions import ErrorCode, raise_validation_error
from courtroom.app.models.domain.session import SessionStatus


def is_object_id(value: Optional[str]) -> bool:
    """True when ``value`` is a 24 character hex ObjectId string."""
    return isinstance(value, str) and len(value) == 24 and ObjectId.is_valid(value)


def validate_object_id(value: Optional[str], field: str = "id") -> ObjectId:
    """
    Parse an ObjectId path or body parameter.

    Args:
        value: Hex string supplied by the caller
        field: Field name used in the error details

    Returns:
        The parsed ObjectId

    Raises:
        ValidationError: If the value is not a valid ObjectId
    """
    if not is_object_id(value):
        raise_validation_error(
            f"invalid {field}: {value!r}",
            field=field,
            value=value,
            error_code=ErrorCode.INVALID_IDENTIFIER
        )
    return ObjectId(value)


def parse_status_filter(raw: Optional[str]) -> List[SessionStatus]:
    """
    Parse a comma-separated status filter such as ``"scheduled,in_progress"``.

    Blank segments are ignored. Unknown statuses are rejected.
    """
    if not raw:
        return []

    statuses: List[SessionStatus] = []
    for part in raw.split(","):
        value = part.strip()
        if not value:
            continue
        try:
            status = SessionStatus(value)
        except ValueError:
            allowed = ", ".join(s.value for s in SessionStatus)
            raise_validation_error(
                f"unknown session status {value!r}; expected one of: {allowed}",
                field="status",
                value=value
            )
        if status not in statuses:
            statuses.append(status)
    return statuses
