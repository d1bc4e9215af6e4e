"""
Reason-coded rejections. Every expected, user-facing refusal raised by the
services is a GuardError; the HTTP layer renders {message, error} from it.
"""

from __future__ import annotations

from typing import Dict

# Reason code -> HTTP status
STATUS_BY_CODE: Dict[str, int] = {
    "match_already_started": 403,
    "referee_already_assigned": 400,
    "not_postulated": 400,
    "postulation_cap_reached": 400,
    "already_postulated": 400,
    "no_referee_assigned": 400,
    "lead_time_violation": 400,
    "past_date": 400,
    "duplicate_team_name": 400,
    "match_not_finalized": 400,
    "already_rated": 400,
    "referee_mismatch": 400,
    "invalid_schedule": 422,
    "invalid_stars": 422,
    "unauthenticated": 401,
    "forbidden": 403,
    "not_found": 404,
    "concurrent_modification": 409,
}


class GuardError(Exception):
    """A mutation or query refused for a known, machine-readable reason."""

    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message

    @property
    def status_code(self) -> int:
        return STATUS_BY_CODE.get(self.code, 400)

    def to_body(self) -> Dict[str, str]:
        return {"message": self.message, "error": self.code}


class ScheduleFormatError(ValueError):
    """Date or time string in neither accepted encoding."""
