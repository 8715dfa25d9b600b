# studybot/services/errors.py
from __future__ import annotations


class StudyError(Exception):
    """Base for failures reported back to the caller by code."""

    code = "error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.code)


class ValidationError(StudyError):
    code = "validation_error"

    def __init__(self, code: str, message: str | None = None) -> None:
        self.code = code
        super().__init__(message or code)


class NotFoundError(StudyError):
    code = "not_found"


class ZoneNotFound(NotFoundError):
    code = "zone_not_found"


class SessionNotFound(NotFoundError):
    code = "session_not_found"


class AggregationFailure(StudyError):
    """
    Weekly minutes could not be applied after a session was closed.
    The close stands; reconcile_pending picks the session up later.
    """

    code = "aggregation_failed"

    def __init__(self, session_id: int, message: str | None = None) -> None:
        self.session_id = session_id
        super().__init__(message or f"aggregation failed for session {session_id}")
