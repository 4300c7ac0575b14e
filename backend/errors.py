"""
Domain exceptions for the tracker engine.

Each error carries a stable ``kind`` tag and the HTTP status the API layer
maps it to, so every failure reaches the client in the same shape.
"""

from typing import Any, Dict, List, Optional


class TrackerError(Exception):
    """Base tracker exception with a consistent structure."""

    kind = "tracker_error"
    status_code = 500
    retryable = False

    def __init__(self, detail: str, **context: Any):
        super().__init__(detail)
        self.detail = detail
        self.context = context

    def to_dict(self) -> Dict[str, Any]:
        body = {"error": self.kind, "detail": self.detail, "retryable": self.retryable}
        body.update(self.context)
        return body


class NotFound(TrackerError):
    """Referenced goal, activity or user does not exist."""

    kind = "not_found"
    status_code = 404

    def __init__(self, resource: str, identifier: Any):
        super().__init__(f"{resource} not found: {identifier}", resource=resource)


class InvalidWindow(TrackerError):
    """A date or time window whose start lies after its end."""

    kind = "invalid_window"
    status_code = 400

    def __init__(self, start: Any, end: Any, detail: Optional[str] = None):
        super().__init__(
            detail or f"Window start {start} is after end {end}",
            start=str(start),
            end=str(end)
        )


class InvalidValue(TrackerError):
    kind = "invalid_value"
    status_code = 400

    def __init__(self, detail: str, field: Optional[str] = None):
        super().__init__(detail, field=field)


class DuplicateAward(TrackerError):
    """Another writer persisted the same award first. Never surfaced."""

    kind = "duplicate_award"
    status_code = 409


class StoreUnavailable(TrackerError):
    """The database could not be reached or timed out."""

    kind = "store_unavailable"
    status_code = 503
    retryable = True


class AwardBatchError(StoreUnavailable):
    """
    Some awards in an evaluation batch could not be persisted.

    ``awarded`` holds the records that were written before and after the
    failures; they stay written.
    """

    def __init__(self, awarded: List[Any], failures: List[TrackerError]):
        super().__init__(
            f"{len(failures)} achievement award(s) could not be saved",
        )
        self.awarded = awarded
        self.failures = failures

    def to_dict(self) -> Dict[str, Any]:
        body = super().to_dict()
        body["awarded"] = [
            a.model_dump(mode="json") if hasattr(a, "model_dump") else a
            for a in self.awarded
        ]
        return body
