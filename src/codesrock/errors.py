"""Domain exceptions.

Each carries the HTTP status the global error handler renders it with.
Services raise these; routers let them propagate.
"""

from __future__ import annotations


class CodesRockError(Exception):
    """Base class for all domain errors."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class InvalidRequestError(CodesRockError, ValueError):
    """Malformed input, rejected before any mutation."""

    status_code = 400


class InvalidXPAmountError(InvalidRequestError):
    """XP amount is not a positive integer."""


class InvalidStateError(InvalidRequestError):
    """The requested transition is not valid from the record's current state."""


class NotFoundError(CodesRockError):
    """Referenced entity does not exist."""

    status_code = 404


class BadgeNotFoundError(NotFoundError):
    def __init__(self, badge_id: str) -> None:
        super().__init__("Badge not found")
        self.badge_id = badge_id


class BadgeAlreadyAwardedError(InvalidRequestError):
    """Raised only by the explicit award path; the eligibility scan treats duplicates as no-ops."""

    def __init__(self, badge_id: str) -> None:
        super().__init__("Badge already awarded to this user")
        self.badge_id = badge_id


class PersistenceError(CodesRockError):
    """The store failed. Retryable, but never retried automatically."""

    status_code = 503
