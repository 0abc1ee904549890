from __future__ import annotations


class CampusConnectError(Exception):
    """Base class for errors raised by the campus_connect library."""


class ValidationError(CampusConnectError, ValueError):
    """Input rejected before any write reaches the store."""


class InvalidScore(ValidationError):
    pass


class CommentTooLong(ValidationError):
    pass


class SelfRating(ValidationError):
    pass


class MessageLengthError(ValidationError):
    pass


class RecordValidationError(ValidationError):
    """A document failed schema validation at the store boundary."""


class NotFoundError(CampusConnectError, LookupError):
    pass


class TutorNotFound(NotFoundError):
    pass


class RoomNotFound(NotFoundError):
    pass


class TransientStoreError(CampusConnectError):
    """The store could not complete a write after exhausting its retries."""


class SessionStateError(CampusConnectError):
    pass
