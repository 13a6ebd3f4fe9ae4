"""Domain error kinds.

Every failure that reaches a caller is one of four kinds:

- ``not_found``: entity absent *or* owned by someone else (never distinguished)
- ``expired``: the share exists but its access window has closed
- ``invalid_state``: operation preconditions are unmet
- ``unavailable``: a downstream collaborator (storage, e-mail) failed or is unconfigured

Collaborator exceptions are wrapped (``raise ... from exc``) before they leave
the service layer; see ``error_handlers`` for the HTTP mapping.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from tinybox_backend.models import FileShare, StoredFile


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    INVALID_STATE = "invalid_state"
    UNAVAILABLE = "unavailable"


class TinyBoxError(Exception):
    kind: ErrorKind = ErrorKind.UNAVAILABLE

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(TinyBoxError):
    kind = ErrorKind.NOT_FOUND


class ShareNotFoundError(NotFoundError):
    def __init__(self, message: str = "share not found") -> None:
        super().__init__(message)


class FileNotFoundInStoreError(NotFoundError):
    def __init__(self, message: str = "file not found") -> None:
        super().__init__(message)


class ShareExpiredError(TinyBoxError):
    kind = ErrorKind.EXPIRED

    def __init__(self, *, share: FileShare, file: StoredFile, expired_at: datetime) -> None:
        super().__init__("share expired")
        self.share = share
        self.file = file
        self.expired_at = expired_at


class InvalidStateError(TinyBoxError):
    kind = ErrorKind.INVALID_STATE


class UnavailableError(TinyBoxError):
    kind = ErrorKind.UNAVAILABLE


class StorageUnavailableError(UnavailableError):
    pass


class EmailNotConfiguredError(UnavailableError):
    def __init__(
        self,
        message: str = "email delivery is not configured; set RESEND_API_KEY and RESEND_FROM_EMAIL",
    ) -> None:
        super().__init__(message)


class EmailDeliveryError(UnavailableError):
    pass


class SchemaMismatchError(RuntimeError):
    """Raised at startup when the database lacks mapped tables/columns."""
