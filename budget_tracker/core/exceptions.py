"""
Exception hierarchy shared by the workspace core and the backend services.

Usage:
    from budget_tracker.core.exceptions import ValidationError, LastAgencyError

    raise ValidationError("รหัสผ่านใหม่ไม่ตรงกัน")

Messages are user-facing text: callers surface ``str(exc)`` inline.
Not-found ids are never an error in the workspace core; commands that
reference a missing id simply do nothing.
"""


class ValidationError(Exception):
    """Input failed a business rule (wrong passcode, short password, ...).

    Always recoverable. Maps to HTTP 400 in the blueprints.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown for structured API responses.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class LastAgencyError(ValidationError):
    """Raised when deleting the only remaining agency.

    The one mutation that is refused outright instead of being applied
    or silently skipped.
    """

    def __init__(self, agency_id: str | None = None) -> None:
        self.agency_id = agency_id
        super().__init__("ไม่สามารถลบหน่วยงานสุดท้ายได้")


class PermissionDeniedError(Exception):
    """The active role is below the role a workspace command requires."""

    def __init__(self, required: str, actual: str) -> None:
        self.required = required
        self.actual = actual
        super().__init__(f"Role '{actual}' cannot perform an action that requires '{required}'")


class AuthError(Exception):
    """Backend sign-in / sign-up / session failure.

    Args:
        message: Message returned by the backend, shown to the user as-is.
        status_code: HTTP status the backend answered with (or would have).
    """

    def __init__(self, message: str, status_code: int = 400) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class RemoteStoreError(Exception):
    """Reading or writing the per-user remote document failed."""


class SyncError(Exception):
    """Manual upload of the local snapshot to the remote store failed."""
