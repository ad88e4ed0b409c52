"""Expiry and passcode rules for a single retrieval attempt.

Evaluation is a pure decision over the record; expired rows are left in
place (the expiry sweeper removes them).
"""
import enum

from slugshare.errors import ExpiredError, ForbiddenError, UnauthorizedError
from slugshare.models.file_record import FileRecord
from slugshare.services.passcode import verify_passcode


class AccessDecision(str, enum.Enum):
    GRANTED = "granted"
    EXPIRED = "expired"
    PASSCODE_REQUIRED = "passcode_required"
    PASSCODE_INVALID = "passcode_invalid"


def evaluate(record: FileRecord, now: int, provided_passcode: str | None = None) -> AccessDecision:
    """Decide whether ``record`` may be served at ``now`` (epoch ms)."""
    if record.expires_at is not None and now > record.expires_at:
        return AccessDecision.EXPIRED
    if record.is_private:
        if not provided_passcode:
            return AccessDecision.PASSCODE_REQUIRED
        if not verify_passcode(provided_passcode, record.passcode_hash):
            return AccessDecision.PASSCODE_INVALID
    return AccessDecision.GRANTED


_ERRORS = {
    AccessDecision.EXPIRED: lambda: ExpiredError(),
    AccessDecision.PASSCODE_REQUIRED: lambda: UnauthorizedError(
        "This file is private and requires a passcode. "
        "Please provide it as a query parameter (e.g., ?passcode=YOUR_PASSCODE)."
    ),
    AccessDecision.PASSCODE_INVALID: lambda: ForbiddenError("Invalid passcode provided."),
}


def ensure_access(record: FileRecord, now: int, provided_passcode: str | None = None) -> None:
    """Raise the matching error unless access is granted."""
    decision = evaluate(record, now, provided_passcode)
    if decision is not AccessDecision.GRANTED:
        raise _ERRORS[decision]()
