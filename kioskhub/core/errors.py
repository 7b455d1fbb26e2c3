"""Error taxonomy for kiosk credentials, sessions and completions.

Every error is a ``ValueError`` whose ``str()`` is a stable error code, so
callers can branch on ``str(exc)`` the same way they do for other service
errors. Each kind also carries a user-facing message, an HTTP status for the
request layer, and optional structured details.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class KioskError(ValueError):
    code = "kiosk_error"
    message = "Kiosk request failed."
    http_status = 400

    def __init__(self, message: Optional[str] = None, **details: Any) -> None:
        super().__init__(self.code)
        if message:
            self.message = message
        self.details: Dict[str, Any] = details

    def as_dict(self) -> dict:
        return {"ok": False, "error": self.code, "message": self.message, **self.details}


# --- Credential errors ---


class CodeNotFound(KioskError):
    code = "code_not_found"
    message = "That code was not recognised. Check the words and try again."
    http_status = 404


class CodeExpired(KioskError):
    code = "code_expired"
    message = "This code has expired. Generate a new code from the dashboard."
    http_status = 410


class CodeAlreadyUsed(KioskError):
    code = "code_already_used"
    message = "This code has already been used to start a kiosk. Generate a new code for another device."
    http_status = 409


class CodeRevoked(KioskError):
    code = "code_revoked"
    message = "This code was revoked by its owner."
    http_status = 410


class TierLimitExceeded(KioskError):
    code = "tier_limit_exceeded"
    message = "Your plan does not allow more active kiosk codes."
    http_status = 403


class AlreadyTerminal(KioskError):
    code = "already_terminal"
    message = "This code is already used, expired or revoked."
    http_status = 409


class InvalidScope(KioskError):
    code = "invalid_scope"
    message = "Kiosk code scope is invalid."


class CodeGenerationFailed(KioskError):
    code = "code_generation_failed"
    message = "Could not generate a unique code. Try again."
    http_status = 503


# --- Session errors ---


class SessionNotFound(KioskError):
    code = "session_not_found"
    message = "Kiosk session not found."
    http_status = 404


class SessionTerminated(KioskError):
    code = "session_terminated"
    message = "This kiosk session has been ended."
    http_status = 401


class SessionExpired(KioskError):
    code = "session_expired"
    message = "This kiosk session has expired. Enter a new code to continue."
    http_status = 401


class AlreadyEnded(KioskError):
    code = "already_ended"
    message = "This kiosk session has already ended."
    http_status = 409


# --- Completion errors ---


class TaskNotFound(KioskError):
    code = "task_not_found"
    message = "Task not found."
    http_status = 404


class CompletionNotFound(KioskError):
    code = "completion_not_found"
    message = "Completion not found."
    http_status = 404


class EntryLimitExceeded(KioskError):
    code = "entry_limit_exceeded"
    message = "Maximum entries reached for this period."


class InvalidProgressValue(KioskError):
    code = "invalid_progress_value"
    message = "Value must be a whole number between 1 and 999."

    REASON_NOT_A_NUMBER = "not_a_number"
    REASON_NOT_AN_INTEGER = "not_an_integer"
    REASON_OUT_OF_RANGE = "out_of_range"

    def __init__(self, reason: str, message: Optional[str] = None, **details: Any) -> None:
        super().__init__(message, reason=reason, **details)
        self.reason = reason


class AlreadyCompleted(KioskError):
    code = "already_completed"
    message = "Task already completed in this period."
    http_status = 409


class UndoNotSupported(KioskError):
    code = "undo_not_supported"
    message = "Only simple tasks can be undone."


class UndoWindowClosed(KioskError):
    code = "undo_window_closed"
    message = "The undo window for this completion has passed."


# --- Authorization ---


class Forbidden(KioskError):
    code = "forbidden"
    message = "You are not allowed to act on this resource."
    http_status = 403


__all__ = [
    "KioskError",
    "CodeNotFound",
    "CodeExpired",
    "CodeAlreadyUsed",
    "CodeRevoked",
    "TierLimitExceeded",
    "AlreadyTerminal",
    "InvalidScope",
    "CodeGenerationFailed",
    "SessionNotFound",
    "SessionTerminated",
    "SessionExpired",
    "AlreadyEnded",
    "TaskNotFound",
    "CompletionNotFound",
    "EntryLimitExceeded",
    "InvalidProgressValue",
    "AlreadyCompleted",
    "UndoNotSupported",
    "UndoWindowClosed",
    "Forbidden",
]
