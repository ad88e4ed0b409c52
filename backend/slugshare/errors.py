"""Error taxonomy shared by services and routes.

Services raise these; ``main.py`` renders them as
``{"success": false, "error": message}`` with the class's status code.
"""


class FileShareError(Exception):
    """Base class for errors that map onto an HTTP status."""

    status_code = 500
    default_message = "An unexpected error occurred."

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(FileShareError):
    status_code = 400
    default_message = "Invalid request."


class UnauthorizedError(FileShareError):
    status_code = 401
    default_message = "Authentication required."


class InvalidToken(UnauthorizedError):
    default_message = "Invalid or expired token."


class ForbiddenError(FileShareError):
    status_code = 403
    default_message = "Forbidden."


class InvalidUploadUrl(ForbiddenError):
    default_message = "Upload URL is invalid or has expired."


class NotFoundError(FileShareError):
    status_code = 404
    default_message = "File not found."


class ExpiredError(FileShareError):
    status_code = 410
    default_message = "This file has expired and is no longer available."


class StorageUnavailable(FileShareError):
    """An external store failed. Safe for the caller to retry."""

    default_message = "Storage is temporarily unavailable. Please try again."


class SlugExhausted(FileShareError):
    default_message = "Could not allocate a unique short link."
