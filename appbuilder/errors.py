"""Error taxonomy shared by the services and the HTTP layer.

Every error carries the HTTP status it maps to and a message that is safe to
return to clients. Server-side failures use a generic message; the underlying
cause is logged where the error is raised.
"""


class AppBuilderError(Exception):
    """Base class for all application errors."""

    status_code = 500
    default_message = "Internal error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AppBuilderError):
    """Required input is missing or malformed."""

    status_code = 400
    default_message = "Invalid request"


class NotFoundError(AppBuilderError):
    """The operation targets a package with no record."""

    status_code = 404
    default_message = "App not found"


class SignatureMismatchError(AppBuilderError):
    """A payment confirmation failed the authenticity check."""

    status_code = 400
    default_message = "Signature mismatch"


class StorageError(AppBuilderError):
    """The record store or the file store failed."""

    status_code = 500
    default_message = "Storage failure"


class GatewayError(AppBuilderError):
    """The payment gateway call failed."""

    status_code = 500
    default_message = "Payment gateway failure"


class NotificationError(AppBuilderError):
    """Email delivery failed. Never surfaced to HTTP clients."""

    status_code = 500
    default_message = "Notification failure"
