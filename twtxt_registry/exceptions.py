"""
twtxt registry - Custom Exceptions and Exception Handlers
"""
import structlog
from flask import jsonify
from werkzeug.exceptions import HTTPException

logger = structlog.get_logger("exceptions")


class RegistryException(Exception):
    """Base exception for the registry"""

    status_code = 400

    def __init__(self, message: str, code: str = "REGISTRY_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)

    def to_dict(self):
        return {"error": True, "code": self.code, "message": self.message}


class InvalidInput(RegistryException):
    """Caller supplied malformed or missing data"""

    def __init__(self, message: str, code: str = "VALIDATION_ERROR"):
        super().__init__(message, code=code)
        logger.warning("invalid input", reason=message)


class IncompleteInput(InvalidInput):
    """URL, nickname or passcode missing, or nickname outside the allowed charset"""

    def __init__(self, message: str = "incomplete account info supplied: missing URL and/or nickname and/or passcode"):
        super().__init__(message, code="INCOMPLETE_INPUT")


class NotAFeedURL(InvalidInput):
    """URL does not look like the path to a twtxt feed document"""

    def __init__(self, url: str):
        self.url = url
        super().__init__(f"URL does not point to a twtxt.txt file: {url}", code="NOT_A_FEED_URL")


class Conflict(RegistryException):
    """Uniqueness violation caught before touching the store"""

    status_code = 409

    def __init__(self, message: str):
        super().__init__(message, code="CONFLICT")


class AuthenticationError(RegistryException):
    """Missing or wrong X-Auth credential"""

    status_code = 403

    def __init__(self, message: str = "Forbidden"):
        super().__init__(message, code="AUTH_ERROR")
        logger.warning("authentication failed", reason=message)


class FetchError(RegistryException):
    """Remote feed unreachable or malformed"""

    status_code = 502

    def __init__(self, message: str, url: str = None, status_code: int = None, content_type: str = None):
        super().__init__(message, code="FETCH_ERROR")
        self.url = url
        self.remote_status = status_code
        self.content_type = content_type

    def to_dict(self):
        data = super().to_dict()
        if self.remote_status is not None:
            data["remote_status"] = self.remote_status
        if self.content_type is not None:
            data["content_type"] = self.content_type
        return data


class StoreError(RegistryException):
    """Transaction or connection failure, the transaction has been rolled back"""

    status_code = 500

    def __init__(self, operation: str, message: str = None):
        self.operation = operation
        super().__init__(message or f"store failure while {operation}", code="DATABASE_ERROR")
        logger.error("store error", operation=operation, reason=self.message)


class OperationCancelled(StoreError):
    """Deadline expired or the caller cancelled before the operation finished"""

    status_code = 503

    def __init__(self, operation: str):
        super().__init__(operation, f"cancelled while {operation}")
        self.code = "CANCELLED"


def register_exception_handlers(app):
    """Register exception handlers with Flask app"""

    @app.errorhandler(HTTPException)
    def handle_http_exception(e):
        return jsonify({"error": True, "code": e.name.upper().replace(" ", "_"), "message": e.description}), e.code

    @app.errorhandler(RegistryException)
    def handle_registry_exception(e):
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(Exception)
    def handle_generic_exception(e):
        logger.error("unhandled exception", error=str(e), exc_info=True)
        return jsonify({"error": True, "code": "INTERNAL_ERROR", "message": "An unexpected error occurred"}), 500
