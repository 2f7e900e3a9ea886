"""
API Response Utilities - responses in the caller's chosen format (plain or JSON)
"""
import logging
from functools import wraps

from flask import Response, g, jsonify

from twtxt_registry.constants import FORMAT_PLAIN, MIME_PLAIN
from twtxt_registry.exceptions import RegistryException

logger = logging.getLogger("main")


# API Error Codes
class ErrorCode:
    SUCCESS = "SUCCESS"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    FETCH_ERROR = "FETCH_ERROR"


def plain_response(body, status_code=200):
    return Response(body, status=status_code, content_type=MIME_PLAIN)


def success_response(data=None, message=None, status_code=200, **extra):
    """
    Standard success response format for API endpoints
    """
    response = {"code": ErrorCode.SUCCESS, "success": True}

    if data is not None:
        response["data"] = data

    if message:
        response["message"] = message

    response.update(extra)
    return jsonify(response), status_code


def error_response(error_code=ErrorCode.INTERNAL_ERROR, message=None, status_code=400, **extra):
    """
    Error response in the request's format; plain errors are the bare message
    """
    if not message:
        message = "An unexpected error occurred" if error_code == ErrorCode.INTERNAL_ERROR else "Invalid request"

    if g.get("api_format") == FORMAT_PLAIN:
        return plain_response(f"{status_code} {message}\n", status_code)

    response = {"code": error_code, "success": False, "message": message}
    response.update(extra)
    return jsonify(response), status_code


def paginated_response(items, page, per_page):
    """
    Standard paginated response format for list endpoints
    """
    has_more = len(items) == per_page
    response = {
        "code": ErrorCode.SUCCESS,
        "success": True,
        "data": items,
        "pagination": {
            "page": page,
            "per_page": per_page,
            "has_more": has_more,
            "next_page": page + 1 if has_more else None,
            "prev_page": page - 1 if page > 1 else None,
        },
    }
    return jsonify(response), 200


def handle_api_errors(f):
    """
    Decorator to standardize error handling for API endpoints
    Registry exceptions become responses in the request's format
    """

    @wraps(f)
    def wrapper(*args, **kwargs):
        try:
            return f(*args, **kwargs)
        except RegistryException as e:
            extra = {k: v for k, v in e.to_dict().items() if k not in ("error", "code", "message")}
            return error_response(e.code, message=e.message, status_code=e.status_code, **extra)
        except ValueError as e:
            return error_response(ErrorCode.VALIDATION_ERROR, message=str(e), status_code=400)
        except Exception as e:
            logger.error(f"Unhandled exception in {f.__name__}: {e}", exc_info=True)
            return error_response(ErrorCode.INTERNAL_ERROR, status_code=500)

    return wrapper
