"""
Authentication Middleware - X-Auth credential checks
"""
import logging
from functools import wraps

from flask import current_app, g, request

from twtxt_registry.exceptions import AuthenticationError

logger = logging.getLogger("main")

AUTH_HEADER = "X-Auth"


def request_credential():
    return (request.headers.get(AUTH_HEADER) or "").strip()


def is_admin_request():
    """True when the X-Auth header carries the admin password"""
    credential = request_credential()
    return current_app.registry.check_admin(credential, current_app.config.get("ADMIN_PASSWORD_HASH"))


def admin_required(f):
    """Decorator rejecting requests without the admin password in X-Auth"""

    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not request_credential():
            raise AuthenticationError()
        if not is_admin_request():
            logger.warning(f"Rejected admin request to {request.path} from {request.remote_addr}")
            raise AuthenticationError()
        g.is_admin = True
        return f(*args, **kwargs)

    return decorated_function
