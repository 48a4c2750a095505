# oncall_api/common/errors.py
from sqlalchemy.exc import IntegrityError
from werkzeug.exceptions import HTTPException

from oncall_api.common.http import fail


class APIError(Exception):
    """Custom API Error class."""
    status_code = 400
    code = "BAD_REQUEST"

    def __init__(self, code=None, message="", status_code=None, payload=None):
        super().__init__(message)
        self.code = code or self.code
        self.message = message
        self.status_code = status_code or self.status_code
        self.payload = payload


class ValidationFailed(APIError):
    status_code = 422
    code = "VALIDATION_ERROR"


class NotFound(APIError):
    status_code = 404
    code = "NOT_FOUND"


class Forbidden(APIError):
    status_code = 403
    code = "FORBIDDEN"


class Conflict(APIError):
    status_code = 409
    code = "CONFLICT"


class InsufficientBalance(APIError):
    status_code = 422
    code = "INSUFFICIENT_BALANCE"


class AssignmentRejected(Conflict):
    """Raised by the assignment guard; ``code`` carries the rejection reason."""


def register_error_handlers(app):
    @app.errorhandler(APIError)
    def _api_error(e: APIError):
        return fail(message=e.message, status=e.status_code, code=e.code, detail=e.payload)

    @app.errorhandler(HTTPException)
    def _http(e: HTTPException):
        return fail(e.description or e.name, status=e.code or 500)

    @app.errorhandler(IntegrityError)
    def _integrity(e: IntegrityError):
        from oncall_api.extensions import db
        db.session.rollback()
        # 409 for unique/FK violations
        return fail("Conflict / integrity error", status=409, code="CONSTRAINT_ERROR",
                    detail=str(e.orig) if getattr(e, "orig", None) else str(e))

    @app.errorhandler(Exception)
    def _500(e: Exception):
        app.logger.exception(e)
        return fail("Internal server error", status=500)
