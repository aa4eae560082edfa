from functools import wraps

from flask import current_app, jsonify
from pymongo.errors import PyMongoError
from werkzeug.exceptions import HTTPException


class ApiError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(ApiError):
    status_code = 400
    default_message = "Invalid request."


class WeakCredential(ApiError):
    status_code = 400
    default_message = "Password must include uppercase, lowercase, number, and symbol."


class InvalidCredential(ApiError):
    status_code = 400
    default_message = "Invalid credentials"


class PaymentNotVerified(ApiError):
    status_code = 400
    default_message = "Payment not verified by the payment provider."


class Unauthenticated(ApiError):
    status_code = 401
    default_message = "Invalid or expired token"


class InvalidToken(Unauthenticated):
    pass


class Forbidden(ApiError):
    status_code = 403
    default_message = "Forbidden: Not an admin"


class NotVerified(ApiError):
    status_code = 403
    default_message = "Please verify your email first."


class NotFound(ApiError):
    status_code = 404
    default_message = "Not found"


class Conflict(ApiError):
    status_code = 409
    default_message = "Resource already exists."


class AlreadyVerified(Conflict):
    default_message = "This account is already verified."


class ServerError(ApiError):
    pass


class PaymentGatewayError(ApiError):
    status_code = 502
    default_message = "Payment verification is currently unavailable."


def error_response(error: ApiError):
    return jsonify({"success": False, "message": error.message}), error.status_code


def json_endpoint(view):
    """Map flow errors raised inside ``view`` to the JSON error envelope."""

    @wraps(view)
    def wrapper(*args, **kwargs):
        try:
            return view(*args, **kwargs)
        except ApiError as exc:
            return error_response(exc)
        except PyMongoError:
            current_app.logger.exception("Database error in %s", view.__name__)
            return error_response(ServerError())
        except HTTPException as exc:
            return jsonify({"success": False, "message": exc.description}), exc.code
        except Exception:
            current_app.logger.exception("Unhandled error in %s", view.__name__)
            return error_response(ServerError())

    return wrapper
