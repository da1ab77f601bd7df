from flask import jsonify, current_app
from werkzeug.exceptions import HTTPException
from marshmallow import ValidationError
from sqlalchemy.exc import IntegrityError
import logging

from utils.exceptions import TutorError

logger = logging.getLogger(__name__)


def error_response(error: str, message: str, status: int, details: dict | None = None):
    payload = {"error": error, "message": message, "status": status}
    if details:
        payload["details"] = details
    return jsonify(payload), status


def _first_message(messages) -> str | None:
    """Dig the first human-readable message out of marshmallow's nested dict."""
    if isinstance(messages, str):
        return messages
    if isinstance(messages, dict):
        for value in messages.values():
            found = _first_message(value)
            if found:
                return found
    if isinstance(messages, (list, tuple)):
        for value in messages:
            found = _first_message(value)
            if found:
                return found
    return None


def register_error_handlers(app):
    # 404 Not Found
    @app.errorhandler(404)
    def not_found(e):
        return error_response("NOT_FOUND", "Resource not found", 404)

    # Domain errors carry their own status and envelope code
    @app.errorhandler(TutorError)
    def handle_tutor_error(err: TutorError):
        if err.status >= 500:
            logger.error("%s: %s", err.__class__.__name__, err.message, exc_info=err.__cause__)
        return error_response(err.error, err.message, err.status)

    # Marshmallow validation errors: missing/invalid field is a 400
    @app.errorhandler(ValidationError)
    def handle_validation_error(err: ValidationError):
        message = _first_message(err.messages) or "Invalid input"
        return error_response("BAD_REQUEST", message, 400, details=err.messages)

    # Unique username raced past the existence check
    @app.errorhandler(IntegrityError)
    def handle_integrity_error(err: IntegrityError):
        logger.warning("Integrity error: %s", getattr(err, "orig", err))
        return error_response("CONFLICT", "Username already exists", 400)

    # Werkzeug HTTPExceptions map to their status codes
    @app.errorhandler(HTTPException)
    def handle_http_exception(err: HTTPException):
        return error_response(err.name.upper().replace(" ", "_"), err.description, err.code or 400)

    # 500 Internal Error (catch-all)
    @app.errorhandler(Exception)
    def internal_error(err: Exception):
        logger.exception("Unhandled exception", exc_info=err)
        details = None
        if current_app and current_app.debug:
            details = {"type": err.__class__.__name__, "message": str(err)}
        return error_response("INTERNAL_ERROR", "An unexpected error occurred", 500, details=details)
