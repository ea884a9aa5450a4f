"""
Error taxonomy for the teaching contract engine.

Every error carries a machine readable ``code`` and the HTTP status the
blueprint answers with. Services raise these; ``register_error_handlers``
turns them into JSON responses.
"""
import logging

from flask import jsonify
from werkzeug.exceptions import HTTPException

logger = logging.getLogger(__name__)


class ContractEngineError(Exception):
    code = "CONTRACT_ENGINE_ERROR"
    status_code = 500
    retryable = False

    def __init__(self, message, **details):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self):
        payload = {"message": self.message, "code": self.code}
        payload.update(self.details)
        if self.retryable:
            payload["retryable"] = True
        return payload


class ValidationError(ContractEngineError):
    code = "VALIDATION_ERROR"
    status_code = 400

    def __init__(self, message, errors=None):
        super().__init__(message, errors=errors or {})
        self.errors = errors or {}


class NotFound(ContractEngineError):
    code = "NOT_FOUND"
    status_code = 404


class AccessDenied(ContractEngineError):
    code = "ACCESS_DENIED"
    status_code = 403


class InvalidState(ContractEngineError):
    code = "INVALID_STATE"
    status_code = 409


class AlreadyCompleted(InvalidState):
    code = "ALREADY_COMPLETED"


class PayloadTooLarge(ContractEngineError):
    code = "PAYLOAD_TOO_LARGE"
    status_code = 413


class UnsupportedMediaType(ContractEngineError):
    code = "UNSUPPORTED_MEDIA_TYPE"
    status_code = 415


class RenderTemplateError(ContractEngineError):
    code = "RENDER_TEMPLATE_ERROR"
    retryable = True


class RenderEngineError(ContractEngineError):
    code = "RENDER_ENGINE_ERROR"
    retryable = True


class RateResolutionError(ContractEngineError):
    """Raised inside the rate resolver only; callers never see it."""
    code = "RATE_RESOLUTION_ERROR"


def register_error_handlers(app):
    from . import db

    @app.errorhandler(ContractEngineError)
    def handle_engine_error(error):
        if error.status_code >= 500:
            logger.error(f"{error.code}: {error.message} {error.details}")
            body = {"message": "Failed to process contract request", "code": error.code}
            if error.retryable:
                body["retryable"] = True
            return jsonify(body), error.status_code
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return jsonify({"message": error.description, "code": error.name.upper().replace(" ", "_")}), error.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error):
        db.session.rollback()
        logger.exception(f"Unhandled error: {str(error)}")
        return jsonify({"message": "Internal server error", "code": "INTERNAL_ERROR"}), 500
