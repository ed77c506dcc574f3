"""
Error taxonomy and JSON error responses.

Every failure surfaces as {"error": message}. By default all categories use
status 500, matching the contract the web client already handles; set
KHIDMA_DIFFERENTIATED_ERRORS=1 to map each category to its own status.
"""
from flask import current_app, jsonify
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

from khidma.database import db
from khidma.services.structured_logging import get_logger

logger = get_logger(__name__)


class MarketplaceError(Exception):
    """Base class for errors rendered at the handler boundary."""

    status_code = 500
    kind = 'internal'

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class AuthenticationError(MarketplaceError):
    status_code = 401
    kind = 'authentication'


class AuthorizationError(MarketplaceError):
    status_code = 403
    kind = 'authorization'


class ValidationError(MarketplaceError):
    status_code = 422
    kind = 'validation'


class NotFoundError(MarketplaceError):
    status_code = 404
    kind = 'not_found'


class ConflictError(ValidationError):
    status_code = 400
    kind = 'conflict'


class UpstreamError(MarketplaceError):
    status_code = 502
    kind = 'upstream'


def _status_for(error: MarketplaceError) -> int:
    if current_app.config.get('DIFFERENTIATED_ERRORS'):
        return error.status_code
    # Conflicts keep their 400, as the subscription checkout always did
    if isinstance(error, ConflictError):
        return error.status_code
    return 500


def error_response(error: MarketplaceError):
    """Render a MarketplaceError as the uniform JSON body."""
    return jsonify({'error': error.message}), _status_for(error)


def register_error_handlers(app):
    """Register error handlers for the marketplace API."""

    @app.errorhandler(MarketplaceError)
    def handle_marketplace_error(e):
        level = 'warning' if e.status_code < 500 else 'error'
        getattr(logger, level)(
            f"Request failed: {e.message}",
            error_type=e.kind,
            error_message=e.message,
        )
        metrics = app.extensions.get('metrics')
        if metrics is not None:
            metrics.record_error(e.kind)
        return error_response(e)

    @app.errorhandler(SQLAlchemyError)
    def handle_database_error(e):
        db.session.rollback()
        error_msg = str(e.orig) if getattr(e, 'orig', None) is not None else str(e)
        logger.error(f"Database error: {error_msg}", error_type='database')
        return error_response(UpstreamError(f"Database error: {error_msg}"))

    @app.errorhandler(Exception)
    def handle_unexpected_error(e):
        # Routing errors (404, 405) keep their own responses
        if isinstance(e, HTTPException):
            return e
        db.session.rollback()
        logger.exception(f"Unhandled error: {e}", error_type=type(e).__name__,
                         error_message=str(e))
        metrics = app.extensions.get('metrics')
        if metrics is not None:
            metrics.record_error(MarketplaceError.kind)
        return error_response(MarketplaceError(str(e) or type(e).__name__))
