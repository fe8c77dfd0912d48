"""
Error handlers.

Pipeline errors carry their own HTTP status and ``error`` code; database
errors that escape a service are mapped here; anything else is logged with
its traceback and answered with a generic 500 body.
"""
from flask import jsonify, request
from sqlalchemy.exc import OperationalError, IntegrityError
from werkzeug.exceptions import HTTPException

from weddingpay.errors import WeddingPayError
from weddingpay.infra.log import get_logger

logger = get_logger('weddingpay.errors')


def register_error_handlers(app):
    """Register JSON error handlers on the app."""

    @app.errorhandler(WeddingPayError)
    def handle_pipeline_error(e):
        log = logger.error if e.status_code >= 500 else logger.warning
        log(
            f"Request failed: {e.error}",
            error=e.error,
            status_code=e.status_code,
            error_message=e.message,
            path=request.path,
        )
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(OperationalError)
    def handle_operational_error(e):
        error_msg = str(e.orig) if hasattr(e, 'orig') else str(e)

        if 'does not exist' in error_msg or 'no such table' in error_msg:
            logger.error("Database table not found", error_message=error_msg)
            return jsonify({
                'error': 'database_not_ready',
                'message': 'Database tables not yet created'
            }), 503

        logger.error("Database operational error", error_message=error_msg)
        return jsonify({
            'error': 'database_error',
            'message': 'Database operation failed. Please try again later.'
        }), 503

    @app.errorhandler(IntegrityError)
    def handle_integrity_error(e):
        error_msg = str(e.orig) if hasattr(e, 'orig') else str(e)
        logger.error("Database integrity error", error_message=error_msg)

        if 'unique' in error_msg.lower() or 'duplicate' in error_msg.lower():
            return jsonify({
                'error': 'duplicate_entry',
                'message': 'This entry already exists'
            }), 409

        return jsonify({
            'error': 'integrity_error',
            'message': 'Data integrity constraint violated'
        }), 409

    @app.errorhandler(HTTPException)
    def handle_http_exception(e):
        return jsonify({
            'error': (e.name or 'http_error').lower().replace(' ', '_'),
            'message': e.description,
        }), e.code

    @app.errorhandler(Exception)
    def handle_unexpected(e):
        logger.exception(
            "Unhandled error",
            error_type=type(e).__name__,
            error_message=str(e),
            path=request.path,
        )
        return jsonify({
            'error': 'internal_error',
            'message': 'An unexpected error occurred'
        }), 500
