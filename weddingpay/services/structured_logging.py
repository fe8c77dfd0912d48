"""
Structured JSON logging for the weddingpay service.

Provides structured logging with:
- JSON format output when enabled (WEDDINGPAY_LOG_JSON)
- Request context integration (request_id, method, path)
- Keyword context on every call: ``logger.info("Order created", order_id=...)``
- Request start/end logging middleware

Logs include: timestamp, level, logger, message, request_id, and whatever
context the caller passed (order_id, customer_id, gateway_payment_id, ...).
"""

import os
import json
import logging
import time
from datetime import datetime, timezone
from flask import Flask, has_request_context
from weddingpay.services.request_context import get_request_context, get_request_id

_QUIET_PATHS = ('/health', '/healthz', '/readyz', '/metrics')


class StructuredFormatter(logging.Formatter):
    """Custom formatter for structured JSON logging."""

    def __init__(self, json_enabled: bool = True):
        super().__init__('%(asctime)s %(levelname)s %(name)s: %(message)s')
        self.json_enabled = json_enabled

    def format(self, record: logging.LogRecord) -> str:
        if not self.json_enabled:
            line = super().format(record)
            extra_fields = getattr(record, 'extra_fields', None)
            if extra_fields:
                context = ' '.join(f"{k}={v}" for k, v in extra_fields.items())
                line = f"{line} [{context}]"
            return line

        log_entry = {
            'timestamp': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno
        }

        if has_request_context():
            log_entry.update(get_request_context())

        if hasattr(record, 'extra_fields'):
            log_entry.update(record.extra_fields)

        if record.exc_info:
            log_entry['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


class StructuredLogger:
    """Structured logger with request context integration."""

    def __init__(self, name: str):
        self.name = name
        self.logger = logging.getLogger(name)

    def _log_with_context(self, level: int, message: str, exc_info=None, **kwargs):
        extra_fields = kwargs.copy()

        if 'request_id' not in extra_fields and has_request_context():
            extra_fields['request_id'] = get_request_id()

        self.logger.log(level, message, exc_info=exc_info, extra={'extra_fields': extra_fields})

    def debug(self, message: str, **kwargs):
        self._log_with_context(logging.DEBUG, message, **kwargs)

    def info(self, message: str, **kwargs):
        self._log_with_context(logging.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs):
        self._log_with_context(logging.WARNING, message, **kwargs)

    def error(self, message: str, **kwargs):
        self._log_with_context(logging.ERROR, message, **kwargs)

    def critical(self, message: str, **kwargs):
        self._log_with_context(logging.CRITICAL, message, **kwargs)

    def exception(self, message: str, **kwargs):
        """Log an error together with the active exception's traceback."""
        self._log_with_context(logging.ERROR, message, exc_info=True, **kwargs)

    def log(self, level: int, message: str, **kwargs):
        self._log_with_context(level, message, **kwargs)

    def log_request_start(self, method: str, path: str, **kwargs):
        self.info(
            f"Request started: {method} {path}",
            event_type='request_start',
            method=method,
            path=path,
            **kwargs
        )

    def log_request_end(self, method: str, path: str, status_code: int, duration_ms: float, **kwargs):
        self.info(
            f"Request completed: {method} {path} - {status_code} ({duration_ms}ms)",
            event_type='request_end',
            method=method,
            path=path,
            status_code=status_code,
            duration_ms=duration_ms,
            **kwargs
        )

    def log_security_event(self, event: str, severity: str = 'info', **kwargs):
        """Log security event (webhook token failures and the like)."""
        level = logging.getLevelName(severity.upper())
        if not isinstance(level, int):
            level = logging.INFO

        self._log_with_context(
            level,
            f"Security event: {event}",
            event_type='security',
            security_event=event,
            severity=severity,
            **kwargs
        )


def get_logger(name: str) -> StructuredLogger:
    """Get structured logger instance."""
    return StructuredLogger(name)


def configure_logging(app: Flask):
    """Configure structured logging for Flask application."""
    json_enabled = app.config.get(
        'WEDDINGPAY_LOG_JSON',
        os.environ.get('WEDDINGPAY_LOG_JSON', 'true').lower() == 'true')
    log_level = str(app.config.get('LOG_LEVEL', os.environ.get('LOG_LEVEL', 'INFO'))).upper()
    level = getattr(logging, log_level, logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(StructuredFormatter(json_enabled=json_enabled))
    root_logger.addHandler(console_handler)

    app.logger.setLevel(level)

    loggers_to_configure = [
        'weddingpay.checkout',
        'weddingpay.customers',
        'weddingpay.orders',
        'weddingpay.gateway',
        'weddingpay.webhooks',
        'weddingpay.access',
        'weddingpay.audit',
        'weddingpay.notifications',
    ]

    for logger_name in loggers_to_configure:
        logging.getLogger(logger_name).setLevel(level)

    get_logger('weddingpay.config').info(
        "Logging configured",
        json_enabled=json_enabled,
        log_level=log_level,
        loggers_configured=loggers_to_configure
    )


class LoggingMiddleware:
    """Middleware for automatic request/response logging."""

    def __init__(self, app: Flask):
        self.app = app
        self.logger = get_logger('weddingpay.requests')

        app.before_request(self._before_request)
        app.after_request(self._after_request)

    def _before_request(self):
        from flask import request

        if request.path in _QUIET_PATHS:
            return

        self.logger.log_request_start(
            method=request.method,
            path=request.path,
            user_agent=request.headers.get('User-Agent', ''),
            content_length=request.content_length
        )

    def _after_request(self, response):
        from flask import request, g

        if request.path in _QUIET_PATHS:
            return response

        duration_ms = 0
        if hasattr(g, 'request_start_time'):
            duration_ms = round((time.time() - g.request_start_time) * 1000, 2)

        self.logger.log_request_end(
            method=request.method,
            path=request.path,
            status_code=response.status_code,
            duration_ms=duration_ms,
            content_length=response.content_length,
        )

        return response


def init_logging(app: Flask):
    """Initialize structured logging for Flask application."""
    configure_logging(app)
    LoggingMiddleware(app)

    get_logger('weddingpay.startup').info(
        "Application starting",
        debug=app.debug,
        testing=app.testing
    )
