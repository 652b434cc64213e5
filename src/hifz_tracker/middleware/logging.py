import logging
import sys
import json
import time
import os
import uuid
from flask import request, g, current_app, has_request_context
from logging.handlers import RotatingFileHandler
from pythonjsonlogger import jsonlogger

from hifz_tracker.config import config


class LokiJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter with fixed labels plus request context"""

    def add_fields(self, log_record, record, message_dict):
        super(LokiJsonFormatter, self).add_fields(log_record, record, message_dict)

        log_record['app'] = 'hifz-tracker'
        log_record['service'] = 'backend'
        log_record['level'] = record.levelname
        log_record['logger'] = record.name
        log_record['file'] = record.pathname
        log_record['line'] = record.lineno

        # Only inside a request context
        if has_request_context():
            if hasattr(g, 'request_id'):
                log_record['request_id'] = g.request_id
            if request and request.endpoint:
                log_record['endpoint'] = request.endpoint
                log_record['method'] = request.method
                log_record['path'] = request.path


def _build_handlers(formatter, logs_dir=None):
    """Console handler, plus rotating app/error files when logs_dir is usable."""
    console = logging.StreamHandler(sys.stdout)
    console.setLevel(logging.INFO)
    handlers = [console]

    if logs_dir:
        os.makedirs(logs_dir, exist_ok=True)
        # app.log: 10MB x 5, error.log: 5MB x 5
        for filename, level, max_bytes in (('app.log', logging.INFO, 10 * 1024 * 1024),
                                           ('error.log', logging.ERROR, 5 * 1024 * 1024)):
            file_handler = RotatingFileHandler(os.path.join(logs_dir, filename),
                                               maxBytes=max_bytes, backupCount=5)
            file_handler.setLevel(level)
            handlers.append(file_handler)

    for handler in handlers:
        handler.setFormatter(formatter)
    return handlers


def setup_logging(app, logs_dir=None):
    """
    Send every logger through the JSON formatter.

    hifz_tracker.* module loggers reach the handlers through the root logger;
    app.logger gets its own copies and does not propagate, so request lines
    are written once.
    """
    formatter = LokiJsonFormatter(
        '%(asctime)s %(name)s %(levelname)s %(pathname)s %(lineno)d %(message)s'
    )

    logs_dir = logs_dir or config.LOG_DIR
    file_error = None
    try:
        handlers = _build_handlers(formatter, logs_dir)
    except OSError as e:
        file_error = e
        handlers = _build_handlers(formatter)

    for logger, propagate in ((logging.getLogger(), True), (app.logger, False)):
        logger.setLevel(logging.INFO)
        logger.propagate = propagate
        logger.handlers.clear()
        for handler in handlers:
            logger.addHandler(handler)

    if file_error is not None:
        app.logger.warning(f"Logging to console only, cannot write to {logs_dir}: {file_error}")
    elif logs_dir:
        app.logger.info(f"Logging initialized: console + {logs_dir}")
    else:
        app.logger.info("Logging initialized: console only")


def log_request_info():
    """Log incoming requests"""
    g.start_time = time.time()

    # Honour a client-provided request ID for tracing
    g.request_id = request.headers.get('X-Request-ID', str(uuid.uuid4()))

    request_data = {
        'request_id': g.request_id,
        'method': request.method,
        'url': request.url,
        'remote_addr': request.remote_addr,
        'content_type': request.headers.get('Content-Type', ''),
        'args': dict(request.args),
    }

    if request.method != 'GET' and request.is_json and request.content_length and request.content_length < 10000:
        request_data['json_body'] = request.get_json(silent=True)

    current_app.logger.info(f"REQUEST: {json.dumps(request_data, default=str)}")


def log_response_info(response):
    """Log outgoing responses"""
    duration = time.time() - getattr(g, 'start_time', time.time())

    response_data = {
        'request_id': getattr(g, 'request_id', 'unknown'),
        'status_code': response.status_code,
        'content_type': response.content_type,
        'content_length': response.content_length,
        'duration_ms': round(duration * 1000, 2)
    }

    response.headers['X-Request-ID'] = response_data['request_id']
    current_app.logger.info(f"RESPONSE: {json.dumps(response_data, default=str)}")

    return response


def log_error(logger, message, **context):
    """
    Log an error with context fields and the current stack trace.

    Args:
        logger: The logger instance to use
        message: Human-readable error message
        **context: Additional context fields (plan_id, surah_number, etc.)

    Usage:
        from hifz_tracker.middleware.logging import log_error
        log_error(logger, "Failed to mark ayah", plan_id=plan_id, ayah_number=ayah)
    """
    extra = dict(context)

    if has_request_context() and hasattr(g, 'request_id'):
        extra['request_id'] = g.request_id

    exc_info = sys.exc_info()
    if exc_info[0] is not None:
        extra['error_type'] = exc_info[0].__name__
        extra['error_message'] = str(exc_info[1])

    logger.error(message, extra=extra, exc_info=True)
