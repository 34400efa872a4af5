"""Logging setup for StaffHub.

Production (PRODUCTION=true or running under gunicorn) writes one JSON
object per line; development gets a coloured single line. Records
emitted inside a request carry its method, path and the signed-in user
id so HR changes can be traced to whoever made them.
"""
import os
import sys
import json
import logging
from datetime import datetime, timezone

ROOT_LOGGER = 'staffhub'
# Noisy at INFO
_QUIET_LOGGERS = ('apscheduler', 'werkzeug', 'urllib3')

_COLOURS = {
    'DEBUG': '\033[36m', 'INFO': '\033[32m', 'WARNING': '\033[33m',
    'ERROR': '\033[31m', 'CRITICAL': '\033[35m',
}
_RESET = '\033[0m'


def request_context() -> dict:
    """{'method', 'path', 'user_id'} for the current request; empty outside one."""
    from flask import has_request_context, request
    from flask_login import current_user

    if not has_request_context():
        return {}
    fields = {'method': request.method, 'path': request.path}
    try:
        if current_user.is_authenticated:
            fields['user_id'] = current_user.id
    except AttributeError:
        # app without a LoginManager
        pass
    return fields


class JSONFormatter(logging.Formatter):

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
        }
        entry.update(request_context())
        if record.exc_info:
            entry['exception'] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class DevelopmentFormatter(logging.Formatter):

    def format(self, record: logging.LogRecord) -> str:
        colour = _COLOURS.get(record.levelname, '')
        where = f"{record.name.removeprefix(ROOT_LOGGER + '.')}:{record.lineno}"
        line = (f"{colour}[{datetime.now():%H:%M:%S}] {record.levelname:8}{_RESET if colour else ''} "
                f"{where:36} {record.getMessage()}")
        user_id = request_context().get('user_id')
        if user_id is not None:
            line += f' | user={user_id}'
        if record.exc_info:
            line += '\n' + self.formatException(record.exc_info)
        return line


def _wants_json() -> bool:
    return (os.environ.get('PRODUCTION', '').lower() == 'true'
            or 'gunicorn' in os.environ.get('SERVER_SOFTWARE', ''))


def setup_logging(level: str = 'INFO', json_format: bool = None,
                  logger_name: str = ROOT_LOGGER) -> logging.Logger:
    """Install a single stdout handler on `logger_name` and return that logger.

    `json_format=None` picks JSON in production. Below DEBUG the
    third-party loggers in _QUIET_LOGGERS are raised to WARNING.
    """
    logger = logging.getLogger(logger_name)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    logger.handlers.clear()
    logger.propagate = False

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(logger.level)
    use_json = _wants_json() if json_format is None else json_format
    handler.setFormatter(JSONFormatter() if use_json else DevelopmentFormatter())
    logger.addHandler(handler)

    if logger.level > logging.DEBUG:
        for name in _QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
    return logger


def get_logger(name: str = ROOT_LOGGER) -> logging.Logger:
    return logging.getLogger(name)
