"""
Logging setup for the API process and the RQ pipeline worker.

configure_logging() is called from create_app() and at the start of each
run_pipeline job. Module loggers are named after their layer
(`pipeline.orchestrator`, `pipeline.manager`, `services.apify`,
`routes.generate`, ...). Pipeline code passes `extra={'session_id': ...}` so
every line can be tied back to one session: JSON output gets a `session_id`
field, text output a `[session_id]` tag after the logger name.

Environment:
    LOG_LEVEL  — level name, default INFO (unknown names fall back to INFO)
    LOG_FORMAT — "text" (default) or "json"
"""
import json
import logging
import os
import sys
from datetime import datetime, timezone


class SessionContextFilter(logging.Filter):
    """Sets record.session_tag so the text format can show the session id."""

    def filter(self, record):
        session_id = getattr(record, 'session_id', None)
        record.session_tag = f" [{session_id}]" if session_id else ''
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per line, with the pipeline session id when known."""

    def format(self, record):
        entry = {
            'timestamp': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
        }
        session_id = getattr(record, 'session_id', None)
        if session_id:
            entry['session_id'] = session_id
        if record.exc_info and record.exc_info[0] is not None:
            entry['exception'] = self.formatException(record.exc_info)
        return json.dumps(entry)


TEXT_FORMAT = '[%(asctime)s] %(levelname)s %(name)s%(session_tag)s — %(message)s'

# Provider SDKs and the RQ worker log every request/job at INFO
_NOISY_LOGGERS = [
    'urllib3',
    'openai',
    'httpcore',
    'httpx',
    'apify_client',
    'rq.worker',
]


def configure_logging(app=None):
    """Install a single stderr handler on the root logger. Safe to call repeatedly."""
    level = getattr(logging, os.getenv('LOG_LEVEL', 'INFO').upper(), logging.INFO)
    log_format = os.getenv('LOG_FORMAT', 'text').lower()

    root = logging.getLogger()
    root.setLevel(level)
    # RQ re-imports and create_app() may run more than once per process
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.addFilter(SessionContextFilter())
    if log_format == 'json':
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT, datefmt='%Y-%m-%d %H:%M:%S'))
    root.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    if app is not None:
        app.logger.setLevel(level)
