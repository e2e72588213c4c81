"""
Logging setup for Barnbook jobs.

Library modules only call ``logging.getLogger(__name__)``; entry points
(cron scripts, the web process) call ``configure_logging()`` once to attach
handlers to the root logger.
"""

import json
import logging
import os
from logging.handlers import RotatingFileHandler

from config import Config

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

logger = logging.getLogger('barnbook')

_configured = False


class JsonFormatter(logging.Formatter):
    """One JSON object per line, for log shippers."""

    def format(self, record):
        entry = {
            "timestamp": self.formatTime(record, DATE_FORMAT),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.filename}:{record.lineno}",
        }
        if record.exc_info and record.exc_info[0] is not None:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry)


def _rotating(path, level, max_bytes, backups, formatter):
    try:
        handler = RotatingFileHandler(path, maxBytes=max_bytes, backupCount=backups)
    except OSError as e:
        logging.getLogger(__name__).warning(f"File logging disabled for {path}: {e}")
        return None
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def configure_logging(log_dir=None, fmt=None, console_level=logging.INFO):
    """
    Attach console and rotating-file handlers to the root logger.

    ``barnbook.log`` gets everything at DEBUG; ``errors.log`` only ERROR and
    above, which is where tuning anomalies and failed syncs end up. Calling
    this more than once is a no-op.
    """
    global _configured
    if _configured:
        return logger

    log_dir = log_dir or os.environ.get('LOG_DIR', 'logs')
    try:
        os.makedirs(log_dir, exist_ok=True)
    except OSError:
        log_dir = '.'

    fmt = (fmt or Config.LOG_FORMAT or 'text').lower()
    formatter = JsonFormatter() if fmt == 'json' else logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    console = logging.StreamHandler()
    console.setLevel(console_level)
    console.setFormatter(formatter)

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    root.addHandler(console)
    for handler in (
        _rotating(os.path.join(log_dir, 'barnbook.log'), logging.DEBUG, 5 * 1024 * 1024, 5, formatter),
        _rotating(os.path.join(log_dir, 'errors.log'), logging.ERROR, 2 * 1024 * 1024, 3, formatter),
    ):
        if handler:
            root.addHandler(handler)

    # Third-party chatter
    logging.getLogger('urllib3').setLevel(logging.WARNING)
    logging.getLogger('requests').setLevel(logging.WARNING)

    _configured = True
    logger.info(f"Barnbook logging initialized ({fmt}, {log_dir})")
    return logger
