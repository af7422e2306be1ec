"""
Logging configuration for Retenza.

Configures the root logger once per process. Modules log through
logging.getLogger(__name__) or current_app.logger.

Environment Variables:
    LOG_LEVEL: DEBUG, INFO, WARNING, ERROR (default INFO)
"""
import os
import sys
import logging

LOG_FORMAT = '%(asctime)s [%(levelname)s] %(name)s: %(message)s'

# Third-party loggers that are too chatty at INFO
NOISY_LOGGERS = ('apscheduler', 'urllib3', 'werkzeug', 'sqlalchemy.engine')

_configured = False


def setup_logging(level: str = None) -> None:
    """
    Configure root logging with a single stream handler.

    Safe to call more than once; only the first call installs the handler.
    """
    global _configured

    level_name = (level or os.getenv('LOG_LEVEL', 'INFO')).upper()
    log_level = getattr(logging, level_name, logging.INFO)

    root = logging.getLogger()
    root.setLevel(log_level)

    if _configured:
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))

    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Get a module logger."""
    return logging.getLogger(name)
