# backend/ledgerpos/logging_config.py

import logging
import os
from logging.handlers import RotatingFileHandler


LOG_FORMAT = '[%(asctime)s] %(levelname)s in %(name)s: %(message)s'


def configure_logging(app):
    """
    Attach handlers to app.logger.

    app.logger is the `ledgerpos` package logger, so the module loggers under
    ledgerpos.services.* propagate into the same handlers. Console always; a
    rotating file as well when LOG_FILE is set.
    """
    level = getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO)
    formatter = logging.Formatter(LOG_FORMAT)

    # create_app may run more than once per process (tests)
    for handler in list(app.logger.handlers):
        if getattr(handler, "_ledgerpos_handler", False):
            app.logger.removeHandler(handler)
            handler.close()

    handlers = [logging.StreamHandler()]

    log_file = app.config.get("LOG_FILE")
    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        handlers.append(RotatingFileHandler(log_file, maxBytes=5 * 1024 * 1024, backupCount=3))

    for handler in handlers:
        handler.setFormatter(formatter)
        handler.setLevel(level)
        handler._ledgerpos_handler = True
        app.logger.addHandler(handler)

    app.logger.setLevel(level)
