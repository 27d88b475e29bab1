# logger.py
import logging
import os
import sys

LOG_FILE = os.environ.get("OCNE_WIZARD_LOG", "/var/log/ocne_wizard.log")
FALLBACK_LOG_FILE = "/tmp/ocne_wizard.log"

_FORMATTER = logging.Formatter(
    "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%S",
)


def _file_handler(path: str) -> logging.FileHandler:
    # /var/log is root-only on most hosts
    try:
        fh = logging.FileHandler(path)
    except OSError:
        fh = logging.FileHandler(FALLBACK_LOG_FILE)
    fh.setLevel(logging.DEBUG)
    fh.setFormatter(_FORMATTER)
    return fh


def setup_logger(name: str = "ocne_wizard", log_file: str = LOG_FILE) -> logging.Logger:
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger
    logger.setLevel(logging.DEBUG)
    logger.addHandler(_file_handler(log_file))

    # stderr belongs to the TUI while it runs; only warnings go there
    sh = logging.StreamHandler(sys.stderr)
    sh.setLevel(logging.WARNING)
    sh.setFormatter(_FORMATTER)
    logger.addHandler(sh)
    return logger


def redirect(log_file: str) -> str:
    """Move the shared logger's file output to ``log_file``; returns the path in use."""
    for handler in list(log.handlers):
        if isinstance(handler, logging.FileHandler):
            log.removeHandler(handler)
            handler.close()
    fh = _file_handler(log_file)
    log.addHandler(fh)
    log.debug("Logging to %s", fh.baseFilename)
    return fh.baseFilename


log = setup_logger()
