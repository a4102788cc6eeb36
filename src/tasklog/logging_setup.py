from __future__ import annotations

import logging
from pathlib import Path

from .config import LOG_NAME

logger = logging.getLogger("tasklog")

_AUDIT_FORMAT = "[%(asctime)s] [%(levelname)s] %(message)s"


def setup_logging(log_dir: str | Path, level: int = logging.INFO) -> None:
    """
    Attach the audit file handler to the ``tasklog`` logger.

    Nothing is printed to the console from here; user-facing output goes
    through ``tasklog.ui``. Calling this twice does not duplicate handlers.
    """
    for h in list(logger.handlers):
        logger.removeHandler(h)
        h.close()

    logger.setLevel(level)
    logger.propagate = False

    log_dir = Path(log_dir)
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(str(log_dir / LOG_NAME), encoding="utf-8")
    except OSError:
        # Unwritable log dir: run the command without an audit trail.
        logger.addHandler(logging.NullHandler())
        return

    fh.setFormatter(logging.Formatter(_AUDIT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    logger.addHandler(fh)


def log_audit(action: str, details: str = "") -> None:
    """Append one line to the audit log."""
    logger.info("[%s] %s", action, details)
