import logging
from pathlib import Path

from giftpool.core.config import settings

FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def _has_file_handler(logger: logging.Logger, path: Path) -> bool:
    target = str(path.resolve())
    return any(
        isinstance(handler, logging.FileHandler) and handler.baseFilename == target
        for handler in logger.handlers
    )


def _attach_file(logger: logging.Logger, filename: str, formatter: logging.Formatter) -> None:
    path = Path(filename)
    if _has_file_handler(logger, path):
        return
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def configure_logging() -> logging.Logger:
    """Set up root handlers, the ``giftpool`` logger tree and the audit trail.

    Safe to call more than once.
    """
    level = getattr(logging, (settings.log_level or "INFO").upper(), logging.INFO)
    formatter = logging.Formatter(FORMAT)

    root = logging.getLogger()
    if not root.handlers:
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(formatter)
        root.addHandler(stream_handler)
    if settings.log_file:
        _attach_file(root, settings.log_file, formatter)
    root.setLevel(level)

    # Audit events always reach the audit file, whatever the app log level.
    audit = logging.getLogger("giftpool.audit")
    audit.setLevel(logging.INFO)
    if settings.audit_log_file:
        _attach_file(audit, settings.audit_log_file, formatter)

    sql_level = getattr(logging, (settings.sql_log_level or "WARNING").upper(), logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(sql_level)

    logger = logging.getLogger("giftpool")
    logger.setLevel(level)
    return logger
