# logging_config.py
import logging
import logging.config
from pathlib import Path
from typing import Any, Dict, Optional

CONSOLE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
FILE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s:%(lineno)d: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5

# third-party loggers that are too chatty below WARNING
QUIET_LOGGERS = ("pymongo", "pymongo.serverSelection", "pymongo.connection")
UVICORN_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")

def build_logging_config(log_level: str = "INFO", log_file: Optional[str] = None) -> Dict[str, Any]:
    """dictConfig for the API: console always, a rotating file when `log_file` is set."""
    handlers: Dict[str, Dict[str, Any]] = {
        "console": {
            "level": log_level,
            "class": "logging.StreamHandler",
            "formatter": "console",
            "stream": "ext://sys.stdout",
        }
    }
    if log_file:
        handlers["file"] = {
            "level": log_level,
            "class": "logging.handlers.RotatingFileHandler",
            "formatter": "file",
            "filename": log_file,
            "maxBytes": LOG_FILE_MAX_BYTES,
            "backupCount": LOG_FILE_BACKUPS,
            "encoding": "utf-8",
        }
    names = list(handlers)

    loggers: Dict[str, Dict[str, Any]] = {
        "": {"handlers": names, "level": log_level, "propagate": False},
    }
    # uvicorn installs its own handlers unless told otherwise
    for name in UVICORN_LOGGERS:
        loggers[name] = {"handlers": names, "level": "INFO", "propagate": False}
    for name in QUIET_LOGGERS:
        loggers[name] = {"level": "WARNING"}

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "console": {"format": CONSOLE_FORMAT, "datefmt": DATE_FORMAT},
            "file": {"format": FILE_FORMAT, "datefmt": DATE_FORMAT},
        },
        "handlers": handlers,
        "loggers": loggers,
    }

def setup_logging(log_level: str = "INFO", log_file: Optional[str] = None) -> None:
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
    logging.config.dictConfig(build_logging_config(log_level, log_file))

    logger = logging.getLogger(__name__)
    logger.info(f"Logging configured with level {log_level}" + (f", file {log_file}" if log_file else ""))
