"""Logging configuration and custom logger with error tracing."""

import logging
import sys
from pathlib import Path
from logging.handlers import RotatingFileHandler
from typing import Any

from weblibri.config.env import LOG_FILE, ENABLE_LOGGING, LOG_LEVEL


class CustomLogger(logging.Logger):
    """Logger with *_trace helpers that attach the active stack trace."""

    def error_trace(self, msg: Any, *args: Any, **kwargs: Any) -> None:
        """Log an error message with full stack trace."""
        self.log_resource_usage()
        kwargs.pop('exc_info', None)
        self.error(msg, *args, exc_info=True, **kwargs)

    def warning_trace(self, msg: Any, *args: Any, **kwargs: Any) -> None:
        """Log a warning message with full stack trace."""
        self.log_resource_usage()
        kwargs.pop('exc_info', None)
        self.warning(msg, *args, exc_info=True, **kwargs)

    def info_trace(self, msg: Any, *args: Any, **kwargs: Any) -> None:
        """Log an info message (stack trace only if exception active)."""
        kwargs.pop('exc_info', None)
        has_exception = sys.exc_info()[0] is not None
        self.info(msg, *args, exc_info=has_exception, **kwargs)

    def log_resource_usage(self):
        # Best-effort only; this should never raise during exception logging.
        try:
            import psutil

            process = psutil.Process()
            own_mb = process.memory_info().rss / (1024 * 1024)

            # Converter and unzip run as children of the worker thread's process.
            children_mb = 0.0
            child_count = 0
            try:
                for child in process.children(recursive=True):
                    try:
                        children_mb += child.memory_info().rss / (1024 * 1024)
                        child_count += 1
                    except (psutil.NoSuchProcess, psutil.AccessDenied):
                        continue
            except (PermissionError, psutil.AccessDenied, OSError):
                children_mb = 0.0

            memory = psutil.virtual_memory()
            available_mb = memory.available / (1024 * 1024)
            self.debug(
                f"Memory: Server={own_mb:.2f} MB, Children={children_mb:.2f} MB ({child_count}), "
                f"Available={available_mb:.2f} MB, CPU: {psutil.cpu_percent():.2f}%"
            )
        except Exception:
            return


def setup_logger(name: str, log_file: Path = LOG_FILE) -> CustomLogger:
    """Set up and configure a logger instance.

    Repeated calls with the same name return the already configured logger.

    Args:
        name: The name of the logger instance
        log_file: Path to the rotating log file, used when ENABLE_LOGGING is set

    Returns:
        CustomLogger: Configured logger instance with error_trace method
    """
    logging.setLoggerClass(CustomLogger)
    logger = logging.getLogger(name)
    logging.setLoggerClass(logging.Logger)

    if logger.handlers:
        return logger

    log_level = getattr(logging, LOG_LEVEL, logging.INFO)
    logger.setLevel(log_level)

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s'
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    console_handler.setLevel(log_level)
    console_handler.addFilter(lambda record: record.levelno < logging.ERROR)
    logger.addHandler(console_handler)

    error_handler = logging.StreamHandler(sys.stderr)
    error_handler.setLevel(logging.ERROR)
    error_handler.setFormatter(formatter)
    logger.addHandler(error_handler)

    try:
        if ENABLE_LOGGING:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                log_file,
                maxBytes=10485760,  # 10MB
                backupCount=5
            )
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)
    except Exception as e:
        logger.error_trace(f"Failed to create log file: {e}")

    return logger
