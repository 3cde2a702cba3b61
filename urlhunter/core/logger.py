"""
Logging System

This module provides centralized logging configuration for urlhunter.
Console output goes to stderr so that match output on stdout stays
clean and pipeable.
"""

import logging
import logging.handlers
import os
import sys
from pathlib import Path
from typing import Optional, Dict


class MarkerFormatter(logging.Formatter):
    """
    Formatter that prefixes each console line with a level marker.

    Warnings and errors carry a distinguishing marker so that fatal
    conditions stand out from progress messages.
    """

    MARKERS = {
        logging.DEBUG: "[DEBUG]: ",
        logging.INFO: "[+]: ",
        logging.WARNING: "[WARNING]: ",
        logging.ERROR: "[ERROR]: ",
        logging.CRITICAL: "[ERROR]: ",
    }

    def format(self, record: logging.LogRecord) -> str:
        marker = self.MARKERS.get(record.levelno, "")
        return marker + super().format(record)


class HunterLogger:
    """
    Centralized logging system for the urlhunter application.

    Provides a console handler with level markers and, when a log
    directory is given, a rotating file handler with full detail.
    """

    def __init__(self, log_dir: Optional[str] = None, app_name: str = "urlhunter"):
        """
        Initialize the logging system.

        Args:
            log_dir: Directory to store log files (None disables file logging)
            app_name: Name of the application logger
        """
        self.log_dir = Path(log_dir) if log_dir else None
        self.app_name = app_name
        self.loggers: Dict[str, logging.Logger] = {}

        if self.log_dir is not None:
            self.log_dir.mkdir(parents=True, exist_ok=True)

    def setup_logger(self, level: int = logging.INFO) -> logging.Logger:
        """
        Set up the main application logger with console and file handlers.

        Args:
            level: Console logging level (default: INFO)

        Returns:
            Configured logger instance
        """
        logger = logging.getLogger(self.app_name)
        logger.setLevel(logging.DEBUG)
        logger.propagate = False

        # Re-initialisation replaces handlers instead of stacking them
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()

        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(level)
        console_handler.setFormatter(MarkerFormatter('%(message)s'))
        logger.addHandler(console_handler)

        if self.log_dir is not None:
            detailed_formatter = logging.Formatter(
                '%(asctime)s | %(name)s | %(levelname)s | %(threadName)s | %(message)s',
                datefmt='%Y-%m-%d %H:%M:%S'
            )
            file_handler = logging.handlers.RotatingFileHandler(
                self.log_dir / f"{self.app_name}.log",
                maxBytes=10*1024*1024,  # 10MB
                backupCount=5,
                encoding='utf-8'
            )
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(detailed_formatter)
            logger.addHandler(file_handler)

        self.loggers['main'] = logger
        return logger

    def get_logger(self, name: str) -> logging.Logger:
        """
        Get a logger for a specific component.

        Args:
            name: Name of the module/component

        Returns:
            Logger instance for the component
        """
        full_name = name if name.startswith(self.app_name) else f"{self.app_name}.{name}"

        if full_name not in self.loggers:
            self.loggers[full_name] = logging.getLogger(full_name)

        return self.loggers[full_name]

    def log_system_info(self):
        """Log system information for debugging."""
        logger = self.get_logger('system')

        logger.debug(f"Python version: {sys.version}")
        logger.debug(f"Platform: {sys.platform}")
        logger.debug(f"Working directory: {os.getcwd()}")
        if self.log_dir is not None:
            logger.debug(f"Log directory: {self.log_dir.absolute()}")


# Global logger instance
_logger_instance: Optional[HunterLogger] = None


def initialize_logging(log_dir: Optional[str] = None, level: int = logging.INFO) -> logging.Logger:
    """
    Initialize the global logging system.

    Args:
        log_dir: Directory for log files (optional)
        level: Console logging level
    """
    global _logger_instance
    _logger_instance = HunterLogger(log_dir)
    logger = _logger_instance.setup_logger(level)
    _logger_instance.log_system_info()
    return logger
