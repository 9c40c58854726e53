"""
Logging configuration for the trading engine.

Console and rotating-file handlers for the application loggers, plus a
dedicated audit logger that records every order event on its own.
"""

import logging
import logging.handlers
import os
import sys
from typing import Optional, Dict, Any


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    max_file_size: int = 10 * 1024 * 1024,  # 10MB
    backup_count: int = 5
) -> None:
    """
    Set up logging configuration for the trading engine.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Path to log file (optional)
        max_file_size: Maximum log file size in bytes
        backup_count: Number of backup files to keep
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    detailed_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    simple_formatter = logging.Formatter(
        '%(asctime)s - %(levelname)s - %(message)s',
        datefmt='%H:%M:%S'
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(simple_formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        _ensure_parent_dir(log_file)
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=max_file_size,
            backupCount=backup_count
        )
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(detailed_formatter)
        root_logger.addHandler(file_handler)

    # Quiet chatty libraries
    logging.getLogger('websockets').setLevel(logging.WARNING)
    logging.getLogger('asyncio').setLevel(logging.WARNING)
    logging.getLogger('werkzeug').setLevel(logging.WARNING)

    logger = logging.getLogger(__name__)
    logger.info(f"Logging initialized - Level: {level}, File: {log_file or 'Console only'}")


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for a specific module.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)


def _ensure_parent_dir(path: str) -> None:
    log_dir = os.path.dirname(path)
    if log_dir and not os.path.exists(log_dir):
        os.makedirs(log_dir, exist_ok=True)


def create_audit_logger(log_file: Optional[str] = "logs/audit.log", name: str = "audit") -> logging.Logger:
    """
    Create a dedicated audit logger for order events.

    Args:
        log_file: Path to audit log file; None keeps the logger handler-less
        name: Logger name

    Returns:
        Audit logger instance
    """
    audit_logger = logging.getLogger(name)
    audit_logger.setLevel(logging.INFO)

    # Audit lines never reach the application log
    audit_logger.propagate = False

    if log_file and not audit_logger.handlers:
        _ensure_parent_dir(log_file)
        audit_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=50 * 1024 * 1024,  # 50MB
            backupCount=10
        )
        audit_handler.setFormatter(logging.Formatter(
            '%(asctime)s|%(levelname)s|%(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        ))
        audit_logger.addHandler(audit_handler)

    return audit_logger


def log_order_audit(audit_logger: logging.Logger, action: str, order_data: Dict[str, Any]) -> None:
    """
    Log an order event to the audit trail.

    Args:
        audit_logger: Audit logger instance
        action: Event (SUBMIT, FILL, REST, CANCEL)
        order_data: Order in wire format
    """
    audit_logger.info(
        f"ORDER_{action}|"
        f"ID:{order_data.get('id', 'N/A')}|"
        f"CROP:{order_data.get('crop', 'N/A')}|"
        f"SIDE:{order_data.get('type', 'N/A')}|"
        f"QTY:{order_data.get('quantity', 'N/A')}|"
        f"PRICE:{order_data.get('price', 'N/A')}|"
        f"STATUS:{order_data.get('status', 'N/A')}|"
        f"TRADER:{order_data.get('trader', 'N/A')}"
    )
