"""
Logging configuration for Inheritable.

Provides structured JSON logging for audit trails and debugging.
"""

import json
import logging
import sys
import time
import uuid
from contextvars import ContextVar
from typing import Optional

# Context variable for request ID tracking
request_id_var: ContextVar[str] = ContextVar('request_id', default='')


class StructuredFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    Outputs logs in a consistent JSON format suitable for
    log aggregation systems.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": time.strftime('%Y-%m-%dT%H:%M:%SZ', time.gmtime(record.created)),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        # Add request ID if available
        request_id = request_id_var.get()
        if request_id:
            log_data["request_id"] = request_id

        # Add exception info if present
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Add extra fields
        if hasattr(record, 'extra_fields'):
            log_data.update(record.extra_fields)

        return json.dumps(log_data, default=str)


class AuditLogger:
    """
    Specialized logger for audit events.

    One method per state change of a governed account, plus rejections.
    """

    def __init__(self, name: str = "inheritable.audit"):
        self._logger = logging.getLogger(name)

    def _log(self, level: int, event_type: str, **kwargs) -> None:
        """Internal logging method with extra fields."""
        extra = {
            "event_type": event_type,
            "request_id": request_id_var.get(),
            **kwargs
        }

        record = self._logger.makeRecord(
            self._logger.name,
            level,
            "",
            0,
            f"{event_type}: {kwargs.get('message', '')}",
            (),
            None
        )
        record.extra_fields = extra
        self._logger.handle(record)

    def config_updated(
        self,
        account: str,
        inheritor: str,
        delay: int,
        cleared: bool = False
    ) -> None:
        """Log a configuration change."""
        self._log(
            logging.INFO,
            "CONFIG_UPDATED",
            account=account,
            inheritor=inheritor,
            delay=delay,
            cleared=cleared,
            message=f"Configuration {'cleared' if cleared else 'updated'} for {account}"
        )

    def checkpoint_recorded(
        self,
        account: str,
        nonce: int,
        timestamp: int,
        block_number: int
    ) -> None:
        """Log a new checkpoint."""
        self._log(
            logging.INFO,
            "CHECKPOINT_RECORDED",
            account=account,
            nonce=nonce,
            timestamp=timestamp,
            block_number=block_number,
            message=f"Checkpoint nonce={nonce} recorded for {account}"
        )

    def inheritance_claimed(
        self,
        account: str,
        inheritor: str,
        nonce: int,
        timestamp: int,
        block_number: int
    ) -> None:
        """Log a successful claim."""
        self._log(
            logging.WARNING,
            "INHERITANCE_CLAIMED",
            account=account,
            inheritor=inheritor,
            nonce=nonce,
            timestamp=timestamp,
            block_number=block_number,
            message=f"Inheritance of {account} claimed by {inheritor}"
        )

    def claim_reset(self, account: str) -> None:
        """Log a claim reset by the account authority."""
        self._log(
            logging.INFO,
            "CLAIM_RESET",
            account=account,
            message=f"Claim reset for {account}"
        )

    def operation_rejected(
        self,
        account: str,
        operation: str,
        code: str,
        reason: str
    ) -> None:
        """Log a rejected operation."""
        self._log(
            logging.WARNING,
            "OPERATION_REJECTED",
            account=account,
            operation=operation,
            code=code,
            reason=reason,
            message=f"{operation} rejected: {code}"
        )


def configure_logging(
    level: str = "INFO",
    json_format: bool = True,
    log_file: Optional[str] = None
) -> None:
    """
    Configure logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: Use JSON formatting
        log_file: Optional file path for log output
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    if json_format:
        formatter = StructuredFormatter()
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        )

    # Logs go to stderr so command output on stdout stays parseable
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)


def set_request_id(request_id: Optional[str] = None) -> str:
    """
    Set the request ID for the current context.

    Args:
        request_id: Request ID to set, or None to generate one

    Returns:
        The request ID that was set
    """
    if request_id is None:
        request_id = str(uuid.uuid4())
    request_id_var.set(request_id)
    return request_id


def get_request_id() -> str:
    """Get the current request ID."""
    return request_id_var.get()


# Global audit logger instance
audit_log = AuditLogger()
