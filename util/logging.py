"""
Structured logging for ledger operations.
Index/record reads and writes, decode failures and partial writes are all
reported through one named logger so an operator can follow a submission.
"""

import logging
from typing import Any, Dict, List

# Plaintext-bearing fields never written to a log line verbatim
SENSITIVE_FIELDS = ['question', 'answer', 'plaintext', 'secret', 'password']


class StructuredLogger:
    """Structured logger for key-value and ledger operations."""

    def __init__(self, name: str = "advice_ledger"):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.INFO)

        # Create handler if not already set
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)

    def log_operation(self, operation: str, status: str, details: Dict[str, Any] = None):
        """Log a structured operation."""
        message = f"Operation: {operation}, Status: {status}"
        if details:
            message += f", Details: {details}"

        if status in ("failed", "rejected"):
            self.logger.warning(message)
        else:
            self.logger.info(message)

    def log_kv_operation(self, operation: str, key: str, size: int = None, status: str = "success"):
        """Log a store-level operation. Values are never logged, only their size."""
        details = {"key": key}
        if size is not None:
            details["bytes"] = size

        self.log_operation(f"KV.{operation}", status, details)

    def log_ledger_event(self, event: str, advice_id: str = None, details: Dict[str, Any] = None, status: str = "success"):
        """Log a ledger-level event (submit, index append, refresh, repair)."""
        log_details = {}
        if advice_id is not None:
            log_details["advice_id"] = advice_id
        if details:
            log_details.update(sanitize_payload(details))

        self.log_operation(f"ledger.{event}", status, log_details)

    def log_decode_failure(self, kind: str, key: str, error: Any):
        """Log an index or record that could not be decoded and was skipped."""
        self.log_operation(f"decode.{kind}", "skipped", {
            "key": key,
            "error": str(error)[:100]
        })

    def log_write_failure(self, kind: str, key: str, error: Any = None, partial: bool = False):
        """Log a failed record or index write."""
        details = {"key": key, "partial": partial}
        if error is not None:
            details["error"] = str(error)[:100]

        self.log_operation(f"write.{kind}", "failed", details)

    # Standard logging methods for compatibility
    def info(self, message: str) -> None:
        """Log an info message."""
        self.logger.info(message)

    def warning(self, message: str) -> None:
        """Log a warning message."""
        self.logger.warning(message)

    def error(self, message: str) -> None:
        """Log an error message."""
        self.logger.error(message)

    def debug(self, message: str) -> None:
        """Log a debug message."""
        self.logger.debug(message)


# Global logger instance
logger = StructuredLogger()


def sanitize_payload(payload: Any, reveal_sensitive: bool = False, sensitive_fields: List[str] = None) -> Any:
    """Sanitize payloads for logging."""
    if sensitive_fields is None:
        sensitive_fields = SENSITIVE_FIELDS

    if isinstance(payload, dict):
        sanitized = {}
        for k, v in payload.items():
            if reveal_sensitive or k not in sensitive_fields:
                sanitized[k] = sanitize_payload(v, reveal_sensitive, sensitive_fields)
            else:
                sanitized[k] = "[REDACTED]"
        return sanitized
    elif isinstance(payload, str):
        # Truncate long strings
        return payload[:100] + "..." if len(payload) > 100 else payload
    elif isinstance(payload, list):
        return [sanitize_payload(item, reveal_sensitive, sensitive_fields) for item in payload]
    else:
        return payload
