"""
PerfGate Domain-Specific Exceptions
===================================

This module defines a hierarchy of exceptions for consistent error handling
across the performance gating engine.

Exception Hierarchy:
    PerfGateError (base)
    ├── RecoverableError (transient, retry possible)
    │   └── ProbeTimeoutError
    ├── IrrecoverableError (permanent, requires intervention)
    │   ├── ConfigurationError
    │   ├── ValidationError
    │   ├── MonitorStateError
    │   └── NotFoundError
    │       └── AlertNotFoundError
    └── StorageError
        ├── BaselineStorageError
        └── DataCorruptionError

Usage Guidelines:
    - Probe failures never leave the Prober; they become ProbeResult records.
    - Return None for "no baseline" (expected case, not an error).
    - Only configuration errors may abort a pipeline run before probing.
    - Use error_code for API responses.
"""

from enum import Enum
from typing import Any, Optional
import os


class ErrorCategory(Enum):
    """Categories for error classification."""
    PROBE = "PROBE"
    STORAGE = "STORAGE"
    CONFIG = "CONFIG"
    VALIDATION = "VALIDATION"
    MONITOR = "MONITOR"
    SYSTEM = "SYSTEM"


class PerfGateError(Exception):
    """
    Base exception for all PerfGate errors.

    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code for API responses
        context: Additional context about the error
        recoverable: Whether the error is potentially recoverable
    """

    error_code: str = "PERFGATE_ERROR"
    recoverable: bool = True
    category: ErrorCategory = ErrorCategory.SYSTEM

    def __init__(
        self,
        message: str,
        context: Optional[dict] = None,
        error_code: Optional[str] = None,
        recoverable: Optional[bool] = None
    ):
        super().__init__(message)
        self.message = message
        self.context = context or {}
        if error_code is not None:
            self.error_code = error_code
        if recoverable is not None:
            self.recoverable = recoverable

    def __str__(self) -> str:
        if self.context:
            return f"{self.message} | context={self.context}"
        return self.message

    def to_dict(self, include_traceback: bool = False) -> dict:
        """
        Convert exception to dictionary for JSON response.

        Args:
            include_traceback: Whether to include stack trace (only in DEBUG mode)
        """
        result = {
            "error": self.message,
            "code": self.error_code,
            "recoverable": self.recoverable,
        }

        if include_traceback:
            import traceback
            result["traceback"] = traceback.format_exc()

        if self.context:
            result["context"] = self.context

        return result


# =============================================================================
# Base Categories: Recoverable vs Irrecoverable
# =============================================================================

class RecoverableError(PerfGateError):
    """Transient errors that may succeed on retry (timeouts, flaky targets)."""
    recoverable = True


class IrrecoverableError(PerfGateError):
    """Permanent errors that require intervention (bad config, bad input)."""
    recoverable = False


# =============================================================================
# Probe Errors
# =============================================================================

class ProbeTimeoutError(RecoverableError):
    """Raised inside the Prober when the target exceeds the per-probe timeout."""
    error_code = "PROBE_TIMEOUT"
    category = ErrorCategory.PROBE

    def __init__(self, query: str, timeout_seconds: float, context: Optional[dict] = None):
        ctx = {"query": query, "timeout_seconds": timeout_seconds}
        if context:
            ctx.update(context)
        super().__init__(f"Probe timed out after {timeout_seconds:g}s", ctx)
        self.query = query
        self.timeout_seconds = timeout_seconds


# =============================================================================
# Storage Errors
# =============================================================================

class StorageError(PerfGateError):
    """Base exception for baseline persistence errors."""
    error_code = "STORAGE_ERROR"
    category = ErrorCategory.STORAGE


class BaselineStorageError(StorageError):
    """Raised when the baseline document cannot be written."""
    error_code = "BASELINE_STORAGE_ERROR"

    def __init__(self, path: str, reason: str, context: Optional[dict] = None):
        ctx = {"path": path}
        if context:
            ctx.update(context)
        super().__init__(f"Failed to persist baseline: {reason}", ctx)
        self.path = path


class DataCorruptionError(IrrecoverableError, StorageError):
    """Raised when a stored document is corrupt or cannot be deserialized."""
    error_code = "DATA_CORRUPTION_ERROR"

    def __init__(self, resource_id: str, reason: str = "Data corruption detected", context: Optional[dict] = None):
        ctx = {"resource_id": resource_id}
        if context:
            ctx.update(context)
        super().__init__(f"{reason} for resource '{resource_id}'", ctx)
        self.resource_id = resource_id


# =============================================================================
# Configuration / Validation Errors
# =============================================================================

class ConfigurationError(IrrecoverableError):
    """Raised when configuration is invalid or a required input is missing."""
    error_code = "CONFIGURATION_ERROR"
    category = ErrorCategory.CONFIG

    def __init__(self, config_key: str, reason: str, context: Optional[dict] = None):
        ctx = {"config_key": config_key}
        if context:
            ctx.update(context)
        super().__init__(f"Configuration error for '{config_key}': {reason}", ctx)
        self.config_key = config_key


class ValidationError(IrrecoverableError):
    """Raised when caller-supplied input fails validation."""
    error_code = "VALIDATION_ERROR"
    category = ErrorCategory.VALIDATION

    def __init__(self, field: str, reason: str, value: Any = None, context: Optional[dict] = None):
        ctx = {"field": field}
        if value is not None:
            ctx["value"] = value
        if context:
            ctx.update(context)
        super().__init__(f"Validation error for '{field}': {reason}", ctx)
        self.field = field
        self.reason = reason


class MonitorStateError(IrrecoverableError):
    """Raised on an illegal monitor lifecycle transition."""
    error_code = "MONITOR_STATE_ERROR"
    category = ErrorCategory.MONITOR

    def __init__(self, state: str, action: str, context: Optional[dict] = None):
        ctx = {"state": state, "action": action}
        if context:
            ctx.update(context)
        super().__init__(f"Cannot {action} monitor while {state}", ctx)
        self.state = state
        self.action = action


# =============================================================================
# Lookup Errors
# =============================================================================

class NotFoundError(IrrecoverableError):
    """Base exception for lookups of records that do not exist."""
    error_code = "NOT_FOUND"
    category = ErrorCategory.SYSTEM


class AlertNotFoundError(NotFoundError):
    """Raised when an alert id is not in the alert log."""
    error_code = "ALERT_NOT_FOUND"

    def __init__(self, alert_id: str, context: Optional[dict] = None):
        ctx = {"alert_id": alert_id}
        if context:
            ctx.update(context)
        super().__init__(f"Alert '{alert_id}' not found", ctx)
        self.alert_id = alert_id


def is_debug_mode() -> bool:
    """Check whether DEBUG responses (with tracebacks) are enabled."""
    return os.environ.get("PERFGATE_DEBUG", "").lower() in ("1", "true", "yes")


__all__ = [
    "ErrorCategory",
    "PerfGateError",
    "RecoverableError",
    "IrrecoverableError",
    "ProbeTimeoutError",
    "StorageError",
    "BaselineStorageError",
    "DataCorruptionError",
    "ConfigurationError",
    "ValidationError",
    "MonitorStateError",
    "NotFoundError",
    "AlertNotFoundError",
    "is_debug_mode",
]
