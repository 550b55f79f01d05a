"""Utility modules for retries, logging and auditing."""
from .connection import retry_policy, RETRYABLE_EXCEPTIONS
from .logging_config import (
    setup_logging,
    timed,
    timed_section,
    perf_logger,
)
from .audit_log import (
    ChangeRecord,
    setup_audit_logging,
    log_change,
    get_recent_changes,
)

__all__ = [
    "retry_policy",
    "RETRYABLE_EXCEPTIONS",
    "setup_logging",
    "timed",
    "timed_section",
    "perf_logger",
    "ChangeRecord",
    "setup_audit_logging",
    "log_change",
    "get_recent_changes",
]
