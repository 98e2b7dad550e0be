"""Utility modules for deal-archiver."""

from deal_archiver.utils.logging import (
    configure_logging,
    get_cycle_id,
    get_logger,
    new_cycle_id,
    set_cycle_id,
    set_record_id,
)
from deal_archiver.utils.result import (
    ConfigError,
    Err,
    ExitCode,
    GuardError,
    Ok,
    Result,
    ResultError,
)

__all__ = [
    # Logging
    "configure_logging",
    "get_logger",
    "get_cycle_id",
    "new_cycle_id",
    "set_cycle_id",
    "set_record_id",
    # Result
    "Ok",
    "Err",
    "Result",
    "ResultError",
    "ConfigError",
    "GuardError",
    "ExitCode",
]
