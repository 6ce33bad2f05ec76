# Utils module exports
from spotify_resolver.utils.logger import (
    get_logger,
    log_error,
    log_info,
    log_success,
    log_warning,
    setup_logging,
)

__all__ = [
    "setup_logging",
    "get_logger",
    "log_info",
    "log_success",
    "log_warning",
    "log_error",
]
