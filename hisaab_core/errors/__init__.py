# =============================================================================
# hisaab_core/errors/__init__.py
# Centralized Error Handling for the HisaabDost offline layer
# =============================================================================

from .exceptions import (
    HisaabError,
    NetworkError,
    CacheWriteError,
    QuotaExceededError,
    InstallError,
    SyncError,
    PushPayloadError,
    ConfigurationError,
)

from .handlers import (
    USER_MESSAGES,
    describe_error,
    handle_error,
    safe_execute,
    ErrorContext,
)

__all__ = [
    # Exceptions
    "HisaabError",
    "NetworkError",
    "CacheWriteError",
    "QuotaExceededError",
    "InstallError",
    "SyncError",
    "PushPayloadError",
    "ConfigurationError",
    # Handlers
    "USER_MESSAGES",
    "describe_error",
    "handle_error",
    "safe_execute",
    "ErrorContext",
]
