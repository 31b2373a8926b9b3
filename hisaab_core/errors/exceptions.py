# =============================================================================
# hisaab_core/errors/exceptions.py
# Custom Exception Hierarchy for the HisaabDost offline layer
# =============================================================================

from typing import Optional, Dict, Any, List


class HisaabError(Exception):
    """
    Base exception for all HisaabDost offline-layer errors.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code (e.g., "NET_001")
        details: Additional context as a dictionary
        recoverable: Whether the error can be recovered from
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        recoverable: bool = True,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or "HD_000"
        self.details = details or {}
        self.recoverable = recoverable

    def __str__(self) -> str:
        base = f"[{self.code}] {self.message}"
        if self.details:
            base += f" | Details: {self.details}"
        return base

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization"""
        return {
            "error_type": self.__class__.__name__,
            "code": self.code,
            "message": self.message,
            "details": self.details,
            "recoverable": self.recoverable,
        }


# =============================================================================
# NETWORK EXCEPTIONS
# =============================================================================

class NetworkError(HisaabError):
    """Raised when the transport fails (offline, DNS, refused, timeout)"""

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        method: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if url:
            details["url"] = url
        if method:
            details["method"] = method

        super().__init__(
            message=message,
            code="NET_001",
            details=details,
            **kwargs,
        )


# =============================================================================
# CACHE EXCEPTIONS
# =============================================================================

class CacheWriteError(HisaabError):
    """Raised when a snapshot cannot be written to a cache store"""

    def __init__(
        self,
        message: str,
        store: Optional[str] = None,
        key: Optional[str] = None,
        code: str = "CACHE_001",
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if store:
            details["store"] = store
        if key:
            details["key"] = key

        super().__init__(
            message=message,
            code=code,
            details=details,
            **kwargs,
        )


class QuotaExceededError(CacheWriteError):
    """Raised when a write would push the storage past its byte quota"""

    def __init__(
        self,
        message: str,
        quota_bytes: Optional[int] = None,
        required_bytes: Optional[int] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if quota_bytes is not None:
            details["quota_bytes"] = quota_bytes
        if required_bytes is not None:
            details["required_bytes"] = required_bytes

        super().__init__(
            message=message,
            code="CACHE_002",
            details=details,
            **kwargs,
        )


# =============================================================================
# WORKER LIFECYCLE EXCEPTIONS
# =============================================================================

class InstallError(HisaabError):
    """Raised when the app shell cannot be fully pre-cached"""

    def __init__(
        self,
        message: str,
        failed_urls: Optional[List[str]] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if failed_urls:
            details["failed_urls"] = failed_urls

        super().__init__(
            message=message,
            code="SW_001",
            details=details,
            recoverable=False,
            **kwargs,
        )


class SyncError(HisaabError):
    """Raised by a sync handler that wants the platform to redeliver its tag"""

    def __init__(
        self,
        message: str,
        tag: Optional[str] = None,
        status: Optional[int] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if tag:
            details["tag"] = tag
        if status is not None:
            details["status"] = status

        super().__init__(
            message=message,
            code="SYNC_001",
            details=details,
            **kwargs,
        )


class PushPayloadError(HisaabError):
    """Raised when an inbound push payload is not valid JSON"""

    def __init__(self, message: str, **kwargs):
        super().__init__(message=message, code="PUSH_001", **kwargs)


# =============================================================================
# CONFIGURATION EXCEPTIONS
# =============================================================================

class ConfigurationError(HisaabError):
    """Raised when configuration is invalid or missing"""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        expected_type: Optional[str] = None,
        **kwargs,
    ):
        details = kwargs.pop("details", {})
        if config_key:
            details["config_key"] = config_key
        if expected_type:
            details["expected_type"] = expected_type

        super().__init__(
            message=message,
            code="CONFIG_001",
            details=details,
            recoverable=False,
            **kwargs,
        )
