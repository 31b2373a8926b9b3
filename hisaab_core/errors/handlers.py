# =============================================================================
# hisaab_core/errors/handlers.py
# Error Handling Utilities for the HisaabDost offline layer
# =============================================================================

from __future__ import annotations
import logging
import traceback
from typing import Any, Callable, Dict, Optional, TypeVar
import streamlit as st

from hisaab_core.logging import get_logger
from .exceptions import HisaabError

logger = get_logger(__name__)

T = TypeVar("T")

# What a person at the console sees for each error code
USER_MESSAGES = {
    "NET_001": "You appear to be offline. Cached data is shown where available",
    "CACHE_001": "A response could not be saved for offline use",
    "CACHE_002": "Offline storage is full. Older cached data may be missing",
    "SW_001": "Offline mode could not be set up for this version",
    "SYNC_001": "Changes will sync when the connection returns",
    "PUSH_001": "A notification could not be read",
    "CONFIG_001": "Offline settings are invalid",
}


def describe_error(error: Exception) -> Dict[str, Any]:
    """to_dict() for HisaabError; an equivalent shape for anything else."""
    if isinstance(error, HisaabError):
        return error.to_dict()
    return {
        "error_type": error.__class__.__name__,
        "code": "UNKNOWN",
        "message": str(error),
        "details": {"traceback": traceback.format_exc()},
        "recoverable": True,
    }


def handle_error(
    error: Exception,
    show_user_message: bool = False,
    log_error: bool = True,
    user_message: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Log an error and optionally show it in the console.

    Recoverable errors are logged at WARNING, the rest at ERROR with a
    traceback. Worker code calls this silently; only the console passes
    show_user_message=True.

    Returns:
        The describe_error() dict
    """
    info = describe_error(error)
    code = info["code"]
    message = user_message or USER_MESSAGES.get(code) or info["message"]

    if log_error:
        level = logging.WARNING if info["recoverable"] else logging.ERROR
        logger.log(
            level,
            f"[{code}] {info['message']}",
            extra={"details": info["details"]},
            exc_info=error if level == logging.ERROR else None,
        )

    if show_user_message:
        if info["recoverable"]:
            st.error(f"Error: {message}")
        else:
            st.error(f"Critical Error: {message}. Please contact support.")

    return info


def safe_execute(
    func: Callable[..., T],
    *args,
    default: Optional[T] = None,
    error_message: Optional[str] = None,
    show_user_message: bool = False,
    reraise: bool = False,
    **kwargs,
) -> Optional[T]:
    """
    Usage:
        state = safe_execute(
            manager.check_connection,
            default=None,
            error_message="Connectivity probe failed",
        )
    """
    try:
        return func(*args, **kwargs)
    except Exception as e:
        handle_error(e, show_user_message=show_user_message, user_message=error_message)
        if reraise:
            raise
        return default


class ErrorContext:
    """
    Context manager that reports an error and, when recoverable, swallows it.

    The handled error stays available as .error for the caller to inspect.

    Usage:
        with ErrorContext("Rendering cache inventory") as ctx:
            st.dataframe(inventory_frame(storage))
        if ctx.error:
            st.caption("Inventory unavailable")
    """

    def __init__(
        self,
        operation: str,
        recoverable: bool = True,
        show_user_message: bool = True,
    ):
        self.operation = operation
        self.recoverable = recoverable
        self.show_user_message = show_user_message
        self.error: Optional[Dict[str, Any]] = None

    def __enter__(self) -> ErrorContext:
        logger.debug(f"Starting: {self.operation}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        if exc_type is None:
            logger.debug(f"Completed: {self.operation}")
            return False

        user_message = None if isinstance(exc_val, HisaabError) else f"Error during: {self.operation}"
        self.error = handle_error(
            exc_val,
            show_user_message=self.show_user_message,
            user_message=user_message,
        )
        return self.recoverable
