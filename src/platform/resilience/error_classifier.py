"""
Error classification for store and network operations.

Anything raised below the application layer is normalized here into a fault that
carries ``code``, ``category``, ``retryable`` and ``user_message``. Faults the
codebase raised itself (``CustomBaseError``) are already classified and pass through
untouched; anything unrecognized fails closed as a non-retryable ``unknown`` fault.
"""

from src.platform.exception.exceptions import CustomBaseError
from src.platform.exception.store_fault import UNKNOWN_USER_MESSAGE, StoreFault, UnknownFault


def classify_error(error: BaseException) -> CustomBaseError:
    if isinstance(error, CustomBaseError):
        return error
    if isinstance(error, TimeoutError):
        return StoreFault.from_code('deadline-exceeded', str(error) or 'Operation timed out')
    # ConnectionError and socket failures
    if isinstance(error, OSError):
        return StoreFault.from_code('unavailable', f'{type(error).__name__}: {error}')
    return UnknownFault(
        f'{type(error).__name__}: {error}',
        code='unknown',
        user_message=UNKNOWN_USER_MESSAGE,
    )


def user_message_for(error: BaseException, default: str | None = None) -> str:
    """Short message safe to show an end user; never contains the internal code."""
    fault = classify_error(error)
    return fault.user_message or default or UNKNOWN_USER_MESSAGE
