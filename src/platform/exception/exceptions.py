from enum import StrEnum
from typing import ClassVar


class ErrorCategory(StrEnum):
    NETWORK = 'network'
    PERMISSION = 'permission'
    VALIDATION = 'validation'
    NOT_FOUND = 'not_found'
    CONFLICT = 'conflict'
    RATE_LIMIT = 'rate_limit'
    STORAGE = 'storage'
    AUTH = 'auth'
    UNKNOWN = 'unknown'


class CustomBaseError(Exception):
    """Base class for all custom exceptions - controls logging behavior in @Logger.io

    Every subclass is a classified fault: it carries an internal ``code``, a
    ``category``, a ``retryable`` flag and a ``user_message`` that is safe to show.
    """

    category: ClassVar[ErrorCategory] = ErrorCategory.UNKNOWN
    retryable: ClassVar[bool] = False
    default_code: ClassVar[str] = 'unknown'
    default_user_message: ClassVar[str] = 'An unexpected error occurred. Please try again.'

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        user_message: str | None = None,
    ) -> None:
        self.message = message
        self.code = code or self.default_code
        self.user_message = user_message or self.default_user_message
        super().__init__(message)


class DomainError(CustomBaseError):
    category = ErrorCategory.VALIDATION
    default_code = 'failed-precondition'
    default_user_message = 'The operation cannot be performed. Please refresh and try again.'


class ForbiddenError(CustomBaseError):
    category = ErrorCategory.PERMISSION
    default_code = 'permission-denied'
    default_user_message = "You don't have permission to perform this action."


class NotFoundError(CustomBaseError):
    category = ErrorCategory.NOT_FOUND
    default_code = 'not-found'
    default_user_message = 'The requested resource was not found.'


class ConflictError(CustomBaseError):
    category = ErrorCategory.CONFLICT
    default_code = 'already-exists'
    default_user_message = 'This item already exists.'


class AuthenticationError(CustomBaseError):
    category = ErrorCategory.AUTH
    default_code = 'unauthenticated'
    default_user_message = 'Please sign in to continue.'
