"""
Store faults - closed set of classified storage / network errors

A raw driver exception is translated exactly once, at the store boundary, into one
``StoreFault`` variant. Callers branch on the variant type (or its ``category``)
instead of probing attributes of the original exception.
"""

from typing import ClassVar, Mapping, NamedTuple

from src.platform.exception.exceptions import CustomBaseError, ErrorCategory


class FaultProfile(NamedTuple):
    category: ErrorCategory
    user_message: str


FAULT_CODE_TABLE: Mapping[str, FaultProfile] = {
    # Auth / identity provider
    'auth/network-request-failed': FaultProfile(
        ErrorCategory.NETWORK, 'Network error. Please check your internet connection.'
    ),
    'auth/too-many-requests': FaultProfile(
        ErrorCategory.RATE_LIMIT, 'Too many attempts. Please wait a few minutes and try again.'
    ),
    'auth/user-disabled': FaultProfile(
        ErrorCategory.PERMISSION, 'This account has been disabled. Please contact support.'
    ),
    'auth/requires-recent-login': FaultProfile(
        ErrorCategory.AUTH, 'Please sign in again to complete this action.'
    ),
    # Transactional store
    'permission-denied': FaultProfile(
        ErrorCategory.PERMISSION, "You don't have permission to perform this action."
    ),
    'not-found': FaultProfile(ErrorCategory.NOT_FOUND, 'The requested resource was not found.'),
    'already-exists': FaultProfile(ErrorCategory.CONFLICT, 'This item already exists.'),
    'resource-exhausted': FaultProfile(
        ErrorCategory.RATE_LIMIT, 'Service is temporarily busy. Please try again in a few minutes.'
    ),
    'failed-precondition': FaultProfile(
        ErrorCategory.VALIDATION,
        'The operation cannot be performed. Please refresh and try again.',
    ),
    'invalid-argument': FaultProfile(
        ErrorCategory.VALIDATION, 'The request contained an invalid value.'
    ),
    'aborted': FaultProfile(
        ErrorCategory.CONFLICT, 'The operation was interrupted. Please try again.'
    ),
    'out-of-range': FaultProfile(
        ErrorCategory.VALIDATION, 'The provided value is out of the allowed range.'
    ),
    'deadline-exceeded': FaultProfile(
        ErrorCategory.NETWORK, 'The request timed out. Please try again.'
    ),
    'unimplemented': FaultProfile(ErrorCategory.UNKNOWN, 'This feature is not yet available.'),
    'internal': FaultProfile(ErrorCategory.UNKNOWN, 'An internal error occurred. Please try again.'),
    'unavailable': FaultProfile(
        ErrorCategory.NETWORK, 'The service is temporarily unavailable. Please try again shortly.'
    ),
    'offline': FaultProfile(ErrorCategory.NETWORK, 'No internet connection.'),
    'data-loss': FaultProfile(ErrorCategory.UNKNOWN, 'Some data may have been lost. Please try again.'),
    'unauthenticated': FaultProfile(ErrorCategory.AUTH, 'Please sign in to continue.'),
    # Storage
    'storage/quota-exceeded': FaultProfile(
        ErrorCategory.STORAGE, 'Storage quota exceeded. Please contact support.'
    ),
    'storage/retry-limit-exceeded': FaultProfile(
        ErrorCategory.NETWORK, 'The operation failed after multiple attempts. Please try again.'
    ),
    'storage/unknown': FaultProfile(ErrorCategory.STORAGE, 'An error occurred with data storage.'),
}

# Codes retried even though their category is not network / rate_limit
RETRYABLE_CODES: frozenset[str] = frozenset(
    {
        'unavailable',
        'resource-exhausted',
        'internal',
        'aborted',
        'deadline-exceeded',
        'auth/network-request-failed',
        'storage/retry-limit-exceeded',
        'auth/too-many-requests',
    }
)

UNKNOWN_USER_MESSAGE = 'An unexpected error occurred. Please try again.'


class StoreFault(CustomBaseError):
    """Classified fault raised by a store adapter or the resilience layer"""

    def __init__(
        self,
        message: str,
        *,
        code: str,
        user_message: str | None = None,
        retryable: bool | None = None,
    ) -> None:
        super().__init__(message, code=code, user_message=user_message)
        if retryable is None:
            retryable = code in RETRYABLE_CODES or self.category in (
                ErrorCategory.NETWORK,
                ErrorCategory.RATE_LIMIT,
            )
        self.retryable = retryable  # type: ignore[misc]

    @classmethod
    def from_code(cls, code: str, message: str) -> 'StoreFault':
        profile = FAULT_CODE_TABLE.get(code)
        if profile is None:
            return UnknownFault(message, code=code, user_message=UNKNOWN_USER_MESSAGE)
        variant = _VARIANT_BY_CATEGORY[profile.category]
        return variant(message, code=code, user_message=profile.user_message)

    def __repr__(self) -> str:
        return f'{type(self).__name__}(code={self.code!r}, retryable={self.retryable})'


class NetworkFault(StoreFault):
    category: ClassVar[ErrorCategory] = ErrorCategory.NETWORK


class PermissionFault(StoreFault):
    category: ClassVar[ErrorCategory] = ErrorCategory.PERMISSION


class ValidationFault(StoreFault):
    category: ClassVar[ErrorCategory] = ErrorCategory.VALIDATION


class NotFoundFault(StoreFault):
    category: ClassVar[ErrorCategory] = ErrorCategory.NOT_FOUND


class ConflictFault(StoreFault):
    category: ClassVar[ErrorCategory] = ErrorCategory.CONFLICT


class RateLimitFault(StoreFault):
    category: ClassVar[ErrorCategory] = ErrorCategory.RATE_LIMIT


class StorageFault(StoreFault):
    category: ClassVar[ErrorCategory] = ErrorCategory.STORAGE


class AuthFault(StoreFault):
    category: ClassVar[ErrorCategory] = ErrorCategory.AUTH


class UnknownFault(StoreFault):
    category: ClassVar[ErrorCategory] = ErrorCategory.UNKNOWN


_VARIANT_BY_CATEGORY: Mapping[ErrorCategory, type[StoreFault]] = {
    ErrorCategory.NETWORK: NetworkFault,
    ErrorCategory.PERMISSION: PermissionFault,
    ErrorCategory.VALIDATION: ValidationFault,
    ErrorCategory.NOT_FOUND: NotFoundFault,
    ErrorCategory.CONFLICT: ConflictFault,
    ErrorCategory.RATE_LIMIT: RateLimitFault,
    ErrorCategory.STORAGE: StorageFault,
    ErrorCategory.AUTH: AuthFault,
    ErrorCategory.UNKNOWN: UnknownFault,
}
