from enum import StrEnum


class NotificationType(StrEnum):
    WAITLIST_PROMOTED = 'waitlist_promoted'
