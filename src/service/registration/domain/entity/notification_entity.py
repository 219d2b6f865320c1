from datetime import datetime
from uuid import UUID

import attrs

from src.service.registration.domain.enum.notification_type import NotificationType


@attrs.frozen
class Notification:
    id: UUID
    subject_id: str
    type: NotificationType
    booking_id: UUID
    event_id: UUID
    title: str
    message: str
    created_at: datetime
    read: bool = False

    @classmethod
    def waitlist_promoted(
        cls,
        *,
        id: UUID,
        booking_id: UUID,
        subject_id: str,
        event_id: UUID,
        event_title: str,
        now: datetime,
    ) -> 'Notification':
        return cls(
            id=id,
            subject_id=subject_id,
            type=NotificationType.WAITLIST_PROMOTED,
            booking_id=booking_id,
            event_id=event_id,
            title="You're In!",
            message=(
                f'Great news! A spot opened up for "{event_title}". '
                'Your registration is now confirmed.'
            ),
            created_at=now,
        )
