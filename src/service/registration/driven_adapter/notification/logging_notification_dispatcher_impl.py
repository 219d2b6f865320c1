from src.platform.logging.loguru_io import Logger
from src.service.registration.app.interface.i_notification_dispatcher import (
    INotificationDispatcher,
)
from src.service.registration.domain.entity.notification_entity import Notification


class LoggingNotificationDispatcherImpl(INotificationDispatcher):
    """Stands in for the push / email service: records what would have been sent"""

    def __init__(self) -> None:
        self.dispatched: list[Notification] = []

    async def dispatch(self, *, notification: Notification) -> None:
        self.dispatched.append(notification)
        Logger.base.info(
            f'📨 [NOTIFY] {notification.type} -> subject {notification.subject_id}: '
            f'{notification.title}'
        )
