from abc import ABC, abstractmethod

from src.service.registration.domain.entity.notification_entity import Notification


class INotificationDispatcher(ABC):
    """Delivery (push / email) of a notification already persisted by the store"""

    @abstractmethod
    async def dispatch(self, *, notification: Notification) -> None:
        pass
