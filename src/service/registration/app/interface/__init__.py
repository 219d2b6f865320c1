from src.service.registration.app.interface.i_notification_dispatcher import (
    INotificationDispatcher,
)
from src.service.registration.app.interface.i_registration_store import IRegistrationStore
from src.service.registration.app.interface.i_store_router import IStoreRouter
from src.service.registration.app.interface.operation_name import OperationName

__all__ = ['INotificationDispatcher', 'IRegistrationStore', 'IStoreRouter', 'OperationName']
