"""
Database Models

Import all models here to ensure they are registered with SQLAlchemy
"""

from src.service.registration.driven_adapter.model.booking_model import BookingModel
from src.service.registration.driven_adapter.model.check_in_log_model import CheckInLogModel
from src.service.registration.driven_adapter.model.event_model import EventModel
from src.service.registration.driven_adapter.model.notification_model import NotificationModel

__all__ = [
    'BookingModel',
    'CheckInLogModel',
    'EventModel',
    'NotificationModel',
]
