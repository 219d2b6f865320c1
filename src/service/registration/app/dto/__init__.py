"""Application layer DTOs"""

from src.service.registration.app.dto.registration_outcome import (
    CancellationOutcome,
    CheckInResult,
    PromotionOutcome,
    ReservationResult,
    ResolvedTicket,
)

__all__ = [
    'CancellationOutcome',
    'CheckInResult',
    'PromotionOutcome',
    'ReservationResult',
    'ResolvedTicket',
]
