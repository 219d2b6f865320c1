from src.service.registration.domain.value_object.ticket_reference import (
    TicketPayload,
    TicketReference,
    generate_ticket_id,
    parse_ticket_reference,
    sanitize_identifier,
)

__all__ = [
    'TicketPayload',
    'TicketReference',
    'generate_ticket_id',
    'parse_ticket_reference',
    'sanitize_identifier',
]
