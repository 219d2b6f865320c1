"""
Ticket reference - what a venue scanner or a typed entry resolves to

A scanned payload is a JSON object ``{"type": "TICKET", "ticketId": ..., "issuedAt": ...}``
(optionally ``eventId``, ``bookingId``, ``subjectId``). ``EVENTEASE_TICKET`` is still
accepted for tickets printed before the type was renamed. Anything that is not a JSON
object is taken as a ticket id typed in by the operator.

Rendering and signing the QR image happen outside this service; only the payload
contract is decoded here.
"""

import re
import secrets
import string
import time
from typing import Callable

import attrs
import orjson
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from src.service.registration.domain.enum.check_in_method import CheckInMethod
from src.service.registration.domain.rejection.check_in_rejection import InvalidTicketFormat


IDENTIFIER_PATTERN = re.compile(r'[A-Za-z0-9_-]{1,64}')
TICKET_TYPES = frozenset({'TICKET', 'EVENTEASE_TICKET'})

_TICKET_ID_ALPHABET = string.ascii_uppercase + string.digits
_BASE36_DIGITS = string.digits + string.ascii_uppercase


class TicketPayload(BaseModel):
    model_config = ConfigDict(extra='ignore', populate_by_name=True, frozen=True)

    type: str
    ticket_id: str = Field(validation_alias=AliasChoices('ticketId', 'ticket_id'), min_length=1)
    issued_at: int | str | None = Field(
        default=None, validation_alias=AliasChoices('issuedAt', 'timestamp')
    )
    event_id: str | None = Field(default=None, validation_alias=AliasChoices('eventId'))
    booking_id: str | None = Field(default=None, validation_alias=AliasChoices('bookingId'))
    subject_id: str | None = Field(
        default=None, validation_alias=AliasChoices('subjectId', 'userId')
    )

    @field_validator('type')
    @classmethod
    def _known_ticket_type(cls, value: str) -> str:
        if value not in TICKET_TYPES:
            raise ValueError(f'unknown ticket type {value!r}')
        return value


@attrs.frozen
class TicketReference:
    ticket_id: str
    method: CheckInMethod
    payload: TicketPayload | None = None


def sanitize_identifier(raw: str) -> str:
    candidate = raw.strip()
    if not IDENTIFIER_PATTERN.fullmatch(candidate):
        raise InvalidTicketFormat(f'Identifier {candidate[:80]!r} has an invalid format')
    return candidate


def parse_ticket_reference(raw: str | None) -> TicketReference:
    text = (raw or '').strip()
    if not text:
        raise InvalidTicketFormat('Empty ticket reference')

    try:
        decoded = orjson.loads(text)
    except orjson.JSONDecodeError:
        decoded = None

    if isinstance(decoded, dict):
        try:
            payload = TicketPayload.model_validate(decoded)
        except ValidationError as e:
            raise InvalidTicketFormat(
                f'Malformed ticket payload ({e.error_count()} errors)'
            ) from e
        return TicketReference(
            ticket_id=sanitize_identifier(payload.ticket_id),
            method=CheckInMethod.QR_SCAN,
            payload=payload,
        )

    return TicketReference(ticket_id=sanitize_identifier(text), method=CheckInMethod.MANUAL_ENTRY)


def _to_base36(value: int) -> str:
    if value == 0:
        return '0'
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36_DIGITS[remainder])
    return ''.join(reversed(digits))


def generate_ticket_id(
    *,
    now_ms: int | None = None,
    choice: Callable[[str], str] = secrets.choice,
) -> str:
    """EVT-<base36 epoch millis>-<6 random A-Z0-9>"""
    millis = int(time.time() * 1000) if now_ms is None else now_ms
    suffix = ''.join(choice(_TICKET_ID_ALPHABET) for _ in range(6))
    return f'EVT-{_to_base36(millis)}-{suffix}'
