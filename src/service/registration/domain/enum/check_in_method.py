from enum import StrEnum


class CheckInMethod(StrEnum):
    QR_SCAN = 'qr_scan'
    MANUAL_ENTRY = 'manual_entry'
    TICKET_ID = 'ticket_id'
    AUTO = 'auto'
