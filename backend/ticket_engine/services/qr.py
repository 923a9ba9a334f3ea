"""QR payload decoding for gate scans: {"ticketId": ..., "eventKey": ...}."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ticket_engine.domain.value_objects import EVENT_KEY_MAX_LENGTH, TICKET_ID_MAX_LENGTH

MAX_PAYLOAD_LENGTH = 2000


class QrPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    ticket_id: str = Field(..., alias="ticketId", min_length=1, max_length=TICKET_ID_MAX_LENGTH)
    event_key: str = Field(..., alias="eventKey", min_length=1, max_length=EVENT_KEY_MAX_LENGTH)


def decode_qr_payload(raw: str) -> Optional[QrPayload]:
    """Parsed payload, or None for anything a gate should treat as garbage."""
    if not raw or len(raw) > MAX_PAYLOAD_LENGTH:
        return None
    try:
        # pydantic's parser caps nesting depth and reports bad JSON as a ValidationError
        return QrPayload.model_validate_json(raw)
    except ValidationError:
        return None
