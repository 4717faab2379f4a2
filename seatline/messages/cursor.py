"""Opaque keyset cursors over ``(created_at, id)``."""

import base64
import binascii

from seatline.utils.errors import InvalidInput

_SEP = "|"


def encode_cursor(created_at: str, message_id: str) -> str:
    raw = f"{created_at}{_SEP}{message_id}".encode()
    return base64.urlsafe_b64encode(raw).decode().rstrip("=")


def decode_cursor(cursor: str) -> tuple[str, str]:
    padded = cursor + "=" * (-len(cursor) % 4)
    try:
        raw = base64.urlsafe_b64decode(padded.encode()).decode()
    except (binascii.Error, UnicodeDecodeError, ValueError):
        raise InvalidInput("Malformed cursor", code="INVALID_CURSOR")
    created_at, sep, message_id = raw.rpartition(_SEP)
    if not sep or not created_at or not message_id:
        raise InvalidInput("Malformed cursor", code="INVALID_CURSOR")
    return created_at, message_id
