"""
Vote decoder.

Pure, stateless translation of subscription frames into `Vote` and
`SlotUpdate` records. Failures raise `DecodeError` and never leave the
decoder with any state to recover.
"""

from .decoder import (
    SLOT_NOTIFICATION,
    VOTE_NOTIFICATION,
    decode_slot_update,
    decode_vote,
    notification_method,
    parse_frame,
)
from .errors import DecodeError, MalformedPayloadError, MissingFieldError, UnsupportedVersionError

__all__ = [
    "SLOT_NOTIFICATION",
    "VOTE_NOTIFICATION",
    "DecodeError",
    "MalformedPayloadError",
    "MissingFieldError",
    "UnsupportedVersionError",
    "decode_slot_update",
    "decode_vote",
    "notification_method",
    "parse_frame",
]
