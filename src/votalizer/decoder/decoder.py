"""
Vote notification decoder.

Turns one raw subscription frame into exactly one normalized record, or
fails with a `DecodeError`. Decoding is pure: no I/O, no shared state.


WIRE FORMAT
-----------
Frames are JSON-RPC 2.0 notifications::

    {
      "jsonrpc": "2.0",
      "method": "voteNotification",
      "params": {
        "subscription": 0,
        "result": {
          "votePubkey": "<base58 32 bytes>",
          "slot": 1234,
          "hash": "<base58 32 bytes>",
          "confirmationCount": 1,
          "slotHistory": [1230, [1231, "<base58 hash>"], 1233],
          "signature": "<base58 64 bytes>",
          "timestamp": 1700000000
        }
      }
    }

The bare `result` object is accepted as well.

Vote transactions that carry several slots use a `slots` list instead of
`slot`. The highest slot is the voted slot; the others are folded into the
slot history, since the vote builds on them. Such a history is sparse: it is
marked incomplete unless an explicit `slotHistory` accompanies it.
`confirmationCount` is optional in that form. When it is absent the vote
carries no count and the tracker stacks each voted slot itself.

Slot notifications (`slotNotification`) carry `slot`, `parent` and `root`.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any, Final, TypeVar

from pydantic import ValidationError

from votalizer.containers import AncestorSlot, Hash, Pubkey, Signature, Slot, SlotUpdate, Vote

from .errors import MalformedPayloadError, MissingFieldError, UnsupportedVersionError

VOTE_NOTIFICATION: Final = "voteNotification"
"""JSON-RPC method name of vote notifications."""

SLOT_NOTIFICATION: Final = "slotNotification"
"""JSON-RPC method name of slot notifications."""

SUPPORTED_VERSIONS: Final = frozenset({1})
"""Payload versions this decoder understands. Absent means version 1."""

_B = TypeVar("_B", Pubkey, Hash, Signature)


def parse_frame(payload: str | bytes | Mapping[str, Any]) -> Mapping[str, Any]:
    """
    Parse a raw frame into a JSON object.

    Raises:
        MalformedPayloadError: If the frame is not a JSON object.
    """
    if isinstance(payload, Mapping):
        return payload
    try:
        frame = json.loads(payload)
    except (ValueError, TypeError) as e:
        raise MalformedPayloadError(f"frame is not valid JSON: {e}") from e
    if not isinstance(frame, dict):
        raise MalformedPayloadError(f"frame must be a JSON object, got {type(frame).__name__}")
    return frame


def notification_method(frame: Mapping[str, Any]) -> str | None:
    """JSON-RPC method of a parsed frame, or `None` for bare results and responses."""
    method = frame.get("method")
    return method if isinstance(method, str) else None


def _result(frame: Mapping[str, Any], expected_method: str) -> Mapping[str, Any]:
    """Unwrap the `params.result` object of a notification (or accept a bare result)."""
    method = frame.get("method")
    if method is None:
        return frame
    if method != expected_method:
        raise MalformedPayloadError(f"expected {expected_method!r}, got {method!r}")

    params = frame.get("params")
    if not isinstance(params, Mapping):
        raise MissingFieldError("params")
    result = params.get("result")
    if not isinstance(result, Mapping):
        raise MissingFieldError("params.result")
    return result


def _require(result: Mapping[str, Any], field: str) -> Any:
    if field not in result or result[field] is None:
        raise MissingFieldError(field)
    return result[field]


def _int(value: Any, field: str) -> int:
    # bool is an int subclass; JSON `true` is never a slot.
    if isinstance(value, bool) or not isinstance(value, int):
        raise MalformedPayloadError(f"{field} must be an integer, got {value!r}")
    return value


def _slot(value: Any, field: str) -> Slot:
    try:
        return Slot(_int(value, field))
    except OverflowError as e:
        raise MalformedPayloadError(f"{field} out of range: {value!r}") from e


def _base58(cls: type[_B], value: Any, field: str) -> _B:
    if not isinstance(value, str):
        raise MalformedPayloadError(f"{field} must be a Base58 string, got {value!r}")
    try:
        return cls.from_base58(value)
    except ValueError as e:
        raise MalformedPayloadError(f"{field}: {e}") from e


def _ancestor(item: Any) -> AncestorSlot:
    """Decode one slot history item: `slot`, `[slot, hash]` or `{"slot", "hash"}`."""
    if isinstance(item, Mapping):
        slot = _slot(_require(item, "slot"), "slotHistory.slot")
        raw_hash = item.get("hash")
    elif isinstance(item, list):
        if len(item) != 2:
            raise MalformedPayloadError(f"slotHistory pair must have 2 items, got {item!r}")
        slot = _slot(item[0], "slotHistory.slot")
        raw_hash = item[1]
    else:
        return AncestorSlot(slot=_slot(item, "slotHistory"))

    block_hash = None if raw_hash is None else _base58(Hash, raw_hash, "slotHistory.hash")
    return AncestorSlot(slot=slot, hash=block_hash)


def _check_version(result: Mapping[str, Any]) -> None:
    version = result.get("version", 1)
    if isinstance(version, bool) or not isinstance(version, int):
        raise UnsupportedVersionError(version)
    if version not in SUPPORTED_VERSIONS:
        raise UnsupportedVersionError(version)


def decode_vote(
    payload: str | bytes | Mapping[str, Any],
    *,
    observed_at: datetime | None = None,
) -> Vote:
    """
    Decode a vote notification into a `Vote`.

    Args:
        payload: Raw frame (JSON text or bytes) or an already parsed object.
        observed_at: Receipt time. Defaults to now (UTC).

    Returns:
        The normalized vote.

    Raises:
        DecodeError: For any malformed, incomplete or unsupported payload.
    """
    result = _result(parse_frame(payload), VOTE_NOTIFICATION)
    _check_version(result)

    validator_id = _base58(Pubkey, _require(result, "votePubkey"), "votePubkey")
    block_hash = _base58(Hash, _require(result, "hash"), "hash")
    signature = _base58(Signature, _require(result, "signature"), "signature")

    raw_history = result.get("slotHistory") or []
    if not isinstance(raw_history, list):
        raise MalformedPayloadError(f"slotHistory must be a list, got {raw_history!r}")
    # Later duplicates win, so an explicit [slot, hash] beats a bare slot.
    history: dict[Slot, AncestorSlot] = {}
    for item in raw_history:
        ancestor = _ancestor(item)
        if ancestor.slot not in history or ancestor.hash is not None:
            history[ancestor.slot] = ancestor

    # A sparse `slots` list alone is not a full ancestor chain.
    history_complete = True
    earlier_slots: list[Slot] = []
    confirmation_count: int | None
    if "slot" in result and result["slot"] is not None:
        slot = _slot(result["slot"], "slot")
        confirmation_count = _int(_require(result, "confirmationCount"), "confirmationCount")
    else:
        raw_slots = _require(result, "slots")
        if not isinstance(raw_slots, list) or not raw_slots:
            raise MalformedPayloadError(f"slots must be a non-empty list, got {raw_slots!r}")
        slots = sorted({_slot(s, "slots") for s in raw_slots})
        slot = slots[-1]
        if len(slots) > 1 and not raw_history:
            history_complete = False
        earlier_slots = slots[:-1]
        for earlier in earlier_slots:
            history.setdefault(earlier, AncestorSlot(slot=earlier))
        # Without a count the tracker derives lockouts from the voted slots.
        raw_count = result.get("confirmationCount")
        confirmation_count = None if raw_count is None else _int(raw_count, "confirmationCount")

    timestamp = result.get("timestamp")
    if timestamp is not None:
        timestamp = _int(timestamp, "timestamp")

    try:
        return Vote(
            validator_id=validator_id,
            slot=slot,
            hash=block_hash,
            confirmation_count=confirmation_count,
            earlier_slots=tuple(earlier_slots),
            slot_history=tuple(history[s] for s in sorted(history)),
            history_complete=history_complete,
            observed_at=observed_at or datetime.now(UTC),
            transaction_signature=signature,
            timestamp=timestamp,
        )
    except ValidationError as e:
        raise MalformedPayloadError(f"inconsistent vote: {e.errors()[0]['msg']}") from e


def decode_slot_update(payload: str | bytes | Mapping[str, Any]) -> SlotUpdate:
    """
    Decode a slot notification.

    Raises:
        DecodeError: For any malformed or incomplete payload.
    """
    result = _result(parse_frame(payload), SLOT_NOTIFICATION)
    slot = _slot(_require(result, "slot"), "slot")
    parent = _slot(_require(result, "parent"), "parent")
    root = result.get("root")

    try:
        return SlotUpdate(
            slot=slot,
            parent=parent,
            root=None if root is None else _slot(root, "root"),
        )
    except ValidationError as e:
        raise MalformedPayloadError(f"inconsistent slot update: {e.errors()[0]['msg']}") from e

