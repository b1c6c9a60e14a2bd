"""Serialization of lease records (JSON) and bus messages (MessagePack)."""

import json

import msgpack
from pydantic import ValidationError

from ..domain.exceptions import SerializationError
from ..domain.models import BusMessage, LeaseRecord


def encode_lease_record(record: LeaseRecord) -> bytes:
    """Encode a record in its persisted ``{"ownerId", "acquiredAt"}`` shape."""
    return json.dumps(record.to_wire(), separators=(",", ":")).encode()


def decode_lease_record(raw: bytes | str | None) -> LeaseRecord | None:
    """Decode persisted content; anything unparsable is treated as absent.

    Never raises: bad JSON, a non-object value, missing fields or wrong
    types all yield None.
    """
    if raw is None:
        return None
    if isinstance(raw, bytes):
        try:
            raw = raw.decode()
        except UnicodeDecodeError:
            return None
    if not raw or raw.isspace():
        return None
    try:
        return LeaseRecord.model_validate_json(raw)
    except ValidationError:
        return None


def is_msgpack(data: bytes) -> bool:
    """Check if data looks like a MessagePack map or array."""
    if not data:
        return False

    # 0x80-0x8f fixmap, 0x90-0x9f fixarray, 0xc0-0xdf nil/bool/bin/ext/map16/map32
    first_byte = data[0]
    return 0x80 <= first_byte <= 0x9F or 0xC0 <= first_byte <= 0xDF


def encode_bus_message(message: BusMessage) -> bytes:
    """Serialize a bus message to MessagePack bytes."""
    try:
        return bytes(msgpack.packb(message.model_dump(mode="json"), use_bin_type=True))
    except Exception as e:
        raise SerializationError(f"Failed to serialize bus message: {e}") from e


def decode_bus_message(data: bytes) -> BusMessage:
    """Deserialize a bus message, accepting MessagePack or JSON."""
    if not data:
        raise SerializationError("Empty bus message received")
    try:
        if is_msgpack(data):
            return BusMessage.model_validate(msgpack.unpackb(data, raw=False))
        return BusMessage.model_validate_json(data)
    except (ValidationError, ValueError, msgpack.UnpackException) as e:
        raise SerializationError(f"Failed to deserialize bus message: {e}") from e
