"""
Record format structures for log segments.

This module defines the binary format for entries stored in log segments,
including serialization and deserialization.
"""

import struct
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import IntEnum

import crc32c

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_NAIVE_EPOCH = datetime(1970, 1, 1)
_MICROSECOND = timedelta(microseconds=1)

# Largest value of a frame's length field; the reader treats anything bigger as corrupt.
MAX_RECORD_BYTES = 100 * 1024 * 1024


class RecordTooLargeError(ValueError):
    """Raised when a record would not fit in a single frame."""
    pass


class MagicByte(IntEnum):
    """Record format version."""
    
    V1 = 1
    CURRENT = V1


def encode_timestamp(timestamp: datetime) -> tuple[int, int]:
    """
    Split an aware datetime into epoch microseconds and UTC offset seconds.
    
    Args:
        timestamp: Timezone-aware datetime
    
    Returns:
        Tuple of (microseconds since epoch, utc offset in seconds)
    
    Raises:
        ValueError: If the datetime is naive
    """
    utc_offset = timestamp.utcoffset()
    if utc_offset is None:
        raise ValueError("Timestamp must be timezone-aware")
    
    micros = (timestamp - EPOCH) // _MICROSECOND
    return micros, int(utc_offset.total_seconds())


def decode_timestamp(micros: int, utc_offset_s: int) -> datetime:
    """
    Rebuild an aware datetime, restoring the producer's UTC offset.
    
    The wall-clock time is rebuilt in the producer's own timezone, so instants
    whose UTC equivalent falls outside datetime's range (e.g. 0001-01-01 at
    +01:00) still round trip.
    
    Args:
        micros: Microseconds since epoch
        utc_offset_s: UTC offset in seconds
    
    Returns:
        Timezone-aware datetime
    
    Raises:
        ValueError: If the stored values do not form a valid datetime
    """
    try:
        tz = timezone.utc if utc_offset_s == 0 else timezone(timedelta(seconds=utc_offset_s))
        local = _NAIVE_EPOCH + timedelta(microseconds=micros, seconds=utc_offset_s)
    except OverflowError as e:
        raise ValueError(f"Timestamp out of range: {micros}us at offset {utc_offset_s}s") from e
    return local.replace(tzinfo=tz)


@dataclass
class Record:
    """
    A single entry in the log.
    
    Attributes:
        offset: Logical offset in the topic
        timestamp: Producer-supplied, timezone-aware timestamp
        key: Entry key
        value: Entry payload
        attributes: Reserved flags
    """
    
    offset: int
    timestamp: datetime
    key: bytes
    value: bytes
    attributes: int = 0
    
    def __post_init__(self) -> None:
        """Validate record fields."""
        if self.offset < 0:
            raise ValueError(f"Offset must be non-negative, got {self.offset}")
        if self.timestamp.utcoffset() is None:
            raise ValueError("Timestamp must be timezone-aware")
        if not isinstance(self.key, bytes):
            raise TypeError(f"Key must be bytes, got {type(self.key)}")
        if not isinstance(self.value, bytes):
            raise TypeError(f"Value must be bytes, got {type(self.value)}")


@dataclass
class RecordFrame:
    """
    A framed record as laid out on disk.
    
    Wire format:
        Length (4 bytes) - Total length excluding this field
        CRC32C (4 bytes) - Checksum of remaining data
        Magic byte (1 byte) - Format version
        Attributes (1 byte) - Reserved flags
        Timestamp (8 bytes) - Microseconds since epoch, signed
        UTC offset (4 bytes) - Producer timezone offset in seconds, signed
        Key length (4 bytes) - Length of key
        Key (variable) - Entry key
        Value length (4 bytes) - Length of value
        Value (variable) - Entry payload
    """
    
    record: Record
    magic_byte: int = MagicByte.CURRENT
    
    LENGTH_FIELD_SIZE = 4
    CRC_FIELD_SIZE = 4
    FIXED_PAYLOAD_SIZE = 1 + 1 + 8 + 4 + 4 + 4
    
    def serialize(self) -> bytes:
        """
        Serialize the frame to bytes.
        
        Returns:
            Serialized frame
        
        Raises:
            RecordTooLargeError: If key and value exceed MAX_PAYLOAD_BYTES
        """
        key = self.record.key
        value = self.record.value
        if len(key) + len(value) > MAX_PAYLOAD_BYTES:
            raise RecordTooLargeError(
                f"Key and value total {len(key) + len(value)} bytes, "
                f"above the {MAX_PAYLOAD_BYTES} byte record limit"
            )
        
        micros, utc_offset_s = encode_timestamp(self.record.timestamp)
        
        payload = struct.pack(
            f">BBqii{len(key)}si{len(value)}s",
            self.magic_byte,
            self.record.attributes,
            micros,
            utc_offset_s,
            len(key),
            key,
            len(value),
            value,
        )
        
        crc = crc32c.crc32c(payload)
        total_length = self.CRC_FIELD_SIZE + len(payload)
        
        return struct.pack(">II", total_length, crc) + payload
    
    @classmethod
    def deserialize(cls, data: bytes, offset: int) -> "RecordFrame":
        """
        Deserialize a frame from bytes.
        
        Args:
            data: Serialized frame
            offset: Logical offset for the record
        
        Returns:
            Deserialized RecordFrame
        
        Raises:
            ValueError: If data is corrupted or invalid
        """
        header_size = cls.LENGTH_FIELD_SIZE + cls.CRC_FIELD_SIZE
        if len(data) < header_size:
            raise ValueError(f"Data too short: {len(data)} bytes")
        
        length, crc = struct.unpack(">II", data[:header_size])
        
        if len(data) < cls.LENGTH_FIELD_SIZE + length:
            raise ValueError(
                f"Incomplete record: expected {cls.LENGTH_FIELD_SIZE + length} bytes, "
                f"got {len(data)} bytes"
            )
        
        payload = data[header_size : cls.LENGTH_FIELD_SIZE + length]
        
        computed_crc = crc32c.crc32c(payload)
        if computed_crc != crc:
            raise ValueError(
                f"CRC mismatch: expected {crc}, computed {computed_crc}"
            )
        
        if len(payload) < cls.FIXED_PAYLOAD_SIZE:
            raise ValueError(f"Payload too short: {len(payload)} bytes")
        
        magic_byte, attributes, micros, utc_offset_s, key_length = struct.unpack(
            ">BBqii", payload[:18]
        )
        
        if magic_byte != MagicByte.V1:
            raise ValueError(f"Unsupported magic byte: {magic_byte}")
        
        if key_length < 0:
            raise ValueError(f"Invalid key length: {key_length}")
        
        key = payload[18 : 18 + key_length]
        value_offset = 18 + key_length

        if len(payload) < value_offset + 4:
            raise ValueError(f"Key length {key_length} exceeds payload")

        value_length = struct.unpack(">i", payload[value_offset : value_offset + 4])[0]
        
        if value_length < 0:
            raise ValueError(f"Invalid value length: {value_length}")
        
        value = payload[value_offset + 4 : value_offset + 4 + value_length]
        
        if len(value) != value_length:
            raise ValueError(
                f"Value length mismatch: expected {value_length}, got {len(value)}"
            )
        
        record = Record(
            offset=offset,
            timestamp=decode_timestamp(micros, utc_offset_s),
            key=key,
            value=value,
            attributes=attributes,
        )
        
        return cls(record=record, magic_byte=magic_byte)
    
    def size(self) -> int:
        """
        Calculate the serialized size of this frame.
        
        Returns:
            Size in bytes
        """
        return (
            self.LENGTH_FIELD_SIZE
            + self.CRC_FIELD_SIZE
            + self.FIXED_PAYLOAD_SIZE
            + len(self.record.key)
            + len(self.record.value)
        )


# Largest key plus value that fits in one frame.
MAX_PAYLOAD_BYTES = MAX_RECORD_BYTES - RecordFrame.CRC_FIELD_SIZE - RecordFrame.FIXED_PAYLOAD_SIZE
