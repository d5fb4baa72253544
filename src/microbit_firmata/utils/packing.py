"""7-bit packing helpers for Firmata payloads.

Every data byte on the wire has its high bit clear, so multi-bit values are
split into 7-bit groups, least significant group first::

    14-bit  ->  [v & 0x7F, (v >> 7) & 0x7F]
    21-bit  ->  [v & 0x7F, (v >> 7) & 0x7F, (v >> 14) & 0x7F]
    32-bit  ->  five groups, the last one carrying bits 28-31

Text is sent as UTF-8 where each byte becomes a (low7, high7) pair.
"""

from __future__ import annotations

from typing import Iterable

INT32_MIN = -(1 << 31)
INT32_MAX = (1 << 31) - 1


def pack7(value: int, groups: int) -> bytes:
    """Split ``value`` into ``groups`` 7-bit bytes, least significant first.

    Negative values are packed as their two's-complement bit pattern.
    """
    return bytes((value >> (7 * i)) & 0x7F for i in range(groups))


def unpack7(data: Iterable[int]) -> int:
    """Combine 7-bit bytes (least significant first) into an unsigned int."""
    value = 0
    for i, b in enumerate(data):
        value |= (b & 0x7F) << (7 * i)
    return value


def pack14(value: int) -> bytes:
    return pack7(value, 2)


def unpack14(lsb: int, msb: int) -> int:
    return (lsb & 0x7F) | ((msb & 0x7F) << 7)


def to_signed14(value: int) -> int:
    """Reinterpret a 14-bit value as two's complement (8192..16383 -> negative)."""
    if value > 8191:
        return value - 16384
    return value


def pack21(value: int) -> bytes:
    return pack7(value, 3)


def unpack21(data: bytes) -> int:
    """Decode a 21-bit id from three consecutive 7-bit bytes."""
    if len(data) < 3:
        raise ValueError(f"21-bit value needs 3 bytes, got {len(data)}")
    return unpack7(data[:3])


def pack32(value: int) -> bytes:
    """Pack a signed 32-bit integer into five 7-bit groups."""
    if not INT32_MIN <= value <= INT32_MAX:
        raise ValueError(f"Value out of 32-bit signed range: {value}")
    return pack7(value, 5)


def unpack32(data: bytes) -> int:
    """Inverse of :func:`pack32`."""
    if len(data) < 5:
        raise ValueError(f"32-bit value needs 5 bytes, got {len(data)}")
    value = unpack7(data[:5]) & 0xFFFFFFFF
    if value > INT32_MAX:
        value -= 1 << 32
    return value


def pack_text(text: str) -> bytes:
    """Encode ``text`` as UTF-8 and split every byte into a 7-bit pair."""
    out = bytearray()
    for b in text.encode("utf-8"):
        out.append(b & 0x7F)
        out.append((b >> 7) & 0x7F)
    return bytes(out)


def unpack_text(data: bytes) -> str:
    """Decode pair-packed UTF-8 text.

    A trailing unpaired byte is ignored; invalid UTF-8 sequences decode to
    the replacement character.
    """
    raw = bytes(
        unpack14(data[i], data[i + 1]) & 0xFF
        for i in range(0, len(data) - 1, 2)
    )
    return raw.decode("utf-8", errors="replace")
