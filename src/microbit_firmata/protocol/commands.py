"""Command byte constants and outbound command builders.

Channel commands carry the channel/port in the low nibble of the status
byte. System commands (0xF0-0xFF) use the whole byte. Extended commands are
wrapped in a sysex envelope: ``0xF0 <subcommand> <7-bit data...> 0xF7``.

Builders validate their arguments and return ``None`` instead of raising
when an argument is out of range, so callers can forward user input without
guarding every call.
"""

from __future__ import annotations

from enum import IntEnum
from typing import Sequence

from ..utils.packing import INT32_MAX, INT32_MIN, pack14, pack32, pack_text


class ChannelCommand(IntEnum):
    """Status bytes (or their top nibble) for channel and system messages."""

    DIGITAL_UPDATE = 0x90
    STREAM_ANALOG = 0xC0
    STREAM_DIGITAL = 0xD0
    ANALOG_UPDATE = 0xE0
    SYSEX_START = 0xF0
    SET_PIN_MODE = 0xF4
    SET_DIGITAL_PIN = 0xF5
    SYSEX_END = 0xF7
    FIRMATA_VERSION = 0xF9
    SYSTEM_RESET = 0xFF


class SysexCommand(IntEnum):
    """Sysex subcommands (first byte after SYSEX_START)."""

    DISPLAY_CLEAR = 0x01
    DISPLAY_SHOW = 0x02
    DISPLAY_PLOT = 0x03
    SCROLL_STRING = 0x04
    SCROLL_INTEGER = 0x05
    SET_TOUCH_MODE = 0x06
    REPORT_EVENT = 0x0D
    DEBUG_STRING = 0x0E
    EXTENDED_SYSEX = 0x0F
    REPORT_FIRMWARE = 0x79
    SAMPLING_INTERVAL = 0x7A


class PinMode(IntEnum):
    DIGITAL_INPUT = 0x00
    DIGITAL_OUTPUT = 0x01
    ANALOG_INPUT = 0x02
    PWM = 0x03
    INPUT_PULLUP = 0x0B
    INPUT_PULLDOWN = 0x0F  # micro:bit extension, not defined by Firmata


PIN_COUNT = 21
ANALOG_CHANNEL_COUNT = 16
PORT_COUNT = (PIN_COUNT + 7) // 8
TOUCH_PIN_COUNT = 3
DISPLAY_SIZE = 5

DEFAULT_SCROLL_DELAY = 120
MAX_SCROLL_DELAY = 0x7F
MAX_SCROLL_LENGTH = 100
MAX_SAMPLING_INTERVAL = 16383


def build_sysex(subcommand: int, payload: bytes = b"") -> bytes:
    """Wrap ``payload`` in a sysex envelope."""
    return (
        bytes([ChannelCommand.SYSEX_START, subcommand])
        + payload
        + bytes([ChannelCommand.SYSEX_END])
    )


def _brightness7(value: int) -> int:
    # 0/1 pass through; grayscale values 2-255 lose their low bit
    if value > 1:
        value //= 2
    return value & 0x7F


def _valid_delay(delay: int) -> bool:
    return 0 <= delay <= MAX_SCROLL_DELAY


# ─── VERSION / SYSTEM ────────────────────────────────────────────────


def build_request_protocol_version() -> bytes:
    """Ask the board to report its Firmata protocol version."""
    return bytes([ChannelCommand.FIRMATA_VERSION, 0, 0])


def build_request_firmware() -> bytes:
    """Ask the board to report its firmware name and version."""
    return build_sysex(SysexCommand.REPORT_FIRMWARE)


def build_system_reset() -> bytes:
    return bytes([ChannelCommand.SYSTEM_RESET])


# ─── PINS AND SENSOR CHANNELS ────────────────────────────────────────


def build_set_pin_mode(pin: int, mode: int) -> bytes | None:
    """Set the mode of a pin.

    Args:
        pin: Pin number 0-20.
        mode: One of :class:`PinMode` (any 7-bit value is passed through).
    """
    if not 0 <= pin < PIN_COUNT or not 0 <= mode <= 0x7F:
        return None
    return bytes([ChannelCommand.SET_PIN_MODE, pin, mode])


def build_set_digital_pin(pin: int, value: bool) -> bytes | None:
    """Drive a digital output pin high or low."""
    if not 0 <= pin < PIN_COUNT:
        return None
    return bytes([ChannelCommand.SET_DIGITAL_PIN, pin, 1 if value else 0])


def build_stream_digital_port(port: int, on: bool) -> bytes | None:
    """Turn reporting of a digital port (8 pins) on or off."""
    if not 0 <= port < PORT_COUNT:
        return None
    return bytes([ChannelCommand.STREAM_DIGITAL | port, 1 if on else 0])


def build_track_digital_pin(
    pin: int, mode: int = PinMode.INPUT_PULLUP
) -> bytes | None:
    """Configure a pin as a digital input and start streaming its port.

    Only the pull-up and pull-down input modes are accepted; anything else
    falls back to pull-up.
    """
    if not 0 <= pin < PIN_COUNT:
        return None
    if mode not in (PinMode.INPUT_PULLUP, PinMode.INPUT_PULLDOWN):
        mode = PinMode.INPUT_PULLUP
    return build_set_pin_mode(pin, mode) + build_stream_digital_port(pin >> 3, True)


def build_stop_tracking_digital_pin(pin: int) -> bytes | None:
    """Stop streaming the port that contains ``pin``."""
    if not 0 <= pin < PIN_COUNT:
        return None
    return build_stream_digital_port(pin >> 3, False)


def build_stream_analog_channel(channel: int, on: bool) -> bytes | None:
    """Turn streaming of an analog channel (0-15) on or off."""
    if not 0 <= channel < ANALOG_CHANNEL_COUNT:
        return None
    return bytes([ChannelCommand.STREAM_ANALOG | channel, 1 if on else 0])


def build_set_sampling_interval(msecs: int) -> bytes | None:
    """Set the milliseconds (1-16383) between streamed analog samples."""
    if not 1 <= msecs <= MAX_SAMPLING_INTERVAL:
        return None
    return build_sysex(SysexCommand.SAMPLING_INTERVAL, pack14(msecs))


def build_set_touch_mode(pin: int, on: bool) -> bytes | None:
    """Turn touch mode on or off. Only pins 0-2 support touch."""
    if not 0 <= pin < TOUCH_PIN_COUNT:
        return None
    return build_sysex(SysexCommand.SET_TOUCH_MODE, bytes([pin, 1 if on else 0]))


# ─── DISPLAY ─────────────────────────────────────────────────────────


def build_display_clear() -> bytes:
    """Clear the display and stop any running animation."""
    return build_sysex(SysexCommand.DISPLAY_CLEAR)


def build_display_show(
    grayscale: bool, pixels: Sequence[Sequence[int]]
) -> bytes | None:
    """Show a 5x5 image.

    Args:
        grayscale: If True, pixel values are brightness 0-255; otherwise
            0 is off and 1 is on.
        pixels: Five rows of five pixel values, row-major (``pixels[y][x]``).

    Brightness above 1 is halved to fit in 7 bits, so grayscale images are
    sent with 0-127 precision.
    """
    if len(pixels) != DISPLAY_SIZE or any(len(row) != DISPLAY_SIZE for row in pixels):
        return None
    payload = bytearray([1 if grayscale else 0])
    for row in pixels:
        for pix in row:
            payload.append(_brightness7(int(pix)))
    return build_sysex(SysexCommand.DISPLAY_SHOW, bytes(payload))


def build_display_plot(x: int, y: int, brightness: int) -> bytes | None:
    """Set the pixel at ``(x, y)`` to ``brightness`` (0-255)."""
    if not 0 <= x < DISPLAY_SIZE or not 0 <= y < DISPLAY_SIZE:
        return None
    return build_sysex(
        SysexCommand.DISPLAY_PLOT, bytes([x, y, _brightness7(brightness)])
    )


def build_scroll_string(text: str, delay: int = DEFAULT_SCROLL_DELAY) -> bytes | None:
    """Scroll ``text`` across the display.

    Text longer than 100 characters is truncated. ``delay`` is the per-step
    scroll delay in milliseconds and must fit in one data byte.
    """
    if not _valid_delay(delay):
        return None
    text = text[:MAX_SCROLL_LENGTH]
    return build_sysex(SysexCommand.SCROLL_STRING, bytes([delay]) + pack_text(text))


def build_scroll_integer(n: int, delay: int = DEFAULT_SCROLL_DELAY) -> bytes | None:
    """Scroll a signed 32-bit integer across the display."""
    if not _valid_delay(delay) or not INT32_MIN <= n <= INT32_MAX:
        return None
    return build_sysex(SysexCommand.SCROLL_INTEGER, bytes([delay]) + pack32(n))
