"""Tests for command builders."""

from microbit_firmata.protocol.commands import (
    ChannelCommand,
    PinMode,
    SysexCommand,
    build_display_clear,
    build_display_plot,
    build_display_show,
    build_request_firmware,
    build_request_protocol_version,
    build_scroll_integer,
    build_scroll_string,
    build_set_digital_pin,
    build_set_pin_mode,
    build_set_sampling_interval,
    build_set_touch_mode,
    build_stop_tracking_digital_pin,
    build_stream_analog_channel,
    build_stream_digital_port,
    build_system_reset,
    build_track_digital_pin,
)
from microbit_firmata.protocol.framing import StreamFramer, SysexMessage
from microbit_firmata.utils.packing import unpack32


def _data_bytes_are_7bit(frame: bytes) -> bool:
    return all(b <= 0x7F for b in frame[1:-1])


def test_command_enum_values():
    """Verify key command bytes match the wire protocol."""
    assert ChannelCommand.DIGITAL_UPDATE == 0x90
    assert ChannelCommand.ANALOG_UPDATE == 0xE0
    assert ChannelCommand.SYSEX_START == 0xF0
    assert ChannelCommand.SYSEX_END == 0xF7
    assert ChannelCommand.FIRMATA_VERSION == 0xF9
    assert SysexCommand.REPORT_EVENT == 0x0D
    assert SysexCommand.REPORT_FIRMWARE == 0x79
    assert PinMode.INPUT_PULLDOWN == 0x0F


def test_version_requests():
    assert build_request_protocol_version() == bytes([0xF9, 0x00, 0x00])
    assert build_request_firmware() == bytes([0xF0, 0x79, 0xF7])
    assert build_system_reset() == bytes([0xFF])


def test_set_pin_mode():
    assert build_set_pin_mode(3, PinMode.PWM) == bytes([0xF4, 3, 0x03])
    assert build_set_pin_mode(20, PinMode.INPUT_PULLUP) == bytes([0xF4, 20, 0x0B])


def test_set_pin_mode_out_of_range():
    """Invalid pins are a silent no-op."""
    assert build_set_pin_mode(21, PinMode.PWM) is None
    assert build_set_pin_mode(-1, PinMode.PWM) is None
    assert build_set_pin_mode(0, 0x80) is None


def test_set_digital_pin():
    assert build_set_digital_pin(1, True) == bytes([0xF5, 1, 1])
    assert build_set_digital_pin(1, False) == bytes([0xF5, 1, 0])
    assert build_set_digital_pin(25, True) is None


def test_stream_digital_port():
    assert build_stream_digital_port(2, True) == bytes([0xD2, 1])
    assert build_stream_digital_port(0, False) == bytes([0xD0, 0])
    assert build_stream_digital_port(3, True) is None


def test_track_digital_pin():
    """Tracking sets the input mode and turns on the pin's port."""
    assert build_track_digital_pin(10) == bytes([0xF4, 10, 0x0B, 0xD1, 1])
    assert build_track_digital_pin(10, PinMode.INPUT_PULLDOWN) == bytes(
        [0xF4, 10, 0x0F, 0xD1, 1]
    )


def test_track_digital_pin_mode_fallback():
    """Modes other than pull-up/pull-down fall back to pull-up."""
    assert build_track_digital_pin(0, PinMode.PWM) == bytes([0xF4, 0, 0x0B, 0xD0, 1])
    assert build_track_digital_pin(21) is None


def test_stop_tracking_digital_pin():
    assert build_stop_tracking_digital_pin(17) == bytes([0xD2, 0])
    assert build_stop_tracking_digital_pin(-1) is None


def test_stream_analog_channel():
    assert build_stream_analog_channel(11, True) == bytes([0xCB, 1])
    assert build_stream_analog_channel(0, False) == bytes([0xC0, 0])
    assert build_stream_analog_channel(16, True) is None


def test_sampling_interval():
    """Interval is packed as two 7-bit bytes, low first."""
    assert build_set_sampling_interval(1000) == bytes([0xF0, 0x7A, 0x68, 0x07, 0xF7])
    assert build_set_sampling_interval(16383) == bytes([0xF0, 0x7A, 0x7F, 0x7F, 0xF7])


def test_sampling_interval_bounds():
    assert build_set_sampling_interval(0) is None
    assert build_set_sampling_interval(16384) is None


def test_touch_mode():
    assert build_set_touch_mode(2, True) == bytes([0xF0, 0x06, 2, 1, 0xF7])
    assert build_set_touch_mode(0, False) == bytes([0xF0, 0x06, 0, 0, 0xF7])


def test_touch_mode_limited_to_three_pins():
    assert build_set_touch_mode(3, True) is None
    assert build_set_touch_mode(-1, True) is None


def test_display_clear():
    assert build_display_clear() == bytes([0xF0, 0x01, 0xF7])


def test_display_show_black_and_white():
    """0/1 pixel values pass through unchanged."""
    pixels = [[(x + y) % 2 for x in range(5)] for y in range(5)]
    frame = build_display_show(False, pixels)
    assert frame[:3] == bytes([0xF0, 0x02, 0x00])
    assert frame[3:-1] == bytes(p for row in pixels for p in row)
    assert frame[-1] == 0xF7
    assert len(frame) == 29


def test_display_show_grayscale_halves_brightness():
    pixels = [[255, 128, 2, 1, 0]] * 5
    frame = build_display_show(True, pixels)
    assert frame[2] == 1
    assert frame[3:8] == bytes([127, 64, 1, 1, 0])
    assert _data_bytes_are_7bit(frame)


def test_display_show_wrong_shape():
    assert build_display_show(False, [[0] * 5] * 4) is None
    assert build_display_show(False, [[0] * 4] * 5) is None


def test_display_plot():
    assert build_display_plot(1, 2, 255) == bytes([0xF0, 0x03, 1, 2, 0x7F, 0xF7])
    assert build_display_plot(4, 4, 1) == bytes([0xF0, 0x03, 4, 4, 1, 0xF7])
    assert build_display_plot(5, 0, 1) is None
    assert build_display_plot(0, -1, 1) is None


def test_scroll_string():
    """Each character is sent as a low/high 7-bit pair."""
    assert build_scroll_string("Hi", 80) == bytes(
        [0xF0, 0x04, 80, 0x48, 0x00, 0x69, 0x00, 0xF7]
    )


def test_scroll_string_default_delay():
    assert build_scroll_string("A")[2] == 120


def test_scroll_string_truncated():
    """Strings longer than 100 characters are cut."""
    frame = build_scroll_string("x" * 150)
    assert len(frame) == 3 + 200 + 1
    assert _data_bytes_are_7bit(frame)


def test_scroll_string_bad_delay():
    assert build_scroll_string("A", 128) is None
    assert build_scroll_string("A", -1) is None


def test_scroll_integer_minus_one():
    assert build_scroll_integer(-1) == bytes(
        [0xF0, 0x05, 120, 0x7F, 0x7F, 0x7F, 0x7F, 0x7F, 0xF7]
    )


def test_scroll_integer_out_of_range():
    assert build_scroll_integer(2**31) is None
    assert build_scroll_integer(-(2**31) - 1) is None
    assert build_scroll_integer(5, 200) is None


def test_scroll_integer_round_trip_through_framer():
    """Scroll-integer frames decode back to the original value."""
    for n in (0, -1, 2147483647, -2147483648):
        received = []
        StreamFramer(received.append).process_bytes(build_scroll_integer(n))
        assert len(received) == 1
        msg = received[0]
        assert isinstance(msg, SysexMessage)
        assert msg.subcommand == SysexCommand.SCROLL_INTEGER
        assert unpack32(msg.payload[1:]) == n
