"""Tests for the FirmataClient facade."""

import pytest

from microbit_firmata.client import FirmataClient
from microbit_firmata.protocol.commands import PinMode
from microbit_firmata.utils.packing import pack_text


def _attached(transport):
    client = FirmataClient()
    client.attach(transport)
    return client


def test_attach_requests_versions(transport):
    _attached(transport)
    assert transport.writes == [bytes([0xF9, 0, 0]), bytes([0xF0, 0x79, 0xF7])]


def test_version_reports_update_state(transport):
    client = _attached(transport)
    transport.feed(bytes([0xF9, 2, 6]))
    transport.feed(bytes([0xF0, 0x79, 0, 9]) + pack_text("MBFirmata") + b"\xF7")
    assert client.firmata_version == "Firmata Protocol 2.6"
    assert client.firmware_version == "MBFirmata 0.9"
    assert client.wait_for_versions(timeout=0.1)


def test_wait_for_versions_times_out(transport):
    client = _attached(transport)
    assert client.wait_for_versions(timeout=0.05, interval=0.01) is False


def test_event_listener(transport):
    client = _attached(transport)
    events = []
    client.add_event_listener(lambda s, e: events.append((s, e)))
    transport.feed(bytes([0xF0, 0x0D, 1, 0, 0, 1, 0, 0, 0xF7]))
    assert events == [(1, 1)]


def test_update_listener_reads_state(transport):
    client = _attached(transport)
    seen = []
    client.add_update_listener(lambda: seen.append(client.analog_channel[11]))
    transport.feed(bytes([0xEB, 0x7F, 0x7F]))
    assert seen == [-1]


def test_digital_input(transport):
    client = _attached(transport)
    transport.feed(bytes([0x90, 0x05, 0x00]))
    assert client.digital_input[0] is True
    assert client.digital_input[1] is False


def test_listener_may_send_commands(transport):
    """Writing from inside a listener is safe."""
    client = _attached(transport)
    client.add_event_listener(lambda s, e: client.scroll_number(e))
    transport.feed(bytes([0xF0, 0x0D, 1, 0, 0, 5, 0, 0, 0xF7]))
    assert transport.writes[-1] == bytes([0xF0, 0x05, 120, 5, 0, 0, 0, 0, 0xF7])


def test_commands_written(transport):
    client = _attached(transport)
    transport.writes.clear()
    assert client.display_clear()
    assert client.scroll_string("Hi", 80)
    assert client.track_digital_pin(3, PinMode.INPUT_PULLDOWN)
    assert client.stream_analog_channel(8)
    assert client.set_analog_sampling_interval(100)
    assert transport.writes == [
        bytes([0xF0, 0x01, 0xF7]),
        bytes([0xF0, 0x04, 80, 0x48, 0, 0x69, 0, 0xF7]),
        bytes([0xF4, 3, 0x0F, 0xD0, 1]),
        bytes([0xC8, 1]),
        bytes([0xF0, 0x7A, 100, 0, 0xF7]),
    ]


def test_invalid_commands_write_nothing(transport):
    client = _attached(transport)
    transport.writes.clear()
    assert client.set_touch_mode(5, True) is False
    assert client.stream_analog_channel(16) is False
    assert client.display_plot(9, 9, 1) is False
    assert transport.writes == []


def test_send_without_transport():
    client = FirmataClient()
    assert client.connected is False
    with pytest.raises(ConnectionError):
        client.display_clear()


def test_disconnect_closes_transport(transport):
    client = _attached(transport)
    client.disconnect()
    assert transport.closed
    assert client.connected is False


def test_attach_discards_stale_input(transport):
    client = FirmataClient()
    client.framer.process_bytes(bytes([0xF0, 0x0D]))
    client.attach(transport)
    assert client.framer.pending == b""


def test_independent_clients(transport, other_transport):
    """Two clients keep separate buffers and state."""
    other = other_transport
    a = _attached(transport)
    b = _attached(other)
    transport.feed(bytes([0xE0, 0x05]))
    other.feed(bytes([0xE0, 0x07, 0x00]))
    assert a.analog_channel[0] == 0
    assert b.analog_channel[0] == 7
    assert a.framer.pending == bytes([0xE0, 0x05])


def test_reattach_closes_previous_transport(transport, other_transport):
    """Bytes from a replaced transport are not decoded."""
    client = _attached(transport)
    client.attach(other_transport)
    assert transport.closed
    transport.feed(bytes([0xF9, 7, 7]))
    assert client.firmata_version == ""
    other_transport.feed(bytes([0xF9, 2, 6]))
    assert client.firmata_version == "Firmata Protocol 2.6"


def test_refresh_versions(transport):
    client = _attached(transport)
    transport.feed(bytes([0xF9, 2, 5]))
    transport.writes.clear()
    client.refresh_versions()
    assert client.firmata_version == ""
    assert transport.writes == [bytes([0xF9, 0, 0]), bytes([0xF0, 0x79, 0xF7])]
