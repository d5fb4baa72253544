"""Host-side client for one micro:bit board.

Wires a transport, a :class:`StreamFramer`, a :class:`Dispatcher` and the
command builders together. Each client owns its own buffer, state and
listeners, so several boards can be driven side by side.
"""

from __future__ import annotations

import logging
import time
from typing import Protocol, Sequence

from .models.listeners import EventListener, ListenerRegistry, UpdateListener
from .models.state import DeviceState
from .protocol.commands import (
    DEFAULT_SCROLL_DELAY,
    PinMode,
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
    build_system_reset,
    build_track_digital_pin,
)
from .protocol.framing import INPUT_BUFFER_SIZE, StreamFramer
from .protocol.parser import Dispatcher
from .transport.serial_connection import SerialConnection

logger = logging.getLogger(__name__)


class Transport(Protocol):
    def write(self, data: bytes) -> int | None: ...

    def on_data(self, callback) -> None: ...


class FirmataClient:
    """Decodes board messages and sends commands.

    Usage::

        mb = FirmataClient()
        mb.add_event_listener(lambda source, event: print(source, event))
        mb.connect()
        mb.scroll_string("hello")
    """

    def __init__(self, buffer_size: int = INPUT_BUFFER_SIZE) -> None:
        self.state = DeviceState()
        self.listeners = ListenerRegistry()
        self.dispatcher = Dispatcher(self.state, self.listeners)
        self.framer = StreamFramer(self.dispatcher.handle, capacity=buffer_size)
        self._transport: Transport | None = None

    # -- connecting ----------------------------------------------------------

    @property
    def connected(self) -> bool:
        if self._transport is None:
            return False
        return getattr(self._transport, "connected", True)

    def connect(self, port: str | None = None) -> str:
        """Open a serial connection to the board and request its versions.

        Raises:
            ConnectionError: If the board cannot be found or opened.
        """
        conn = SerialConnection(port)
        self._bind(conn)
        try:
            name = conn.open()
        except ConnectionError:
            self._transport = None
            raise
        self.request_versions()
        return name

    def attach(self, transport: Transport) -> None:
        """Use an already open transport (anything with ``write``/``on_data``)."""
        self._bind(transport)
        self.request_versions()

    def _bind(self, transport: Transport) -> None:
        if self._transport is not None and self._transport is not transport:
            self.disconnect()
        self.framer.reset()
        self._transport = transport
        transport.on_data(lambda data: self._receive(transport, data))

    def _receive(self, transport: Transport, data: bytes) -> None:
        # a replaced transport may still deliver from its reader thread
        if transport is self._transport:
            self.framer.process_bytes(data)

    def disconnect(self) -> None:
        if self._transport is None:
            return
        close = getattr(self._transport, "close", None)
        if close is not None:
            close()
        self._transport = None

    def request_versions(self) -> None:
        self._send(build_request_protocol_version())
        self._send(build_request_firmware())

    def refresh_versions(self) -> None:
        """Forget the reported versions and ask the board again."""
        self.state.firmata_version = ""
        self.state.firmware_version = ""
        self.request_versions()

    def wait_for_versions(self, timeout: float = 2.0, interval: float = 0.05) -> bool:
        """Block until both version reports have arrived or ``timeout`` elapses."""
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if self.state.firmata_version and self.state.firmware_version:
                return True
            time.sleep(interval)
        return bool(self.state.firmata_version and self.state.firmware_version)

    def _send(self, data: bytes | None) -> bool:
        if data is None:
            return False
        if self._transport is None:
            raise ConnectionError("Not connected to a micro:bit")
        self._transport.write(data)
        return True

    # -- state ---------------------------------------------------------------

    @property
    def firmata_version(self) -> str:
        return self.state.firmata_version

    @property
    def firmware_version(self) -> str:
        return self.state.firmware_version

    @property
    def digital_input(self) -> list[bool]:
        return self.state.digital_input

    @property
    def analog_channel(self) -> list[int]:
        return self.state.analog_channel

    # -- listeners -----------------------------------------------------------

    def add_event_listener(self, listener: EventListener) -> None:
        """Call ``listener(source_id, event_id)`` for every board event."""
        self.listeners.add_event_listener(listener)

    def add_update_listener(self, listener: UpdateListener) -> None:
        """Call ``listener()`` after every analog channel update."""
        self.listeners.add_update_listener(listener)

    # -- display -------------------------------------------------------------

    def display_clear(self) -> bool:
        return self._send(build_display_clear())

    def display_show(self, grayscale: bool, pixels: Sequence[Sequence[int]]) -> bool:
        return self._send(build_display_show(grayscale, pixels))

    def display_plot(self, x: int, y: int, brightness: int) -> bool:
        return self._send(build_display_plot(x, y, brightness))

    def scroll_string(self, text: str, delay: int = DEFAULT_SCROLL_DELAY) -> bool:
        return self._send(build_scroll_string(text, delay))

    def scroll_number(self, n: int, delay: int = DEFAULT_SCROLL_DELAY) -> bool:
        return self._send(build_scroll_integer(n, delay))

    # -- pins and sensor channels --------------------------------------------

    def set_pin_mode(self, pin: int, mode: int) -> bool:
        return self._send(build_set_pin_mode(pin, mode))

    def set_digital_pin(self, pin: int, value: bool) -> bool:
        return self._send(build_set_digital_pin(pin, value))

    def track_digital_pin(self, pin: int, mode: int = PinMode.INPUT_PULLUP) -> bool:
        return self._send(build_track_digital_pin(pin, mode))

    def stop_tracking_digital_pin(self, pin: int) -> bool:
        return self._send(build_stop_tracking_digital_pin(pin))

    def stream_analog_channel(self, channel: int) -> bool:
        return self._send(build_stream_analog_channel(channel, True))

    def stop_streaming_analog_channel(self, channel: int) -> bool:
        return self._send(build_stream_analog_channel(channel, False))

    def set_analog_sampling_interval(self, msecs: int) -> bool:
        return self._send(build_set_sampling_interval(msecs))

    def set_touch_mode(self, pin: int, on: bool) -> bool:
        return self._send(build_set_touch_mode(pin, on))

    def system_reset(self) -> bool:
        return self._send(build_system_reset())
