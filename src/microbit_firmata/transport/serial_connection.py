"""Serial connection to a BBC micro:bit running the MBFirmata firmware.

The board enumerates as a USB CDC serial port (DAPLink interface,
0x0D28:0x0204). Incoming bytes are read on a background thread and handed,
unframed and in arrival order, to the registered data callback.
"""

from __future__ import annotations

import logging
import threading
from typing import Callable

import serial
from serial.tools import list_ports

logger = logging.getLogger(__name__)

MICROBIT_VENDOR_ID = 0x0D28
MICROBIT_PRODUCT_ID = 0x0204
BAUD_RATE = 57600
READ_SIZE = 256
READ_TIMEOUT_S = 0.05


def find_port(
    vendor_id: int = MICROBIT_VENDOR_ID,
    product_id: int = MICROBIT_PRODUCT_ID,
) -> str | None:
    """Return the device name of the first attached micro:bit, if any."""
    for info in list_ports.comports():
        if info.vid == vendor_id and info.pid == product_id:
            return info.device
    return None


class SerialConnection:
    """Manages the serial port and the reader thread.

    Usage::

        conn = SerialConnection()
        conn.on_data(framer.process_bytes)
        conn.open()
        conn.write(command_bytes)
        conn.close()
    """

    def __init__(
        self,
        port: str | None = None,
        baudrate: int = BAUD_RATE,
    ) -> None:
        self._port = port
        self._baudrate = baudrate
        self._serial: serial.Serial | None = None
        self._reader: threading.Thread | None = None
        self._running = False
        self._on_data: Callable[[bytes], None] | None = None

    @property
    def connected(self) -> bool:
        return self._serial is not None and self._serial.is_open

    @property
    def port(self) -> str | None:
        return self._port

    def on_data(self, callback: Callable[[bytes], None]) -> None:
        """Register the callback that receives every chunk of incoming bytes."""
        self._on_data = callback

    def open(self) -> str:
        """Open the port (auto-discovering the board if none was given).

        Returns:
            The name of the opened port.

        Raises:
            ConnectionError: If no board is found or the port cannot be opened.
        """
        if self.connected:
            return self._port

        if self._port is None:
            self._port = find_port()
            if self._port is None:
                raise ConnectionError(
                    "No micro:bit found "
                    f"({MICROBIT_VENDOR_ID:#06x}:{MICROBIT_PRODUCT_ID:#06x}). "
                    "Is your board plugged in?"
                )

        try:
            self._serial = serial.Serial(
                self._port, self._baudrate, timeout=READ_TIMEOUT_S
            )
        except (serial.SerialException, OSError) as e:
            raise ConnectionError(f"Could not open {self._port}: {e}") from e

        logger.info("Opened %s at %d baud", self._port, self._baudrate)
        self._running = True
        self._reader = threading.Thread(
            target=self._read_loop, name=f"firmata-reader-{self._port}", daemon=True
        )
        self._reader.start()
        return self._port

    def close(self) -> None:
        """Stop the reader thread and close the port."""
        if self._serial is None:
            return

        self._running = False
        reader, self._reader = self._reader, None
        if reader is not None and reader is not threading.current_thread():
            reader.join(timeout=1.0)

        try:
            self._serial.close()
        except (serial.SerialException, OSError) as e:
            logger.warning("Error closing %s: %s", self._port, e)
        finally:
            self._serial = None
            logger.info("Closed %s", self._port)

    def write(self, data: bytes) -> int:
        """Write raw command bytes to the board.

        Raises:
            ConnectionError: If the port is not open.
        """
        if not self.connected:
            raise ConnectionError("Not connected to a micro:bit")
        return self._serial.write(data)

    # -- internals -----------------------------------------------------------

    def _read_loop(self) -> None:
        ser = self._serial
        while self._running and ser is not None:
            try:
                data = ser.read(ser.in_waiting or READ_SIZE)
            except (serial.SerialException, OSError) as e:
                logger.warning("Read error on %s: %s", self._port, e)
                self.close()
                break
            if data and self._on_data is not None:
                try:
                    self._on_data(data)
                except Exception:
                    logger.exception("Data callback failed on %s", self._port)
