"""MCP server entry point for a BBC micro:bit running MBFirmata.

Exposes tools and resources via the Model Context Protocol using the
official Python MCP SDK with stdio transport.
"""

from __future__ import annotations

import json
import logging
import os
import time
from collections import deque
from typing import Any

from mcp.server.fastmcp import FastMCP

from .client import FirmataClient
from .protocol.commands import (
    ANALOG_CHANNEL_COUNT,
    DEFAULT_SCROLL_DELAY,
    DISPLAY_SIZE,
    MAX_SAMPLING_INTERVAL,
    MAX_SCROLL_DELAY,
    MAX_SCROLL_LENGTH,
    PIN_COUNT,
    TOUCH_PIN_COUNT,
    PinMode,
)
from .utils.packing import INT32_MAX, INT32_MIN

logger = logging.getLogger(__name__)

mcp = FastMCP(
    "microbit-firmata",
    instructions="MCP server for a BBC micro:bit running the MBFirmata firmware",
)

MAX_RECENT_EVENTS = 100

# Global connection state
_client: FirmataClient | None = None
_recent_events: deque[dict[str, Any]] = deque(maxlen=MAX_RECENT_EVENTS)


def _get_client() -> FirmataClient:
    """Get the connected client, raising if not connected."""
    if _client is None or not _client.connected:
        raise RuntimeError(
            "Not connected to a micro:bit. Use the 'connect' tool first."
        )
    return _client


def _record_event(source_id: int, event_id: int) -> None:
    _recent_events.append(
        {"source_id": source_id, "event_id": event_id, "time": time.time()}
    )


# ─── CONNECTION TOOLS ─────────────────────────────────────────────────

@mcp.tool()
def connect(port: str | None = None) -> dict[str, Any]:
    """Open a serial connection to the micro:bit.

    Auto-discovers the board by USB vendor/product ID (0x0D28:0x0204)
    unless a port is given (or set in MICROBIT_PORT). Requests the
    Firmata protocol and firmware versions once connected.

    Args:
        port: Optional serial port name, e.g. /dev/ttyACM0 or COM3.
    """
    global _client
    if _client is not None and _client.connected:
        return {
            "connected": True,
            "message": "Already connected",
            "firmware": _client.firmware_version,
        }

    client = FirmataClient()
    client.add_event_listener(_record_event)
    name = client.connect(port or os.environ.get("MICROBIT_PORT"))
    _client = client

    result: dict[str, Any] = {"connected": True, "port": name}
    if client.wait_for_versions():
        result["firmata"] = client.firmata_version
        result["firmware"] = client.firmware_version
    return result


@mcp.tool()
def disconnect() -> dict[str, bool]:
    """Close the serial connection to the board."""
    global _client
    if _client is None:
        return {"disconnected": True}
    _client.disconnect()
    _client = None
    return {"disconnected": True}


@mcp.tool()
def get_device_info() -> dict[str, Any]:
    """Report the Firmata protocol version and firmware name/version.

    Re-requests both reports and waits briefly for the answers.
    """
    client = _get_client()
    client.refresh_versions()
    if not client.wait_for_versions():
        return {"error": "No version report from board"}
    return {
        "firmata": client.firmata_version,
        "firmware": client.firmware_version,
    }


# ─── DISPLAY TOOLS ───────────────────────────────────────────────────

@mcp.tool()
def scroll_text(text: str, delay: int = DEFAULT_SCROLL_DELAY) -> dict[str, Any]:
    """Scroll a string across the 5x5 display.

    Args:
        text: Text to scroll (truncated to 100 characters).
        delay: Milliseconds per scroll step (0-127, default 120).
    """
    if not 0 <= delay <= MAX_SCROLL_DELAY:
        return {"error": f"Delay must be 0-{MAX_SCROLL_DELAY}"}
    _get_client().scroll_string(text, delay)
    return {"text": text[:MAX_SCROLL_LENGTH], "delay": delay}


@mcp.tool()
def scroll_number(n: int, delay: int = DEFAULT_SCROLL_DELAY) -> dict[str, Any]:
    """Scroll a signed 32-bit integer across the display.

    Args:
        n: Integer to show.
        delay: Milliseconds per scroll step (0-127, default 120).
    """
    if not INT32_MIN <= n <= INT32_MAX:
        return {"error": "Number must fit in a signed 32-bit integer"}
    if not 0 <= delay <= MAX_SCROLL_DELAY:
        return {"error": f"Delay must be 0-{MAX_SCROLL_DELAY}"}
    _get_client().scroll_number(n, delay)
    return {"number": n, "delay": delay}


@mcp.tool()
def display_clear() -> dict[str, bool]:
    """Clear the display and stop any running animation."""
    _get_client().display_clear()
    return {"cleared": True}


@mcp.tool()
def display_show(pixels: list[list[int]], grayscale: bool | None = None) -> dict[str, Any]:
    """Show a 5x5 image.

    Args:
        pixels: Five rows of five brightness values (0-255, or 0/1).
        grayscale: Use grayscale mode. Defaults to True if any value is > 1.
    """
    if len(pixels) != DISPLAY_SIZE or any(len(row) != DISPLAY_SIZE for row in pixels):
        return {"error": "Pixels must be 5 rows of 5 values"}
    if grayscale is None:
        grayscale = any(pix > 1 for row in pixels for pix in row)
    _get_client().display_show(grayscale, pixels)
    return {"shown": True, "grayscale": grayscale}


@mcp.tool()
def display_plot(x: int, y: int, brightness: int = 255) -> dict[str, Any]:
    """Set one display pixel.

    Args:
        x: Column 0-4.
        y: Row 0-4.
        brightness: 0-255.
    """
    if not 0 <= x < DISPLAY_SIZE or not 0 <= y < DISPLAY_SIZE:
        return {"error": "x and y must be 0-4"}
    _get_client().display_plot(x, y, brightness)
    return {"x": x, "y": y, "brightness": brightness}


# ─── PIN AND SENSOR TOOLS ────────────────────────────────────────────

@mcp.tool()
def track_digital_pin(pin: int, pulldown: bool = False) -> dict[str, Any]:
    """Configure a pin as a digital input and stream its value.

    Args:
        pin: Pin number 0-20.
        pulldown: Use the pull-down resistor instead of pull-up.
    """
    if not 0 <= pin < PIN_COUNT:
        return {"error": "Pin must be 0-20"}
    mode = PinMode.INPUT_PULLDOWN if pulldown else PinMode.INPUT_PULLUP
    _get_client().track_digital_pin(pin, mode)
    return {"pin": pin, "mode": mode.name}


@mcp.tool()
def stop_tracking_digital_pin(pin: int) -> dict[str, Any]:
    """Stop streaming the port that contains a pin.

    Args:
        pin: Pin number 0-20.
    """
    if not 0 <= pin < PIN_COUNT:
        return {"error": "Pin must be 0-20"}
    _get_client().stop_tracking_digital_pin(pin)
    return {"pin": pin, "tracking": False}


@mcp.tool()
def set_digital_pin(pin: int, value: bool) -> dict[str, Any]:
    """Drive a digital output pin.

    Args:
        pin: Pin number 0-20.
        value: True for high, False for low.
    """
    if not 0 <= pin < PIN_COUNT:
        return {"error": "Pin must be 0-20"}
    client = _get_client()
    client.set_pin_mode(pin, PinMode.DIGITAL_OUTPUT)
    client.set_digital_pin(pin, value)
    return {"pin": pin, "value": value}


@mcp.tool()
def stream_analog_channel(channel: int, enabled: bool = True) -> dict[str, Any]:
    """Start or stop streaming an analog channel.

    Channels 8-10 are the accelerometer axes and 11 is the light sensor.

    Args:
        channel: Channel number 0-15.
        enabled: True to start streaming, False to stop.
    """
    if not 0 <= channel < ANALOG_CHANNEL_COUNT:
        return {"error": "Channel must be 0-15"}
    client = _get_client()
    if enabled:
        client.stream_analog_channel(channel)
    else:
        client.stop_streaming_analog_channel(channel)
    return {"channel": channel, "streaming": enabled}


@mcp.tool()
def set_sampling_interval(msecs: int) -> dict[str, Any]:
    """Set the milliseconds between streamed analog samples.

    Args:
        msecs: Interval 1-16383.
    """
    if not 1 <= msecs <= MAX_SAMPLING_INTERVAL:
        return {"error": f"Interval must be 1-{MAX_SAMPLING_INTERVAL}"}
    _get_client().set_analog_sampling_interval(msecs)
    return {"sampling_interval": msecs}


@mcp.tool()
def set_touch_mode(pin: int, enabled: bool) -> dict[str, Any]:
    """Turn touch sensing on or off for pins 0-2.

    Touch pins report events with source ids 7-9.
    """
    if not 0 <= pin < TOUCH_PIN_COUNT:
        return {"error": "Touch mode is only supported on pins 0-2"}
    _get_client().set_touch_mode(pin, enabled)
    return {"pin": pin, "touch": enabled}


@mcp.tool()
def read_digital_pins() -> dict[str, Any]:
    """Last reported value of every digital pin."""
    client = _get_client()
    return {"digital_input": list(client.digital_input)}


@mcp.tool()
def read_analog_channels() -> dict[str, Any]:
    """Last reported value of every analog channel."""
    client = _get_client()
    return {"analog_channel": list(client.analog_channel)}


@mcp.tool()
def get_recent_events(limit: int = 20) -> dict[str, Any]:
    """Most recent board events (button presses, touch, gestures...).

    Args:
        limit: Maximum number of events to return (newest last).
    """
    events = list(_recent_events)[-limit:] if limit > 0 else []
    return {"events": events}


# ─── MCP RESOURCES ───────────────────────────────────────────────────

@mcp.resource("microbit://device/info")
def resource_device_info() -> str:
    """Connection state and version strings."""
    if _client is None or not _client.connected:
        return json.dumps({"connected": False})
    return json.dumps({
        "connected": True,
        "firmata": _client.firmata_version,
        "firmware": _client.firmware_version,
    })


@mcp.resource("microbit://device/state")
def resource_device_state() -> str:
    """Last-known pin and analog channel values."""
    if _client is None:
        return json.dumps({"connected": False})
    return json.dumps(_client.state.to_dict())


@mcp.resource("microbit://device/events")
def resource_device_events() -> str:
    """Recently received board events."""
    return json.dumps({"events": list(_recent_events)})


@mcp.resource("microbit://catalog/pin-modes")
def resource_pin_modes() -> str:
    """Pin modes understood by the firmware."""
    modes = [{"id": int(mode), "name": mode.name} for mode in PinMode]
    return json.dumps({"pin_modes": modes})


# ─── ENTRY POINT ─────────────────────────────────────────────────────

def main():
    """Run the MCP server with stdio transport."""
    logging.basicConfig(level=logging.INFO)
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
