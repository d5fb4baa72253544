"""Last-known board state as reported by the micro:bit."""

from __future__ import annotations

from dataclasses import dataclass, field

from ..protocol.commands import ANALOG_CHANNEL_COUNT, PIN_COUNT


@dataclass
class DeviceState:
    """Digital pins, analog channels and version strings.

    Written only by the dispatcher; anything may read it.
    """

    digital_input: list[bool] = field(default_factory=lambda: [False] * PIN_COUNT)
    analog_channel: list[int] = field(
        default_factory=lambda: [0] * ANALOG_CHANNEL_COUNT
    )
    firmata_version: str = ""
    firmware_version: str = ""

    def to_dict(self) -> dict:
        return {
            "firmata_version": self.firmata_version,
            "firmware_version": self.firmware_version,
            "digital_input": list(self.digital_input),
            "analog_channel": list(self.analog_channel),
        }
