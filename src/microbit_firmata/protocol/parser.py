"""Interpretation of framed messages received from the board."""

from __future__ import annotations

import logging

from ..models.listeners import ListenerRegistry
from ..models.state import DeviceState
from ..utils.packing import to_signed14, unpack14, unpack21, unpack_text
from .commands import PIN_COUNT, ChannelCommand, SysexCommand
from .framing import ChannelMessage, Message, SysexMessage

logger = logging.getLogger(__name__)


class Dispatcher:
    """Applies messages to a :class:`DeviceState` and notifies listeners.

    Unknown channel commands and sysex subcommands are ignored so newer
    firmware can add messages without breaking older hosts.
    """

    def __init__(
        self,
        state: DeviceState | None = None,
        listeners: ListenerRegistry | None = None,
    ) -> None:
        self.state = state if state is not None else DeviceState()
        self.listeners = listeners if listeners is not None else ListenerRegistry()

        self._channel_handlers = {
            ChannelCommand.DIGITAL_UPDATE: self._digital_update,
            ChannelCommand.ANALOG_UPDATE: self._analog_update,
            ChannelCommand.FIRMATA_VERSION: self._firmata_version,
        }
        self._sysex_handlers = {
            SysexCommand.REPORT_EVENT: self._report_event,
            SysexCommand.DEBUG_STRING: self._debug_string,
            SysexCommand.REPORT_FIRMWARE: self._report_firmware,
        }

    def handle(self, message: Message) -> None:
        logger.debug("Received %r", message)
        if isinstance(message, SysexMessage):
            handler = self._sysex_handlers.get(message.subcommand)
        else:
            handler = self._channel_handlers.get(message.kind)
        if handler:
            handler(message)

    # -- channel messages ----------------------------------------------------

    def _digital_update(self, msg: ChannelMessage) -> None:
        pin_mask = unpack14(msg.arg1, msg.arg2)
        pin = 8 * msg.channel
        for bit in range(8):
            if pin < PIN_COUNT:
                self.state.digital_input[pin] = bool(pin_mask & (1 << bit))
            pin += 1

    def _analog_update(self, msg: ChannelMessage) -> None:
        value = to_signed14(unpack14(msg.arg1, msg.arg2))
        logger.debug("A%d: %d", msg.channel, value)
        self.state.analog_channel[msg.channel] = value
        self.listeners.notify_update()

    def _firmata_version(self, msg: ChannelMessage) -> None:
        self.state.firmata_version = f"Firmata Protocol {msg.arg1}.{msg.arg2}"

    # -- sysex messages ------------------------------------------------------

    def _report_event(self, msg: SysexMessage) -> None:
        if len(msg.payload) < 6:
            logger.debug("Short event report ignored: %r", msg)
            return
        source_id = unpack21(msg.payload[0:3])
        event_id = unpack21(msg.payload[3:6])
        logger.debug("Event source=%d event=%d", source_id, event_id)
        self.listeners.notify_event(source_id, event_id)

    def _debug_string(self, msg: SysexMessage) -> None:
        logger.info("DB: %s", unpack_text(msg.payload))

    def _report_firmware(self, msg: SysexMessage) -> None:
        if len(msg.payload) < 2:
            logger.debug("Short firmware report ignored: %r", msg)
            return
        major, minor = msg.payload[0], msg.payload[1]
        name = unpack_text(msg.payload[2:])
        self.state.firmware_version = f"{name} {major}.{minor}"
