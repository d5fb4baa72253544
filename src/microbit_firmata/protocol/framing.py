"""Stream framer: turns an arbitrarily chunked byte stream into messages.

There are no length prefixes on the wire. Status bytes have the high bit
set and data bytes never do, so message boundaries are found by scanning
for the next high-bit byte::

    channel message:  [status] [arg1] [arg2]      (0, 1 or 2 args)
    sysex message:    [0xF0] [subcommand] [data...] [0xF7]

A status byte always terminates the message before it. Corrupt or truncated
input is therefore bounded by the next status byte and the framer resumes
from there. When the most recent message has no following status byte, a
fixed argument count decides whether it is complete; a sysex message is
never complete until a later status byte (its terminator) arrives.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Union

from .commands import ChannelCommand

logger = logging.getLogger(__name__)

INPUT_BUFFER_SIZE = 1000


@dataclass(frozen=True)
class ChannelMessage:
    """A short channel or system message."""

    command: int
    arg1: int = 0
    arg2: int = 0

    @property
    def channel(self) -> int:
        return self.command & 0x0F

    @property
    def kind(self) -> int:
        """Top nibble for channel commands, the whole byte for 0xF0-0xFF."""
        if self.command >= 0xF0:
            return self.command
        return self.command & 0xF0

    def __repr__(self) -> str:
        return (
            f"ChannelMessage(command=0x{self.command:02X}, "
            f"arg1={self.arg1}, arg2={self.arg2})"
        )


@dataclass(frozen=True)
class SysexMessage:
    """A sysex message; ``payload`` excludes the subcommand and delimiters."""

    subcommand: int
    payload: bytes = b""

    def __repr__(self) -> str:
        return (
            f"SysexMessage(subcommand=0x{self.subcommand:02X}, "
            f"payload={self.payload.hex(' ') if self.payload else '(empty)'})"
        )


Message = Union[ChannelMessage, SysexMessage]


def required_args(command: int) -> int:
    """Argument bytes needed before a trailing channel command is complete."""
    if command == ChannelCommand.SYSTEM_RESET:
        return 0
    if command & 0xF0 in (ChannelCommand.STREAM_ANALOG, ChannelCommand.STREAM_DIGITAL):
        return 1
    return 2


class StreamFramer:
    """Buffers incoming bytes and hands complete messages to a handler.

    Usage::

        framer = StreamFramer(dispatcher.handle)
        transport.on_data(framer.process_bytes)

    All complete messages in the buffer are delivered, in arrival order,
    before :meth:`process_bytes` returns. A partial message stays buffered
    until a later call completes it.
    """

    def __init__(
        self,
        handler: Callable[[Message], None],
        capacity: int = INPUT_BUFFER_SIZE,
    ) -> None:
        self._handler = handler
        self._buf = bytearray(capacity)
        self._count = 0
        self._processing = False
        self._queued = bytearray()
        self.dropped_bytes = 0
        self.skipped_messages = 0

    @property
    def capacity(self) -> int:
        return len(self._buf)

    @property
    def pending(self) -> bytes:
        """Bytes received but not yet consumed."""
        return bytes(self._buf[: self._count])

    def reset(self) -> None:
        """Discard any buffered input."""
        self._count = 0
        self._queued.clear()

    def process_bytes(self, data: bytes) -> None:
        """Append ``data`` and dispatch every complete message.

        Calls made from inside the handler (for example by a listener) are
        queued and processed after the current message has been handled.
        """
        if not data:
            return
        if self._processing:
            self._queued += data
            return

        self._queued += data
        self._processing = True
        try:
            while self._queued:
                queued = bytes(self._queued)
                self._queued.clear()
                self._append(queued)
                self._drain()
        finally:
            self._processing = False

    # -- internals -----------------------------------------------------------

    def _append(self, data: bytes) -> None:
        room = len(self._buf) - self._count
        if len(data) > room:
            dropped = len(data) - room
            self.dropped_bytes += dropped
            logger.warning("Input buffer full, dropped %d bytes", dropped)
            data = data[:room]
        self._buf[self._count : self._count + len(data)] = data
        self._count += len(data)

    def _find_cmd(self, start: int) -> int:
        for i in range(start, self._count):
            if self._buf[i] & 0x80:
                return i
        return -1

    def _drain(self) -> None:
        cmd_start = 0
        try:
            while True:
                cmd_start = self._find_cmd(cmd_start)
                if cmd_start < 0:
                    # no status byte left; nothing can ever complete
                    cmd_start = self._count
                    return

                length, message = self._frame_at(cmd_start)
                if length < 0:
                    return
                cmd_start += length
                if message is not None:
                    self._handler(message)
        finally:
            # consumed messages never stay buffered, even if the handler raised
            self._compact(cmd_start)

    def _compact(self, start: int) -> None:
        if start == 0:
            return
        remaining = self._count - start
        self._buf[0:remaining] = self._buf[start : self._count]
        self._count = remaining

    def _frame_at(self, cmd_start: int) -> tuple[int, Message | None]:
        """Frame the message at ``cmd_start``.

        Returns the number of bytes it spans (-1 if it is not complete yet)
        and the message, or ``None`` when the bytes are consumed unseen.
        """
        buf = self._buf
        cmd = buf[cmd_start]
        next_cmd = self._find_cmd(cmd_start + 1)

        if next_cmd < 0:
            if cmd == ChannelCommand.SYSEX_START:
                return -1, None
            arg_count = self._count - (cmd_start + 1)
            if arg_count < required_args(cmd):
                return -1, None
        else:
            arg_count = next_cmd - (cmd_start + 1)

        if cmd == ChannelCommand.SYSEX_START:
            end = cmd_start + arg_count + 1
            if buf[end] != ChannelCommand.SYSEX_END:
                self.skipped_messages += 1
                logger.debug(
                    "Skipping unterminated sysex (%d bytes, next status 0x%02X)",
                    arg_count,
                    buf[end],
                )
                return arg_count + 1, None
            if arg_count == 0:
                return 2, None
            message = SysexMessage(
                subcommand=buf[cmd_start + 1],
                payload=bytes(buf[cmd_start + 2 : end]),
            )
            return arg_count + 2, message

        arg1 = buf[cmd_start + 1] if arg_count > 0 else 0
        arg2 = buf[cmd_start + 2] if arg_count > 1 else 0
        return arg_count + 1, ChannelMessage(command=cmd, arg1=arg1, arg2=arg2)
