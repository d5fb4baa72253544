"""Protocol layer: stream framing, command builders, and message dispatch."""

from .framing import ChannelMessage, StreamFramer, SysexMessage
from .commands import ChannelCommand, PinMode, SysexCommand
