"""Host-side client for the BBC micro:bit Firmata protocol."""

from .client import FirmataClient

__version__ = "0.1.0"
