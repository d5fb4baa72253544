"""Serial transport to the board."""

from .serial_connection import SerialConnection, find_port
