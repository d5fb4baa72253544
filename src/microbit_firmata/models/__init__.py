"""Board state and listener registry."""

from .state import DeviceState
from .listeners import ListenerRegistry
