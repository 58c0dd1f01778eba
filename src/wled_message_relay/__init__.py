"""WLED Message Relay - rotate short messages on a remote LED display.

This package provides a daemon that queues submitted text messages, shows
them one at a time as scrolling text on a WLED device, and keeps the SSH
port forward to that device alive.
"""

__version__ = "0.1.0"

from wled_message_relay.config import Settings, load_settings
from wled_message_relay.controller import MessageRelay
from wled_message_relay.device import DeviceInterface, MockDevice, WLEDDevice, parse_hex_color
from wled_message_relay.exceptions import (
    ConfigurationError,
    DeviceCallFailedError,
    InvalidInputError,
    LinkUnavailableError,
    RelayError,
)
from wled_message_relay.link import LinkSupervisor
from wled_message_relay.models import (
    CurrentDisplay,
    MessageView,
    QueuedMessage,
    QueueSnapshot,
    SubmitResult,
)
from wled_message_relay.scheduler import RotationScheduler

__all__ = [
    "ConfigurationError",
    "CurrentDisplay",
    "DeviceCallFailedError",
    "DeviceInterface",
    "InvalidInputError",
    "LinkSupervisor",
    "LinkUnavailableError",
    "MessageRelay",
    "MessageView",
    "MockDevice",
    "QueueSnapshot",
    "QueuedMessage",
    "RelayError",
    "RotationScheduler",
    "Settings",
    "SubmitResult",
    "WLEDDevice",
    "__version__",
    "load_settings",
    "parse_hex_color",
]
