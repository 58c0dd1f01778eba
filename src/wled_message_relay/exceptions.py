"""Custom exception hierarchy for the message relay."""


class RelayError(Exception):
    """Base exception for all message relay errors."""


class ConfigurationError(RelayError):
    """Raised when configuration is invalid or missing."""


class InvalidInputError(RelayError):
    """Raised when submitted message text is empty or too long."""


class LinkUnavailableError(RelayError):
    """Raised when the forwarding link to the device cannot be established."""


class DeviceCallFailedError(RelayError):
    """Raised when an HTTP call to the WLED device fails."""
