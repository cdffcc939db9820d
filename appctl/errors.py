"""Error types and process exit codes for appctl."""

from enum import IntEnum
from typing import Optional


INVALID_PORT_ERROR_MESSAGE = "Invalid port specified. Ports must be a comma-delimited list of integers between 0-65535."
MALFORMED_ROUTE_ERROR_MESSAGE = "Malformed route. Routes must be of the format route:port"
MUST_SET_MONITORED_PORT_ERROR_MESSAGE = "Must set monitored-port when specifying multiple exposed ports unless --no-monitor is set."
MONITORED_PORT_NOT_EXPOSED_ERROR_MESSAGE = "Monitored port must be one of the exposed ports."
MISSING_START_COMMAND_ERROR_MESSAGE = "Unable to determine start command from image metadata."


class ExitCode(IntEnum):
    """Process exit codes returned by appctl commands."""
    OK = 0
    COMMAND_FAILED = 1
    INVALID_SYNTAX = 2
    TIMED_OUT = 3
    PLACEMENT_ERROR = 4


class AppctlError(Exception):
    """Base class for all appctl errors."""


class UsageError(AppctlError):
    """Command-line arguments are malformed."""


class ConfigurationError(AppctlError, ValueError):
    """Resolved configuration is invalid; raised before any cluster mutation."""


class InvalidPortError(ConfigurationError):
    def __init__(self, message: str = INVALID_PORT_ERROR_MESSAGE):
        super().__init__(message)


class MalformedRouteError(ConfigurationError):
    def __init__(self, message: str = MALFORMED_ROUTE_ERROR_MESSAGE):
        super().__init__(message)


class MustSetMonitoredPortError(ConfigurationError):
    def __init__(self, message: str = MUST_SET_MONITORED_PORT_ERROR_MESSAGE):
        super().__init__(message)


class MonitoredPortNotExposedError(ConfigurationError):
    def __init__(self, message: str = MONITORED_PORT_NOT_EXPOSED_ERROR_MESSAGE):
        super().__init__(message)


class MissingStartCommandError(ConfigurationError):
    def __init__(self, message: str = MISSING_START_COMMAND_ERROR_MESSAGE):
        super().__init__(message)


class DefinitionError(ConfigurationError):
    """An app or task definition file could not be read or is invalid."""


class ImageMetadataError(AppctlError):
    """Image metadata could not be fetched or parsed."""


class ClusterError(AppctlError):
    """The cluster API rejected a request or could not be reached.

    Attributes:
        status_code: HTTP status code of the response, if one was received
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class SubmissionError(AppctlError):
    """A mutating cluster request failed. Never retried."""
