"""Port configuration resolution from flags and image metadata."""

import re
from typing import List, Optional

from appctl.errors import InvalidPortError, MonitoredPortNotExposedError, MustSetMonitoredPortError
from appctl.models import DEFAULT_PORT, ImageMetadata, PortConfig


MAX_PORT = 65535

_PORT_PATTERN = re.compile(r"[0-9]+")


def parse_port(token: str) -> int:
    """Parse a single port token as an unsigned integer in [0, 65535].

    Raises:
        InvalidPortError: If the token is not a number or is out of range
    """
    if not _PORT_PATTERN.fullmatch(token):
        raise InvalidPortError()
    port = int(token)
    if port > MAX_PORT:
        raise InvalidPortError()
    return port


def parse_ports(ports: str) -> List[int]:
    """Parse a comma-delimited ports string, sorted lexically ascending.

    All-or-nothing: a single bad token fails the whole string.
    """
    return [parse_port(token) for token in sorted(ports.split(","))]


def resolve_port_config(
    ports: Optional[str],
    monitored_port: int,
    no_monitor: bool,
    metadata: ImageMetadata
) -> PortConfig:
    """Derive exposed and monitored ports from flags and image metadata.

    Precedence:
        1. no ports flag, metadata declares ports: metadata verbatim
        2. no ports flag, no metadata ports, monitoring disabled: 8080 unmonitored
        3. no ports flag, no metadata ports, monitoring enabled: 8080 monitored
        4. ports flag: parsed ports; a single port is always the monitored one

    Args:
        ports: Comma-delimited ports flag, or None/'' when not given
        monitored_port: Explicit monitored port flag (0 when not given)
        no_monitor: Whether health monitoring is disabled
        metadata: Image metadata for the app's image

    Returns:
        Fully populated PortConfig

    Raises:
        MustSetMonitoredPortError: Several ports, no monitored port, monitoring on
        InvalidPortError: A port token is not an integer in [0, 65535]
        MonitoredPortNotExposedError: Monitored port is not among the exposed ports
    """
    if not ports:
        if not metadata.ports.is_empty():
            return metadata.ports
        if no_monitor:
            return PortConfig(exposed=[DEFAULT_PORT], monitored=0)
        return PortConfig(exposed=[DEFAULT_PORT], monitored=DEFAULT_PORT)

    port_tokens = ports.split(",")
    if len(port_tokens) > 1 and not monitored_port and not no_monitor:
        raise MustSetMonitoredPortError()

    exposed = parse_ports(ports)

    if len(exposed) == 1:
        return PortConfig(exposed=exposed, monitored=exposed[0])

    if no_monitor:
        return PortConfig(exposed=exposed, monitored=0)

    if monitored_port not in exposed:
        raise MonitoredPortNotExposedError()

    return PortConfig(exposed=exposed, monitored=monitored_port)
