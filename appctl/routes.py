"""Route override parsing.

A route specification is a comma-delimited list of PORT:HOSTNAME_PREFIX
segments, e.g. ``80:web,8080:api``.
"""

import re
from typing import Iterable, List, Optional

from appctl.errors import MalformedRouteError
from appctl.models import RouteOverride
from appctl.ports import MAX_PORT


_PORT_PATTERN = re.compile(r"[0-9]+")


def parse_route_overrides(routes: Optional[str]) -> List[RouteOverride]:
    """Parse a route specification into route overrides.

    Empty segments are skipped. An empty specification returns an empty list,
    meaning default routing by app name.

    Raises:
        MalformedRouteError: If any segment is malformed; nothing is returned
    """
    overrides = []
    if not routes:
        return overrides

    for segment in routes.split(","):
        if not segment:
            continue

        port, separator, hostname_prefix = segment.partition(":")
        if not separator or not _PORT_PATTERN.fullmatch(port) or int(port) > MAX_PORT:
            raise MalformedRouteError()

        overrides.append(RouteOverride(port=int(port), hostname_prefix=hostname_prefix))

    return overrides


def format_route_overrides(overrides: Iterable[RouteOverride]) -> str:
    """Render route overrides back into a route specification."""
    return ",".join(f"{route.port}:{route.hostname_prefix}" for route in overrides)
