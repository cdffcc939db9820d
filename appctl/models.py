"""Data model shared by the resolvers, the deployer and the cluster client."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


DEFAULT_PORT = 8080
DEFAULT_CPU_WEIGHT = 100
DEFAULT_MEMORY_MB = 128
DEFAULT_DISK_MB = 1024
DEFAULT_WORKING_DIR = "/"


@dataclass(frozen=True)
class PortConfig:
    """Exposed ports and the single monitored port (0 means unmonitored)."""
    exposed: List[int] = field(default_factory=list)
    monitored: int = 0

    def is_empty(self) -> bool:
        return len(self.exposed) == 0


@dataclass(frozen=True)
class RouteOverride:
    """Maps an exposed port to a public hostname prefix."""
    port: int
    hostname_prefix: str

    def to_dict(self) -> Dict[str, Any]:
        return {"port": self.port, "hostname_prefix": self.hostname_prefix}


@dataclass(frozen=True)
class ImageMetadata:
    """What a container image declares about itself."""
    working_dir: str = ""
    start_command: List[str] = field(default_factory=list)
    ports: PortConfig = field(default_factory=PortConfig)


@dataclass(frozen=True)
class ResourceLimits:
    cpu_weight: int = DEFAULT_CPU_WEIGHT
    memory_mb: int = DEFAULT_MEMORY_MB
    disk_mb: int = DEFAULT_DISK_MB


@dataclass(frozen=True)
class InstanceState:
    """Instance counts reported by the cluster for one app."""
    running: int
    placement_error: bool = False


@dataclass(frozen=True)
class DeploymentRequest:
    """Everything the cluster needs to create an app.

    Built once per create invocation and never mutated after submission.
    """
    name: str
    image: str
    start_command: str
    app_args: List[str] = field(default_factory=list)
    environment: Dict[str, str] = field(default_factory=dict)
    limits: ResourceLimits = field(default_factory=ResourceLimits)
    instances: int = 1
    ports: PortConfig = field(default_factory=PortConfig)
    route_overrides: List[RouteOverride] = field(default_factory=list)
    working_dir: str = DEFAULT_WORKING_DIR
    privileged: bool = False
    monitor: bool = True

    def to_payload(self) -> Dict[str, Any]:
        """Render the JSON body sent to the cluster API."""
        return {
            "name": self.name,
            "image": self.image,
            "start_command": self.start_command,
            "app_args": list(self.app_args),
            "environment": dict(self.environment),
            "cpu_weight": self.limits.cpu_weight,
            "memory_mb": self.limits.memory_mb,
            "disk_mb": self.limits.disk_mb,
            "instances": self.instances,
            "ports": {
                "exposed": list(self.ports.exposed),
                "monitored": self.ports.monitored,
            },
            "route_overrides": [route.to_dict() for route in self.route_overrides],
            "working_dir": self.working_dir,
            "privileged": self.privileged,
            "monitor": self.monitor,
        }


@dataclass
class CreateAppOptions:
    """Raw create flags, before any resolution.

    `start_command` is the token list that followed the `--` separator, if any.
    """
    name: str
    image: str
    start_command: List[str] = field(default_factory=list)
    env: List[str] = field(default_factory=list)
    working_dir: Optional[str] = None
    cpu_weight: int = DEFAULT_CPU_WEIGHT
    memory_mb: int = DEFAULT_MEMORY_MB
    disk_mb: int = DEFAULT_DISK_MB
    instances: int = 1
    ports: Optional[str] = None
    monitored_port: int = 0
    routes: Optional[str] = None
    no_monitor: bool = False
    privileged: bool = False
