"""Container image metadata lookup using the docker CLI."""

import json
import shutil
import subprocess
from typing import Any, Dict, List

from appctl.errors import ImageMetadataError
from appctl.logging import StructuredLogger
from appctl.models import ImageMetadata, PortConfig

logger = StructuredLogger("image_metadata")


def parse_exposed_ports(exposed_ports: Dict[str, Any]) -> List[int]:
    """Turn docker's {"8080/tcp": {}} mapping into sorted TCP port numbers."""
    ports = set()
    for port_spec in exposed_ports or {}:
        port, _, protocol = port_spec.partition("/")
        if protocol and protocol != "tcp":
            continue
        try:
            ports.add(int(port))
        except ValueError:
            logger.warning("Ignoring unparseable exposed port", fields={"port": port_spec})
    return sorted(ports)


def metadata_from_inspect(inspect_output: Dict[str, Any]) -> ImageMetadata:
    """Build ImageMetadata from one `docker image inspect` entry.

    The lowest exposed port is the monitored one.
    """
    image_config = inspect_output.get("Config") or {}

    start_command = list(image_config.get("Entrypoint") or []) + list(image_config.get("Cmd") or [])
    exposed = parse_exposed_ports(image_config.get("ExposedPorts"))

    return ImageMetadata(
        working_dir=image_config.get("WorkingDir") or "",
        start_command=start_command,
        ports=PortConfig(exposed=exposed, monitored=exposed[0] if exposed else 0)
    )


class DockerMetadataFetcher:
    """Fetches image metadata with `docker image inspect`, pulling once if needed."""

    def __init__(self, timeout: int = 300):
        """
        Args:
            timeout: Timeout in seconds for each docker invocation
        """
        self.timeout = timeout

    def _docker(self, *args: str) -> subprocess.CompletedProcess:
        try:
            return subprocess.run(
                ["docker", *args],
                capture_output=True,
                text=True,
                timeout=self.timeout
            )
        except subprocess.TimeoutExpired:
            raise ImageMetadataError(f"Timeout running docker {args[0]}")

    def _inspect(self, image: str) -> subprocess.CompletedProcess:
        return self._docker("image", "inspect", image)

    def fetch(self, image: str) -> ImageMetadata:
        """Fetch metadata for an image reference.

        Raises:
            ImageMetadataError: If docker is unavailable or the image cannot be inspected
        """
        if not shutil.which("docker"):
            raise ImageMetadataError("docker is not available in PATH")

        result = self._inspect(image)
        if result.returncode != 0:
            logger.debug("Image not available locally, pulling", fields={"image": image})
            pull = self._docker("image", "pull", "--quiet", image)
            if pull.returncode != 0:
                raise ImageMetadataError(f"Unable to pull image {image}: {pull.stderr.strip()}")
            result = self._inspect(image)
            if result.returncode != 0:
                raise ImageMetadataError(f"Unable to inspect image {image}: {result.stderr.strip()}")

        try:
            entries = json.loads(result.stdout)
        except json.JSONDecodeError as e:
            raise ImageMetadataError(f"Invalid inspect output for {image}: {e}")

        if not entries:
            raise ImageMetadataError(f"No metadata returned for {image}")

        return metadata_from_inspect(entries[0])
