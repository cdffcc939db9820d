"""Deployment orchestration: create, scale, reroute and remove apps.

Each operation resolves its configuration, submits a single request to the
cluster and, where the request has an observable effect, waits for the
cluster to converge on it.
"""

from typing import Callable, Iterable, List, Optional

import yaml

from appctl.environment import build_environment, inherited_from_os
from appctl.errors import (
    ClusterError, ExitCode, ImageMetadataError, MissingStartCommandError, SubmissionError
)
from appctl.log_streamer import NullLogStreamer
from appctl.logging import StructuredLogger
from appctl.models import (
    DEFAULT_WORKING_DIR, CreateAppOptions, DeploymentRequest, ImageMetadata, PortConfig, ResourceLimits
)
from appctl.polling import DEFAULT_POLL_INTERVAL, Clock, PollOutcome, PollStatus, SystemClock, poll_until
from appctl.ports import resolve_port_config
from appctl.routes import parse_route_overrides
from appctl.terminal import TerminalUI, green, red

logger = StructuredLogger("deployment")

PLACEMENT_ERROR_MESSAGE = (
    "Error, could not place all instances: insufficient resources. "
    "Try requesting fewer instances or reducing the requested memory or disk capacity."
)


class AppDeployer:
    """Runs app commands against a cluster.

    Not re-entrant: one command at a time per instance.
    """

    def __init__(
        self,
        cluster,
        metadata_fetcher,
        ui: TerminalUI,
        domain: str,
        timeout: float,
        clock: Optional[Clock] = None,
        log_streamer=None,
        inherited_env: Optional[Iterable[str]] = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL
    ):
        """
        Args:
            cluster: Cluster API client
            metadata_fetcher: Object with fetch(image) -> ImageMetadata
            ui: Terminal output
            domain: Domain app routes are published under
            timeout: Seconds to wait for convergence
            clock: Time source for polling (default: SystemClock)
            log_streamer: Object with start(name)/stop() (default: no streaming)
            inherited_env: NAME=VALUE entries for bare --env names (default: os.environ)
            poll_interval: Seconds between convergence checks
        """
        self.cluster = cluster
        self.metadata_fetcher = metadata_fetcher
        self.ui = ui
        self.domain = domain
        self.timeout = timeout
        self.clock = clock if clock is not None else SystemClock()
        self.log_streamer = log_streamer if log_streamer is not None else NullLogStreamer()
        self.inherited_env = list(inherited_env) if inherited_env is not None else inherited_from_os()
        self.poll_interval = poll_interval

    def url_for_app(self, hostname_prefix: str) -> str:
        return f"http://{hostname_prefix}.{self.domain}"

    def _fetch_metadata(self, image: str) -> ImageMetadata:
        try:
            return self.metadata_fetcher.fetch(image)
        except ImageMetadataError as e:
            raise ImageMetadataError(f"Error fetching image metadata: {e}") from e

    def _resolve_ports(self, options: CreateAppOptions, metadata: ImageMetadata) -> PortConfig:
        port_config = resolve_port_config(options.ports, options.monitored_port, options.no_monitor, metadata)

        if not options.ports and not metadata.ports.is_empty():
            exposed = ", ".join(str(port) for port in metadata.ports.exposed)
            self.ui.say_line("No port specified, using exposed ports from the image metadata.")
            self.ui.say_line(f"\tExposed Ports: {exposed}")
        elif not options.ports and not options.no_monitor:
            self.ui.say_line("No port specified, image metadata did not contain exposed ports. Defaulting to 8080.")

        return port_config

    def _resolve_working_dir(self, options: CreateAppOptions, metadata: ImageMetadata) -> str:
        if options.working_dir:
            return options.working_dir

        self.ui.say_line("No working directory specified, using working directory from the image metadata...")
        if metadata.working_dir:
            self.ui.say_line("Working directory is:")
            self.ui.say_line(metadata.working_dir)
            return metadata.working_dir
        return DEFAULT_WORKING_DIR

    def _resolve_start_command(self, options: CreateAppOptions, metadata: ImageMetadata) -> List[str]:
        if options.start_command:
            return list(options.start_command)

        if not metadata.start_command:
            raise MissingStartCommandError()

        self.ui.say_line("No start command specified, using start command from the image metadata...")
        self.ui.say_line("Start command is:")
        self.ui.say_line(" ".join(metadata.start_command))
        return list(metadata.start_command)

    def build_create_request(self, options: CreateAppOptions) -> DeploymentRequest:
        """Resolve create options into a DeploymentRequest.

        Nothing is sent to the cluster; every validation error is raised
        before a request exists.

        Raises:
            ImageMetadataError: If the image metadata cannot be fetched
            ConfigurationError: For invalid ports, routes or a missing start command
        """
        metadata = self._fetch_metadata(options.image)
        port_config = self._resolve_ports(options, metadata)
        working_dir = self._resolve_working_dir(options, metadata)

        if options.no_monitor:
            self.ui.say_line("No ports will be monitored.")
        else:
            self.ui.say_line(f"Monitoring the app on port {port_config.monitored}...")

        start_command = self._resolve_start_command(options, metadata)
        route_overrides = parse_route_overrides(options.routes)

        return DeploymentRequest(
            name=options.name,
            image=options.image,
            start_command=start_command[0],
            app_args=start_command[1:],
            environment=build_environment(options.env, self.inherited_env),
            limits=ResourceLimits(
                cpu_weight=options.cpu_weight,
                memory_mb=options.memory_mb,
                disk_mb=options.disk_mb
            ),
            instances=options.instances,
            ports=port_config,
            route_overrides=route_overrides,
            working_dir=working_dir,
            privileged=options.privileged,
            monitor=not options.no_monitor
        )

    def create_app(self, options: CreateAppOptions, dry_run: bool = False) -> ExitCode:
        """Create an app and wait for all of its instances to run.

        Returns:
            OK, TIMED_OUT or PLACEMENT_ERROR

        Raises:
            ImageMetadataError, ConfigurationError: Before anything is submitted
            SubmissionError: If the cluster rejects the request
        """
        request = self.build_create_request(options)

        if dry_run:
            self.ui.say_line("Dry run, not creating app. Request:")
            self.ui.say(yaml.safe_dump(request.to_payload(), default_flow_style=False, sort_keys=False))
            return ExitCode.OK

        try:
            self.cluster.submit_create(request)
        except ClusterError as e:
            raise SubmissionError(f"Error Creating App: {e}") from e

        self.ui.say_line(f"Creating App: {request.name}")

        self.log_streamer.start(request.name)
        try:
            outcome = self._poll_until_all_instances_running(request.name, request.instances, "start")
        finally:
            self.log_streamer.stop()

        if outcome.fatal:
            return ExitCode.PLACEMENT_ERROR

        if outcome.succeeded:
            self.ui.say_line(green(f"{request.name} is now running."))

        if request.route_overrides:
            for route in request.route_overrides:
                self.ui.say_line(green(self.url_for_app(route.hostname_prefix)))
        else:
            self.ui.say_line(green(self.url_for_app(request.name)))

        return ExitCode.OK if outcome.succeeded else ExitCode.TIMED_OUT

    def scale_app(self, name: str, instances: int) -> ExitCode:
        """Scale an app and wait until `instances` instances are running."""
        try:
            self.cluster.submit_scale(name, instances)
        except ClusterError as e:
            raise SubmissionError(f"Error Scaling App to {instances} instances: {e}") from e

        self.ui.say_line(f"Scaling {name} to {instances} instances")

        outcome = self._poll_until_all_instances_running(name, instances, "scale")
        if outcome.fatal:
            return ExitCode.PLACEMENT_ERROR
        if outcome.timed_out:
            return ExitCode.TIMED_OUT

        self.ui.say_line(green("App Scaled Successfully"))
        return ExitCode.OK

    def update_routes(self, name: str, routes: str) -> ExitCode:
        """Replace an app's routes. Only acceptance of the request is reported.

        Raises:
            MalformedRouteError: If `routes` is malformed; nothing is submitted
            SubmissionError: If the cluster rejects the update
        """
        route_overrides = parse_route_overrides(routes)

        try:
            self.cluster.submit_route_update(name, route_overrides)
        except ClusterError as e:
            raise SubmissionError(f"Error updating routes: {e}") from e

        self.ui.say_line(f"Updating {name} routes.")
        return ExitCode.OK

    def remove_app(self, name: str) -> ExitCode:
        """Remove an app and wait until the cluster no longer reports it."""
        try:
            self.cluster.submit_remove(name)
        except ClusterError as e:
            raise SubmissionError(f"Error Stopping App: {e}") from e

        self.ui.say_line(f"Removing {name}")

        def app_is_gone() -> PollStatus:
            try:
                exists = self.cluster.query_exists(name)
            except ClusterError as e:
                logger.debug("App existence check failed", fields={"app": name, "error": str(e)})
                return PollStatus.PENDING
            return PollStatus.PENDING if exists else PollStatus.CONVERGED

        outcome = self._poll(app_is_gone)
        if outcome.succeeded:
            self.ui.say_line(green(f"Successfully Removed {name}."))
            return ExitCode.OK

        self.ui.say_line(red(f"Failed to remove {name}."))
        return ExitCode.TIMED_OUT

    def _poll(self, check: Callable[[], PollStatus]) -> PollOutcome:
        outcome = poll_until(
            check,
            clock=self.clock,
            timeout=self.timeout,
            interval=self.poll_interval,
            on_progress=self.ui.dot
        )
        self.ui.new_line()
        return outcome

    def _poll_until_all_instances_running(self, name: str, instances: int, action: str) -> PollOutcome:
        def all_instances_running() -> PollStatus:
            try:
                state = self.cluster.query_instance_state(name)
            except ClusterError as e:
                logger.debug("Instance state check failed", fields={"app": name, "error": str(e)})
                return PollStatus.PENDING

            if state.placement_error:
                return PollStatus.FATAL
            if state.running == instances:
                return PollStatus.CONVERGED
            return PollStatus.PENDING

        outcome = self._poll(all_instances_running)

        if outcome.fatal:
            self.ui.say_line(red(PLACEMENT_ERROR_MESSAGE))
        elif outcome.timed_out:
            self.ui.say_line(red(f"{name} took too long to {action}."))
        return outcome
