"""Tests for deployment module."""

import io
from unittest.mock import MagicMock, call

import pytest

from appctl.deployment import PLACEMENT_ERROR_MESSAGE, AppDeployer
from appctl.errors import (
    ClusterError, ExitCode, ImageMetadataError, InvalidPortError, MalformedRouteError,
    MissingStartCommandError, MustSetMonitoredPortError, SubmissionError
)
from appctl.models import CreateAppOptions, ImageMetadata, InstanceState, PortConfig, RouteOverride
from appctl.terminal import TerminalUI


NODE_METADATA = ImageMetadata(
    working_dir="/app",
    start_command=["node", "server.js", "--verbose"],
    ports=PortConfig(exposed=[3000], monitored=3000)
)


@pytest.fixture
def output():
    return io.StringIO()


@pytest.fixture
def cluster():
    cluster = MagicMock()
    cluster.query_instance_state.return_value = InstanceState(running=1)
    cluster.query_exists.return_value = False
    return cluster


@pytest.fixture
def fetcher():
    fetcher = MagicMock()
    fetcher.fetch.return_value = NODE_METADATA
    return fetcher


@pytest.fixture
def log_streamer():
    return MagicMock()


@pytest.fixture
def deployer(cluster, fetcher, log_streamer, output, clock):
    return AppDeployer(
        cluster=cluster,
        metadata_fetcher=fetcher,
        ui=TerminalUI(stream=output),
        domain="example.com",
        timeout=10,
        clock=clock,
        log_streamer=log_streamer,
        inherited_env=["HOME=/home/dev", "TOKEN=secret"]
    )


def submitted_request(cluster):
    assert cluster.submit_create.call_count == 1
    return cluster.submit_create.call_args[0][0]


class TestCreateApp:
    """Test cases for AppDeployer.create_app."""

    def test_create_from_image_metadata(self, deployer, cluster, fetcher, output):
        """Test a create with no flags uses the image's command, working dir and ports."""
        exit_code = deployer.create_app(CreateAppOptions(name="web", image="myorg/web"))

        assert exit_code == ExitCode.OK
        fetcher.fetch.assert_called_once_with("myorg/web")

        request = submitted_request(cluster)
        assert request.name == "web"
        assert request.image == "myorg/web"
        assert request.start_command == "node"
        assert request.app_args == ["server.js", "--verbose"]
        assert request.working_dir == "/app"
        assert request.ports == PortConfig(exposed=[3000], monitored=3000)
        assert request.route_overrides == []
        assert request.monitor is True
        assert request.instances == 1

        text = output.getvalue()
        assert "No port specified, using exposed ports from the image metadata." in text
        assert "Exposed Ports: 3000" in text
        assert "Monitoring the app on port 3000..." in text
        assert "Start command is:\nnode server.js --verbose" in text
        assert "Creating App: web" in text
        assert "web is now running." in text
        assert "http://web.example.com" in text

    def test_explicit_start_command_and_working_dir(self, deployer, cluster, output):
        options = CreateAppOptions(
            name="web", image="myorg/web",
            start_command=["./run", "--port", "80"],
            working_dir="/srv"
        )

        deployer.create_app(options)

        request = submitted_request(cluster)
        assert request.start_command == "./run"
        assert request.app_args == ["--port", "80"]
        assert request.working_dir == "/srv"
        assert "using start command from the image metadata" not in output.getvalue()

    def test_working_dir_defaults_to_root(self, deployer, cluster, fetcher):
        fetcher.fetch.return_value = ImageMetadata(start_command=["redis-server"])

        deployer.create_app(CreateAppOptions(name="redis", image="redis"))

        assert submitted_request(cluster).working_dir == "/"

    def test_default_port_when_no_monitor(self, deployer, cluster, fetcher, output):
        fetcher.fetch.return_value = ImageMetadata(start_command=["worker"])

        deployer.create_app(CreateAppOptions(name="worker", image="worker", no_monitor=True))

        request = submitted_request(cluster)
        assert request.ports == PortConfig(exposed=[8080], monitored=0)
        assert request.monitor is False
        assert "No ports will be monitored." in output.getvalue()

    def test_default_monitored_port(self, deployer, cluster, fetcher, output):
        fetcher.fetch.return_value = ImageMetadata(start_command=["app"])

        deployer.create_app(CreateAppOptions(name="app", image="app"))

        assert submitted_request(cluster).ports == PortConfig(exposed=[8080], monitored=8080)
        assert "Defaulting to 8080." in output.getvalue()

    def test_routes_and_urls(self, deployer, cluster, output):
        """Test one URL is printed per route override hostname prefix."""
        options = CreateAppOptions(
            name="web", image="myorg/web", ports="80,8080", monitored_port=80, routes="80:web,8080:api"
        )

        deployer.create_app(options)

        request = submitted_request(cluster)
        assert request.route_overrides == [RouteOverride(80, "web"), RouteOverride(8080, "api")]
        assert request.ports == PortConfig(exposed=[80, 8080], monitored=80)
        text = output.getvalue()
        assert "http://web.example.com" in text
        assert "http://api.example.com" in text

    def test_environment_and_limits(self, deployer, cluster):
        options = CreateAppOptions(
            name="web", image="myorg/web",
            env=["FOO=bar", "HOME", "MISSING", "FOO=baz"],
            cpu_weight=50, memory_mb=256, disk_mb=2048, instances=3, privileged=True
        )
        cluster.query_instance_state.return_value = InstanceState(running=3)

        deployer.create_app(options)

        request = submitted_request(cluster)
        assert request.environment == {"FOO": "baz", "HOME": "/home/dev", "MISSING": ""}
        assert request.limits.cpu_weight == 50
        assert request.limits.memory_mb == 256
        assert request.limits.disk_mb == 2048
        assert request.instances == 3
        assert request.privileged is True

    def test_waits_for_all_instances(self, deployer, cluster, clock, output):
        cluster.query_instance_state.side_effect = [
            InstanceState(running=0), InstanceState(running=1), InstanceState(running=2)
        ]

        exit_code = deployer.create_app(CreateAppOptions(name="web", image="myorg/web", instances=2))

        assert exit_code == ExitCode.OK
        assert cluster.query_instance_state.call_count == 3
        assert clock.now() == 2
        assert "Creating App: web\n..\n" in output.getvalue()

    def test_streams_logs_while_waiting(self, deployer, log_streamer):
        deployer.create_app(CreateAppOptions(name="web", image="myorg/web"))

        assert log_streamer.mock_calls == [call.start("web"), call.stop()]

    def test_timeout(self, deployer, cluster, log_streamer, output):
        """Test a timeout is reported but URLs are still printed."""
        cluster.query_instance_state.return_value = InstanceState(running=0)

        exit_code = deployer.create_app(CreateAppOptions(name="web", image="myorg/web"))

        assert exit_code == ExitCode.TIMED_OUT
        assert cluster.query_instance_state.call_count == 11
        text = output.getvalue()
        assert "web took too long to start." in text
        assert "is now running" not in text
        assert "http://web.example.com" in text
        log_streamer.stop.assert_called_once()

    def test_placement_error(self, deployer, cluster, log_streamer, output):
        cluster.query_instance_state.side_effect = [
            InstanceState(running=0), InstanceState(running=0, placement_error=True)
        ]

        exit_code = deployer.create_app(CreateAppOptions(name="web", image="myorg/web"))

        assert exit_code == ExitCode.PLACEMENT_ERROR
        assert cluster.query_instance_state.call_count == 2
        text = output.getvalue()
        assert PLACEMENT_ERROR_MESSAGE in text
        assert "is now running" not in text
        assert "http://" not in text
        log_streamer.stop.assert_called_once()

    def test_query_errors_count_as_pending(self, deployer, cluster):
        cluster.query_instance_state.side_effect = [ClusterError("unavailable"), InstanceState(running=1)]

        assert deployer.create_app(CreateAppOptions(name="web", image="myorg/web")) == ExitCode.OK

    def test_streamer_stopped_on_unexpected_error(self, deployer, cluster, log_streamer):
        cluster.query_instance_state.side_effect = RuntimeError("boom")

        with pytest.raises(RuntimeError):
            deployer.create_app(CreateAppOptions(name="web", image="myorg/web"))

        log_streamer.start.assert_called_once_with("web")
        log_streamer.stop.assert_called_once()

    def test_submission_error(self, deployer, cluster, log_streamer):
        cluster.submit_create.side_effect = ClusterError("app already exists")

        with pytest.raises(SubmissionError, match="Error Creating App: app already exists"):
            deployer.create_app(CreateAppOptions(name="web", image="myorg/web"))

        cluster.query_instance_state.assert_not_called()
        log_streamer.start.assert_not_called()

    def test_metadata_error(self, deployer, cluster, fetcher):
        fetcher.fetch.side_effect = ImageMetadataError("image not found")

        with pytest.raises(ImageMetadataError, match="Error fetching image metadata: image not found"):
            deployer.create_app(CreateAppOptions(name="web", image="nope"))

        cluster.submit_create.assert_not_called()

    def test_missing_start_command(self, deployer, cluster, fetcher):
        fetcher.fetch.return_value = ImageMetadata()

        with pytest.raises(MissingStartCommandError, match="Unable to determine start command"):
            deployer.create_app(CreateAppOptions(name="web", image="scratch"))

        cluster.submit_create.assert_not_called()

    @pytest.mark.parametrize("options,error", [
        (CreateAppOptions(name="web", image="web", ports="80,abc", monitored_port=80), InvalidPortError),
        (CreateAppOptions(name="web", image="web", ports="80,8080"), MustSetMonitoredPortError),
        (CreateAppOptions(name="web", image="web", routes="web:80"), MalformedRouteError),
    ])
    def test_validation_errors_abort_before_submission(self, deployer, cluster, log_streamer, options, error):
        with pytest.raises(error):
            deployer.create_app(options)

        cluster.submit_create.assert_not_called()
        log_streamer.start.assert_not_called()

    def test_dry_run(self, deployer, cluster, log_streamer, output):
        exit_code = deployer.create_app(CreateAppOptions(name="web", image="myorg/web"), dry_run=True)

        assert exit_code == ExitCode.OK
        cluster.submit_create.assert_not_called()
        log_streamer.start.assert_not_called()
        text = output.getvalue()
        assert "Dry run" in text
        assert "name: web" in text
        assert "start_command: node" in text


class TestScaleApp:
    """Test cases for AppDeployer.scale_app."""

    def test_scale_success(self, deployer, cluster, output):
        cluster.query_instance_state.side_effect = [InstanceState(running=1), InstanceState(running=3)]

        exit_code = deployer.scale_app("web", 3)

        assert exit_code == ExitCode.OK
        cluster.submit_scale.assert_called_once_with("web", 3)
        text = output.getvalue()
        assert "Scaling web to 3 instances" in text
        assert "App Scaled Successfully" in text

    def test_scale_to_zero(self, deployer, cluster):
        cluster.query_instance_state.return_value = InstanceState(running=0)

        assert deployer.scale_app("web", 0) == ExitCode.OK

    def test_scale_placement_error(self, deployer, cluster, output):
        cluster.query_instance_state.return_value = InstanceState(running=1, placement_error=True)

        exit_code = deployer.scale_app("web", 5)

        assert exit_code == ExitCode.PLACEMENT_ERROR
        cluster.query_instance_state.assert_called_once_with("web")
        text = output.getvalue()
        assert "insufficient resources" in text
        assert "App Scaled Successfully" not in text

    def test_scale_timeout(self, deployer, cluster, output):
        cluster.query_instance_state.return_value = InstanceState(running=1)

        exit_code = deployer.scale_app("web", 2)

        assert exit_code == ExitCode.TIMED_OUT
        assert "web took too long to scale." in output.getvalue()

    def test_scale_submission_error(self, deployer, cluster):
        cluster.submit_scale.side_effect = ClusterError("no such app")

        with pytest.raises(SubmissionError, match="Error Scaling App to 2 instances: no such app"):
            deployer.scale_app("web", 2)

        cluster.query_instance_state.assert_not_called()


class TestUpdateRoutes:
    """Test cases for AppDeployer.update_routes."""

    def test_update_routes(self, deployer, cluster, output):
        exit_code = deployer.update_routes("web", "80:web,8080:api")

        assert exit_code == ExitCode.OK
        cluster.submit_route_update.assert_called_once_with(
            "web", [RouteOverride(80, "web"), RouteOverride(8080, "api")]
        )
        assert "Updating web routes." in output.getvalue()
        cluster.query_instance_state.assert_not_called()
        cluster.query_exists.assert_not_called()

    def test_malformed_routes_not_submitted(self, deployer, cluster):
        with pytest.raises(MalformedRouteError):
            deployer.update_routes("web", "80:web,api")

        cluster.submit_route_update.assert_not_called()

    def test_update_routes_error(self, deployer, cluster):
        cluster.submit_route_update.side_effect = ClusterError("no such app")

        with pytest.raises(SubmissionError, match="Error updating routes: no such app"):
            deployer.update_routes("web", "80:web")


class TestRemoveApp:
    """Test cases for AppDeployer.remove_app."""

    def test_remove_immediate(self, deployer, cluster, output):
        exit_code = deployer.remove_app("web")

        assert exit_code == ExitCode.OK
        cluster.submit_remove.assert_called_once_with("web")
        cluster.query_exists.assert_called_once_with("web")
        text = output.getvalue()
        assert "Removing web" in text
        assert "Successfully Removed web." in text

    def test_remove_waits_until_gone(self, deployer, cluster, clock):
        cluster.query_exists.side_effect = [True, ClusterError("flaky"), True, False]

        assert deployer.remove_app("web") == ExitCode.OK
        assert cluster.query_exists.call_count == 4
        assert clock.now() == 3

    def test_remove_timeout(self, deployer, cluster, output):
        cluster.query_exists.return_value = True

        exit_code = deployer.remove_app("web")

        assert exit_code == ExitCode.TIMED_OUT
        assert "Failed to remove web." in output.getvalue()

    def test_remove_submission_error(self, deployer, cluster):
        cluster.submit_remove.side_effect = ClusterError("no such app")

        with pytest.raises(SubmissionError, match="Error Stopping App: no such app"):
            deployer.remove_app("web")

        cluster.query_exists.assert_not_called()


class TestUrlForApp:
    def test_url(self, deployer):
        assert deployer.url_for_app("web") == "http://web.example.com"


class TestCollaborators:
    """Test cases for AppDeployer construction."""

    def test_falsy_collaborators_are_kept(self, cluster, fetcher, output):
        """Test injected objects are used even when they evaluate as false."""
        clock = MagicMock()
        clock.__bool__.return_value = False
        log_streamer = MagicMock()
        log_streamer.__bool__.return_value = False

        deployer = AppDeployer(
            cluster=cluster, metadata_fetcher=fetcher, ui=TerminalUI(stream=output),
            domain="example.com", timeout=10, clock=clock, log_streamer=log_streamer, inherited_env=[]
        )

        assert deployer.clock is clock
        assert deployer.log_streamer is log_streamer
        clock.__bool__.assert_not_called()
        log_streamer.__bool__.assert_not_called()
