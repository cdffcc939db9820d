"""CLI interface for appctl."""

from typing import Callable, List, Optional

import typer
from typer.core import TyperCommand

from appctl.cluster import ClusterClient
from appctl.config import ClientConfig, get_config
from appctl.definition import load_app_definition, load_task_definition
from appctl.deployment import AppDeployer
from appctl.errors import AppctlError, ExitCode, UsageError
from appctl.image_metadata import DockerMetadataFetcher
from appctl.log_streamer import NullLogStreamer, TailedLogStreamer
from appctl.logging import logger
from appctl.models import CreateAppOptions, DEFAULT_CPU_WEIGHT, DEFAULT_DISK_MB, DEFAULT_MEMORY_MB
from appctl.tasks import TaskRunner
from appctl.terminal import TerminalUI
from appctl.validation import SEPARATOR, ValidationResult, format_validation_result, validator

app = typer.Typer(help="Launch, scale, reroute and remove container apps on a cluster.", no_args_is_help=True)

START_COMMAND_META = "appctl.start_command"
SEPARATOR_META = "appctl.separator"


class SeparatorCommand(TyperCommand):
    """Command that keeps everything after `--` out of option parsing.

    The tail is stored in ctx.meta so the command can tell an explicit start
    command apart from stray positional arguments.
    """

    def parse_args(self, ctx, args):
        if SEPARATOR in args:
            index = args.index(SEPARATOR)
            ctx.meta[SEPARATOR_META] = True
            ctx.meta[START_COMMAND_META] = list(args[index + 1:])
            args = args[:index]
        return super().parse_args(ctx, args)


def build_cluster(config: ClientConfig) -> ClusterClient:
    return ClusterClient(config.api_url, username=config.username, password=config.password)


def build_deployer(config: ClientConfig, ui: TerminalUI) -> AppDeployer:
    """Wire an AppDeployer to the real cluster, docker and log stream."""
    cluster = build_cluster(config)
    log_streamer = TailedLogStreamer(cluster, ui) if config.stream_logs else NullLogStreamer()
    return AppDeployer(
        cluster=cluster,
        metadata_fetcher=DockerMetadataFetcher(),
        ui=ui,
        domain=config.domain,
        timeout=config.timeout,
        log_streamer=log_streamer
    )


def build_task_runner(config: ClientConfig, ui: TerminalUI) -> TaskRunner:
    return TaskRunner(build_cluster(config), ui)


def _load_config(ctx: typer.Context) -> ClientConfig:
    return get_config(**(ctx.obj or {}))


def _check_usage(ui: TerminalUI, result: ValidationResult) -> None:
    """Print validation output and stop with INVALID_SYNTAX on errors."""
    if result.has_errors or result.has_warnings:
        ui.say_line(format_validation_result(result))
    if not result.is_valid:
        raise typer.Exit(int(ExitCode.INVALID_SYNTAX))


def _execute(ui: TerminalUI, action: Callable[[], ExitCode]) -> None:
    """Run a command body and turn its outcome or error into an exit code."""
    try:
        exit_code = action()
    except typer.Exit:
        raise
    except UsageError as e:
        ui.incorrect_usage(str(e))
        raise typer.Exit(int(ExitCode.INVALID_SYNTAX))
    except AppctlError as e:
        ui.say_line(str(e))
        raise typer.Exit(int(ExitCode.COMMAND_FAILED))
    except ValueError as e:
        ui.say_line(f"Configuration error: {e}")
        raise typer.Exit(int(ExitCode.COMMAND_FAILED))
    except Exception as e:
        logger.error("Unexpected error", error=e)
        ui.say_line(f"Unexpected error: {e}")
        raise typer.Exit(int(ExitCode.COMMAND_FAILED))

    raise typer.Exit(int(exit_code))


@app.callback()
def main(
    ctx: typer.Context,
    target: Optional[str] = typer.Option(None, "--target", "-t", help="Cluster domain (default: $APPCTL_TARGET)"),
    api_url: Optional[str] = typer.Option(None, "--api-url", help="Cluster API URL (default: http://receptor.TARGET)"),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="Seconds to wait for apps to converge (default: 120)"),
    no_logs: bool = typer.Option(False, "--no-logs", help="Do not stream app logs while waiting")
):
    """Launch, scale, reroute and remove container apps on a cluster."""
    cli_overrides = {}
    if target is not None:
        cli_overrides['target'] = target
    if api_url is not None:
        cli_overrides['api_url'] = api_url
    if timeout is not None:
        cli_overrides['timeout'] = timeout
    if no_logs:
        cli_overrides['stream_logs'] = False
    ctx.obj = cli_overrides


@app.command(cls=SeparatorCommand)
def create(
    ctx: typer.Context,
    args: Optional[List[str]] = typer.Argument(None, help="APP_NAME DOCKER_IMAGE [-- START_COMMAND APP_ARG ...]"),
    working_dir: Optional[str] = typer.Option(None, "--working-dir", "-w", help="Working directory for container (overrides Docker metadata)"),
    run_as_root: bool = typer.Option(False, "--run-as-root", "-r", help="Runs in the context of the root user"),
    env: Optional[List[str]] = typer.Option(None, "--env", "-e", help="Environment variables (can be passed multiple times)"),
    cpu_weight: int = typer.Option(DEFAULT_CPU_WEIGHT, "--cpu-weight", help="Relative CPU weight for the container (valid values: 1-100)"),
    memory_mb: int = typer.Option(DEFAULT_MEMORY_MB, "--memory-mb", "-m", help="Memory limit for container in MB"),
    disk_mb: int = typer.Option(DEFAULT_DISK_MB, "--disk-mb", "-d", help="Disk limit for container in MB"),
    ports: Optional[str] = typer.Option(None, "--ports", "-p", help="Ports to expose on the container"),
    monitored_port: int = typer.Option(0, "--monitored-port", help="Selects which port is used to healthcheck the app. Required for multiple exposed ports"),
    routes: Optional[str] = typer.Option(None, "--routes", help="Route mappings to exposed ports, e.g. --routes=80:web,8080:api"),
    instances: int = typer.Option(1, "--instances", help="Number of application instances to spawn on launch"),
    no_monitor: bool = typer.Option(False, "--no-monitor", help="Disables healthchecking for the app"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Resolve and print the request without creating the app")
):
    """Create a docker app on the cluster.

    APP_NAME must be unique across the cluster. The start command and working
    directory default to those declared by the image; to provide a custom
    command use: appctl create APP_NAME DOCKER_IMAGE -- START_COMMAND APP_ARG1 ...
    """
    ui = TerminalUI()
    positional = list(args or [])
    start_command = ctx.meta.get(START_COMMAND_META, [])

    tokens = list(positional)
    if ctx.meta.get(SEPARATOR_META):
        tokens += [SEPARATOR] + start_command

    options = CreateAppOptions(
        name=positional[0] if len(positional) > 0 else "",
        image=positional[1] if len(positional) > 1 else "",
        start_command=start_command,
        env=list(env or []),
        working_dir=working_dir,
        cpu_weight=cpu_weight,
        memory_mb=memory_mb,
        disk_mb=disk_mb,
        instances=instances,
        ports=ports,
        monitored_port=monitored_port,
        routes=routes,
        no_monitor=no_monitor,
        privileged=run_as_root
    )

    _check_usage(ui, validator.validate_create_args(tokens, options))
    _execute(ui, lambda: build_deployer(_load_config(ctx), ui).create_app(options, dry_run=dry_run))


@app.command("create-from-file")
def create_from_file(
    ctx: typer.Context,
    definition_file: str = typer.Argument(..., help="Path to app definition file (JSON or YAML)"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Resolve and print the request without creating the app")
):
    """Create a docker app from a JSON/YAML definition file."""
    ui = TerminalUI()

    def create_app() -> ExitCode:
        options = load_app_definition(definition_file)
        _check_usage(ui, validator.validate_create_options(options))
        return build_deployer(_load_config(ctx), ui).create_app(options, dry_run=dry_run)

    _execute(ui, create_app)


@app.command()
def scale(
    ctx: typer.Context,
    args: Optional[List[str]] = typer.Argument(None, help="APP_NAME NUMBER_OF_INSTANCES")
):
    """Scale a docker app on the cluster."""
    ui = TerminalUI()
    args = list(args or [])
    _check_usage(ui, validator.validate_scale_args(args))
    _execute(ui, lambda: build_deployer(_load_config(ctx), ui).scale_app(args[0], int(args[1])))


@app.command("update-routes")
def update_routes(
    ctx: typer.Context,
    args: Optional[List[str]] = typer.Argument(None, help="APP_NAME PORT:HOSTNAME_PREFIX[,PORT:HOSTNAME_PREFIX...]")
):
    """Update the routes for a running app."""
    ui = TerminalUI()
    args = list(args or [])
    _check_usage(ui, validator.validate_update_routes_args(args))
    _execute(ui, lambda: build_deployer(_load_config(ctx), ui).update_routes(args[0], args[1]))


@app.command()
def remove(
    ctx: typer.Context,
    args: Optional[List[str]] = typer.Argument(None, help="APP_NAME")
):
    """Stop and remove a docker app from the cluster."""
    ui = TerminalUI()
    args = list(args or [])
    _check_usage(ui, validator.validate_remove_args(args))
    _execute(ui, lambda: build_deployer(_load_config(ctx), ui).remove_app(args[0]))


@app.command("submit-task")
def submit_task(
    ctx: typer.Context,
    task_file: Optional[str] = typer.Argument(None, help="Path to task definition file (JSON or YAML)")
):
    """Submit a task from a JSON/YAML definition file."""
    ui = TerminalUI()
    if not task_file:
        ui.say_line("Path to JSON is required")
        raise typer.Exit(int(ExitCode.INVALID_SYNTAX))

    def submit() -> ExitCode:
        definition = load_task_definition(task_file)
        return build_task_runner(_load_config(ctx), ui).submit_task(definition)

    _execute(ui, submit)


@app.command("delete-task")
def delete_task(
    ctx: typer.Context,
    task_guid: Optional[str] = typer.Argument(None, help="TASK_GUID")
):
    """Delete the given task."""
    ui = TerminalUI()

    def delete() -> ExitCode:
        if not task_guid:
            raise UsageError("Please input a valid TASK_GUID")
        return build_task_runner(_load_config(ctx), ui).delete_task(task_guid)

    _execute(ui, delete)


@app.command()
def config(ctx: typer.Context):
    """Display the resolved configuration."""
    ui = TerminalUI()

    def show() -> ExitCode:
        resolved = _load_config(ctx)
        ui.say_line("Resolved Configuration:")
        ui.say_line(f"  Target: {resolved.target}")
        ui.say_line(f"  API URL: {resolved.api_url}")
        ui.say_line(f"  Username: {resolved.username or 'None'}")
        ui.say_line(f"  Password: {'***' if resolved.password else 'None'}")
        ui.say_line(f"  Timeout: {resolved.timeout:g}s")
        ui.say_line(f"  Stream Logs: {'yes' if resolved.stream_logs else 'no'}")
        return ExitCode.OK

    _execute(ui, show)


# Short aliases
app.command("cr", cls=SeparatorCommand, hidden=True)(create)
app.command("sc", hidden=True)(scale)
app.command("ur", hidden=True)(update_routes)
app.command("rm", hidden=True)(remove)
app.command("su", hidden=True)(submit_task)
app.command("dt", hidden=True)(delete_task)


if __name__ == "__main__":
    app()
