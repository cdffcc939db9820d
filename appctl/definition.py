"""App and task definition files (JSON or YAML)."""

import json
from pathlib import Path
from typing import Any, Dict, List

import yaml

from appctl.errors import DefinitionError
from appctl.models import CreateAppOptions, RouteOverride
from appctl.routes import format_route_overrides, parse_route_overrides

APP_DEFINITION_KEYS = {
    'name', 'image', 'start_command', 'args', 'env', 'working_dir',
    'cpu_weight', 'memory_mb', 'disk_mb', 'instances', 'ports',
    'monitored_port', 'routes', 'privileged', 'monitor'
}


def load_definition_file(path: str) -> Dict[str, Any]:
    """Read a definition file; `.yaml`/`.yml` as YAML, anything else as JSON.

    Raises:
        DefinitionError: If the file is missing, unparseable or not a mapping
    """
    file_path = Path(path)
    if not file_path.exists():
        raise DefinitionError(f"Definition file not found: {path}")

    try:
        with open(file_path, 'r') as f:
            if file_path.suffix in ['.yaml', '.yml']:
                data = yaml.safe_load(f)
            else:
                data = json.load(f)
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise DefinitionError(f"Failed to parse definition file {path}: {e}")
    except OSError as e:
        raise DefinitionError(f"Error reading file: {e}")

    if not isinstance(data, dict):
        raise DefinitionError(f"Definition file must contain a mapping: {path}")
    return data


def _as_token_list(value: Any, key: str) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return value.split()
    if isinstance(value, list):
        return [str(item) for item in value]
    raise DefinitionError(f"'{key}' must be a string or a list")


def _env_tokens(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, dict):
        return [f"{name}={'' if item is None else item}" for name, item in value.items()]
    if isinstance(value, list):
        return [str(item) for item in value]
    raise DefinitionError("'env' must be a mapping or a list of NAME[=VALUE] entries")


def _ports_string(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, list):
        return ",".join(str(port) for port in value)
    return str(value)


def _routes_string(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        try:
            routes = [RouteOverride(port=int(route['port']), hostname_prefix=str(route['hostname_prefix']))
                      for route in value]
        except (KeyError, TypeError, ValueError):
            raise DefinitionError("'routes' entries must have 'port' and 'hostname_prefix'")
        return format_route_overrides(routes)
    raise DefinitionError("'routes' must be a string or a list")


def _int(data: Dict[str, Any], key: str, default: int) -> int:
    value = data.get(key, default)
    if isinstance(value, bool):
        raise DefinitionError(f"'{key}' must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise DefinitionError(f"'{key}' must be an integer")


def app_options_from_definition(data: Dict[str, Any]) -> CreateAppOptions:
    """Convert an app definition mapping into create options.

    Raises:
        DefinitionError: For unknown keys, missing name/image or bad values
        MalformedRouteError: If a routes string is malformed
    """
    unknown = sorted(set(data) - APP_DEFINITION_KEYS)
    if unknown:
        raise DefinitionError(f"Unknown keys in app definition: {', '.join(unknown)}")

    for key in ('name', 'image'):
        if not data.get(key):
            raise DefinitionError(f"App definition is missing '{key}'")

    start_command = _as_token_list(data.get('start_command'), 'start_command')
    args = _as_token_list(data.get('args'), 'args')
    if args and not start_command:
        raise DefinitionError("'args' requires 'start_command'")
    start_command.extend(args)

    routes = _routes_string(data.get('routes'))
    # Fail on malformed routes while the file is being loaded
    parse_route_overrides(routes)

    defaults = CreateAppOptions(name=data['name'], image=data['image'])

    return CreateAppOptions(
        name=str(data['name']),
        image=str(data['image']),
        start_command=start_command,
        env=_env_tokens(data.get('env')),
        working_dir=data.get('working_dir'),
        cpu_weight=_int(data, 'cpu_weight', defaults.cpu_weight),
        memory_mb=_int(data, 'memory_mb', defaults.memory_mb),
        disk_mb=_int(data, 'disk_mb', defaults.disk_mb),
        instances=_int(data, 'instances', defaults.instances),
        ports=_ports_string(data.get('ports')) or None,
        monitored_port=_int(data, 'monitored_port', 0),
        routes=routes or None,
        no_monitor=not data.get('monitor', True),
        privileged=bool(data.get('privileged', False))
    )


def load_app_definition(path: str) -> CreateAppOptions:
    """Load create options from an app definition file."""
    return app_options_from_definition(load_definition_file(path))


def load_task_definition(path: str) -> Dict[str, Any]:
    """Load a task definition; it must carry a task_guid."""
    data = load_definition_file(path)
    if not data.get('task_guid'):
        raise DefinitionError("Task definition is missing 'task_guid'")
    return data
