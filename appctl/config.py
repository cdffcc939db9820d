"""Configuration management for appctl with environment variable hierarchy."""

import os
from pathlib import Path
from typing import Any, Dict, Optional
from dataclasses import dataclass

import yaml


@dataclass
class ClientConfig:
    """Configuration for talking to a cluster."""
    target: str
    api_url: str
    username: Optional[str] = None
    password: Optional[str] = None
    timeout: float = 120.0  # Seconds to wait for convergence
    stream_logs: bool = True

    @property
    def domain(self) -> str:
        """Domain under which app routes are published."""
        return self.target


class ConfigManager:
    """Manages configuration with hierarchy: defaults < config file < env vars < CLI args."""

    # Default values
    DEFAULTS = {
        'timeout': '120',
        'stream_logs': 'true'
    }

    # Environment variable mappings
    ENV_VARS = {
        'target': 'APPCTL_TARGET',
        'api_url': 'APPCTL_API_URL',
        'username': 'APPCTL_USERNAME',
        'password': 'APPCTL_PASSWORD',
        'timeout': 'APPCTL_TIMEOUT',
        'stream_logs': 'APPCTL_STREAM_LOGS'
    }

    CONFIG_FILE_ENV_VAR = 'APPCTL_CONFIG'
    DEFAULT_CONFIG_FILE = Path.home() / '.appctl' / 'config.yaml'

    def get_config_file_path(self) -> Path:
        """Return the config file path, honoring APPCTL_CONFIG."""
        env_path = os.getenv(self.CONFIG_FILE_ENV_VAR)
        if env_path:
            return Path(env_path)
        return self.DEFAULT_CONFIG_FILE

    def load_config_file(self, path: Optional[Path] = None) -> Dict[str, Any]:
        """Load settings from a YAML config file.

        A missing file yields no settings.

        Raises:
            ValueError: If the file is not a YAML mapping or has unknown keys
        """
        path = path or self.get_config_file_path()
        if not path.exists():
            return {}

        with open(path, 'r') as f:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ValueError(f"Invalid config file {path}: {e}")

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ValueError(f"Config file must contain a mapping: {path}")

        unknown = sorted(set(data) - set(self.ENV_VARS))
        if unknown:
            raise ValueError(f"Unknown settings in config file {path}: {', '.join(unknown)}")

        return {key: str(value) for key, value in data.items() if value is not None}

    def get_config(self, **cli_overrides) -> ClientConfig:
        """Get the resolved configuration using hierarchy: defaults < file < env vars < CLI args.

        Args:
            **cli_overrides: CLI argument overrides

        Returns:
            ClientConfig with resolved values

        Raises:
            ValueError: If required configuration is missing or a value is invalid
        """
        config = dict(self.DEFAULTS)

        # Override with config file
        config.update(self.load_config_file())

        # Override with environment variables
        for key, env_var in self.ENV_VARS.items():
            env_value = os.getenv(env_var)
            if env_value is not None:
                config[key] = env_value

        # Override with CLI arguments
        for key, value in cli_overrides.items():
            if value is not None:
                config[key] = value

        # Validate required fields
        required_fields = ['target']
        missing_fields = [field for field in required_fields if not config.get(field)]
        if missing_fields:
            raise ValueError(f"Missing required configuration: {', '.join(missing_fields)}")

        # api_url defaults to the receptor host under the target domain
        if not config.get('api_url'):
            config['api_url'] = f"http://receptor.{config['target']}"

        return ClientConfig(
            target=config['target'],
            api_url=str(config['api_url']).rstrip('/'),
            username=config.get('username'),
            password=config.get('password'),
            timeout=self._parse_timeout(config['timeout']),
            stream_logs=self._parse_bool('stream_logs', config['stream_logs'])
        )

    def _parse_timeout(self, value: Any) -> float:
        try:
            timeout = float(value)
        except (TypeError, ValueError):
            raise ValueError(f"Invalid timeout: {value}")
        if timeout <= 0:
            raise ValueError(f"Timeout must be positive: {value}")
        return timeout

    def _parse_bool(self, name: str, value: Any) -> bool:
        if isinstance(value, bool):
            return value
        normalized = str(value).strip().lower()
        if normalized in ('1', 'true', 'yes', 'on'):
            return True
        if normalized in ('0', 'false', 'no', 'off'):
            return False
        raise ValueError(f"Invalid boolean for {name}: {value}")


# Global config manager instance
config_manager = ConfigManager()


def get_config(**cli_overrides) -> ClientConfig:
    """Convenience function to get configuration."""
    return config_manager.get_config(**cli_overrides)
