"""
Configuration management and loading.

Handles storage endpoints, credentials and runtime settings.
"""

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml


LOG_LEVELS = ("debug", "info", "warning", "error")

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|s|m|h)")
_DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}


@dataclass(frozen=True)
class ElasticsearchConfig:
    """Connection settings for the document store."""
    endpoints: Tuple[str, ...]
    index: str
    username: Optional[str] = None
    password: Optional[str] = None
    retry_interval: float = 5.0
    connect_timeout: float = 60.0

    def __post_init__(self):
        """Validate connection values."""
        if not self.endpoints:
            raise ValueError("at least one elasticsearch endpoint is required")
        if not self.index:
            raise ValueError("elasticsearch index must not be empty")
        if self.retry_interval <= 0:
            raise ValueError("retry_interval must be > 0")
        if self.connect_timeout <= 0:
            raise ValueError("connect_timeout must be > 0")


@dataclass(frozen=True)
class ApiServerConfig:
    """Upstream writer settings, carried through for the serving layer."""
    address: str = "http://127.0.0.1:8081"
    bulk_interval: float = 5.0


@dataclass(frozen=True)
class AppConfig:
    """Complete application configuration."""
    elasticsearch: ElasticsearchConfig
    api_server: ApiServerConfig
    log_level: str = "info"


def parse_duration(value: Any, path: str = "duration") -> float:
    """Convert a Go-style duration ("500ms", "5s", "1m30s") to seconds.

    Bare numbers are taken as seconds.

    Raises:
        ValueError: If the value is not a positive duration
    """
    if isinstance(value, bool):
        raise ValueError(f"'{path}' must be a duration")
    if isinstance(value, (int, float)):
        seconds = float(value)
    elif isinstance(value, str):
        text = value.strip()
        pos = 0
        seconds = 0.0
        for match in _DURATION_PART.finditer(text):
            if match.start() != pos:
                break
            seconds += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
            pos = match.end()
        if not text or pos != len(text):
            raise ValueError(f"'{path}' is not a valid duration: {value!r}")
    else:
        raise ValueError(f"'{path}' must be a duration")

    if seconds <= 0:
        raise ValueError(f"'{path}' must be > 0")
    return seconds


def load_config(path: str) -> AppConfig:
    """Load and validate application configuration from a YAML file.

    Args:
        path: Path to YAML configuration file

    Returns:
        Validated AppConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    if not raw_config:
        raise ValueError("Configuration file is empty")
    if not isinstance(raw_config, dict):
        raise ValueError("Configuration root must be a dictionary")

    allowed_top_keys = {'log_level', 'api_server', 'storage'}
    unknown_keys = set(raw_config.keys()) - allowed_top_keys
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {unknown_keys}")

    log_level = raw_config.get('log_level', 'info')
    if not isinstance(log_level, str) or log_level.lower() not in LOG_LEVELS:
        raise ValueError(f"'log_level' must be one of: {list(LOG_LEVELS)}")

    if 'storage' not in raw_config:
        raise ValueError("Missing required 'storage' section")
    storage_data = raw_config['storage']
    if not isinstance(storage_data, dict):
        raise ValueError("'storage' must be a dictionary")

    unknown_storage_keys = set(storage_data.keys()) - {'elasticsearch'}
    if unknown_storage_keys:
        raise ValueError(f"Unknown storage keys: {unknown_storage_keys}")
    if 'elasticsearch' not in storage_data:
        raise ValueError("Missing required 'storage.elasticsearch' section")

    elasticsearch = _parse_elasticsearch_config(
        storage_data['elasticsearch'], "storage.elasticsearch"
    )

    api_server_data = raw_config.get('api_server') or {}
    api_server = _parse_api_server_config(api_server_data, "api_server")

    return AppConfig(
        elasticsearch=elasticsearch,
        api_server=api_server,
        log_level=log_level.lower()
    )


def _parse_elasticsearch_config(data: Any, path: str) -> ElasticsearchConfig:
    """Parse and validate the elasticsearch connection section.

    Raises:
        ValueError: If configuration is invalid
    """
    if not isinstance(data, dict):
        raise ValueError(f"'{path}' must be a dictionary")

    allowed_keys = {
        'endpoints', 'username', 'password', 'index',
        'retry_interval', 'connect_timeout'
    }
    unknown_keys = set(data.keys()) - allowed_keys
    if unknown_keys:
        raise ValueError(f"Unknown keys in {path}: {unknown_keys}")

    endpoints = data.get('endpoints')
    if isinstance(endpoints, str):
        endpoints = [endpoints]
    if not isinstance(endpoints, list) or not endpoints:
        raise ValueError(f"'endpoints' in {path} must be a non-empty list")
    for endpoint in endpoints:
        if not isinstance(endpoint, str) or not endpoint.strip():
            raise ValueError(f"'endpoints' in {path} must contain non-empty strings")

    index = data.get('index')
    if not isinstance(index, str) or not index.strip():
        raise ValueError(f"Missing required 'index' in {path}")

    username = _optional_string(data, 'username', path)
    password = _optional_string(data, 'password', path)

    return ElasticsearchConfig(
        endpoints=tuple(e.strip() for e in endpoints),
        index=index.strip(),
        username=username,
        password=password,
        retry_interval=parse_duration(
            data.get('retry_interval', 5.0), f"{path}.retry_interval"
        ),
        connect_timeout=parse_duration(
            data.get('connect_timeout', 60.0), f"{path}.connect_timeout"
        ),
    )


def _parse_api_server_config(data: Dict, path: str) -> ApiServerConfig:
    """Parse the api_server section."""
    if not isinstance(data, dict):
        raise ValueError(f"'{path}' must be a dictionary")

    unknown_keys = set(data.keys()) - {'address', 'bulk_interval'}
    if unknown_keys:
        raise ValueError(f"Unknown keys in {path}: {unknown_keys}")

    address = data.get('address', ApiServerConfig.address)
    if not isinstance(address, str) or not address.strip():
        raise ValueError(f"'address' in {path} must be a non-empty string")

    return ApiServerConfig(
        address=address.strip(),
        bulk_interval=parse_duration(
            data.get('bulk_interval', ApiServerConfig.bulk_interval),
            f"{path}.bulk_interval"
        ),
    )


def _optional_string(data: Dict, key: str, path: str) -> Optional[str]:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(f"'{key}' in {path} must be a string")
    return value
