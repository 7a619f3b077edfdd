"""
This module defines the data structures for the chartmuseum component configuration
and resolves user supplied options over the documented defaults.
"""

import dataclasses
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Union

import yaml

SERVICE_TYPES = ("ClusterIP", "NodePort", "LoadBalancer", "ExternalName")


class ConfigurationError(ValueError):
    pass


@dataclass(frozen=True)
class ServiceArgs:
    type: str = "ClusterIP"
    port: int = 8080


@dataclass(frozen=True)
class StorageArgs:
    provider: str
    region: str


@dataclass(frozen=True)
class ChartMuseumArgs:
    storage: StorageArgs
    namespace: str = "chartmuseum"
    replicas: int = 1
    api_enabled: bool = False
    metrics_enabled: bool = False
    image: str = "chartmuseum/chartmuseum:v0.12.0"
    service: ServiceArgs = field(default_factory=ServiceArgs)


# storage has no defaults on purpose: provider and region must come from the user
CHARTMUSEUM_DEFAULTS: Dict[str, Any] = {
    "namespace": "chartmuseum",
    "replicas": 1,
    "api_enabled": False,
    "metrics_enabled": False,
    "image": "chartmuseum/chartmuseum:v0.12.0",
    "service": {
        "type": "ClusterIP",
        "port": 8080,
    },
    "storage": {},
}

_NESTED = {"service": ("type", "port"), "storage": ("provider", "region")}


def _merge(defaults: Dict[str, Any], user: Mapping[str, Any]) -> Dict[str, Any]:
    merged = {key: dict(value) if isinstance(value, dict) else value for key, value in defaults.items()}
    for key, value in user.items():
        if key not in merged:
            raise ConfigurationError(f"Unknown configuration key: {key}")
        if value is None:
            continue
        if key in _NESTED:
            if not isinstance(value, Mapping):
                raise ConfigurationError(f"Configuration key '{key}' must be a mapping")
            for nested_key, nested_value in value.items():
                if nested_key not in _NESTED[key]:
                    raise ConfigurationError(f"Unknown configuration key: {key}.{nested_key}")
                if nested_value is not None:
                    merged[key][nested_key] = nested_value
        else:
            merged[key] = value
    return merged


def _as_mapping(user: Union[Mapping[str, Any], ChartMuseumArgs, None]) -> Mapping[str, Any]:
    if user is None:
        return {}
    if isinstance(user, ChartMuseumArgs):
        return dataclasses.asdict(user)
    if not isinstance(user, Mapping):
        raise ConfigurationError(f"Expected a mapping of options, got {type(user).__name__}")
    return user


def _require_str(key: str, value: Any) -> str:
    if not isinstance(value, str) or not value:
        raise ConfigurationError(f"Configuration key '{key}' must be a non-empty string, got {value!r}")
    return value


def _require_bool(key: str, value: Any) -> bool:
    if not isinstance(value, bool):
        raise ConfigurationError(f"Configuration key '{key}' must be a boolean, got {value!r}")
    return value


def resolve_args(user: Union[Mapping[str, Any], ChartMuseumArgs, None] = None) -> ChartMuseumArgs:
    """Merge user options over CHARTMUSEUM_DEFAULTS and validate the result.

    Top-level keys replace their default; the nested ``service`` and ``storage``
    mappings are merged key by key so a partial mapping keeps the remaining defaults.
    """
    merged = _merge(CHARTMUSEUM_DEFAULTS, _as_mapping(user))

    storage = merged["storage"]
    for key in ("provider", "region"):
        if not storage.get(key):
            raise ConfigurationError(f"Missing required configuration key: storage.{key}")

    replicas = merged["replicas"]
    if isinstance(replicas, bool) or not isinstance(replicas, int) or replicas < 0:
        raise ConfigurationError(f"replicas must be a non-negative integer, got {replicas!r}")

    service = merged["service"]
    if service["type"] not in SERVICE_TYPES:
        raise ConfigurationError(f"Unsupported service type '{service['type']}', expected one of {SERVICE_TYPES}")
    port = service["port"]
    if isinstance(port, bool) or not isinstance(port, int) or not 0 < port < 65536:
        raise ConfigurationError(f"service.port must be a TCP port number, got {port!r}")

    return ChartMuseumArgs(
        namespace=_require_str("namespace", merged["namespace"]),
        replicas=replicas,
        api_enabled=_require_bool("api_enabled", merged["api_enabled"]),
        metrics_enabled=_require_bool("metrics_enabled", merged["metrics_enabled"]),
        image=_require_str("image", merged["image"]),
        service=ServiceArgs(type=service["type"], port=port),
        storage=StorageArgs(
            provider=_require_str("storage.provider", storage["provider"]),
            region=_require_str("storage.region", storage["region"]),
        ),
    )


def load_config(file_path: str) -> Dict[str, Any]:
    """Load the program configuration from the given YAML file path."""
    with open(file_path, "r") as file:
        config_data: Optional[Any] = yaml.safe_load(file)

    if config_data is None:
        config_data = {}
    if not isinstance(config_data, dict):
        raise ConfigurationError(f"Configuration file '{file_path}' must contain a mapping")
    if "storage" not in config_data:
        raise ConfigurationError("Missing required configuration key: storage")

    return config_data
