"""Bridge configuration loading.

Configuration is plain data: one YAML file with connection settings,
endpoint names and optional navigation tuning overrides.

Example:
    base_url: http://127.0.0.1:5679/api
    client_id: pc-1
    auth_key: change-me
    backend: sse
    endpoints:
      cmd: cmd
      events: events
    tuning:
      stuck_idle_ms: 30000
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigError
from .navigation.model import NavigationTuning
from .protocol import ENDPOINT_CMD, ENDPOINT_EVENTS, ENDPOINT_HUD, ENDPOINT_NAV_STATE
from .transport.base import Credentials

BACKEND_SSE = "sse"
BACKEND_WEBSOCKET = "websocket"
BACKENDS = (BACKEND_SSE, BACKEND_WEBSOCKET)


@dataclass(frozen=True)
class EndpointConfig:
    """Logical endpoint names on the orchestrator."""

    cmd: str = ENDPOINT_CMD
    events: str = ENDPOINT_EVENTS
    hud: str = ENDPOINT_HUD
    state: str = ENDPOINT_NAV_STATE


@dataclass(frozen=True)
class BridgeConfig:
    """Complete bridge configuration.

    Attributes:
        base_url: Orchestrator API base URL.
        client_id: Client identifier for the token exchange.
        auth_key: Shared secret for the token exchange.
        backend: "sse" or "websocket".
        ws_path: Websocket path appended to the base URL.
        reconnect_delay: Fixed reconnect delay in seconds.
        allow_navigation_commands: Accept "#" commands from either source.
        life_events: Publish death/respawn events.
        endpoints: Endpoint names.
        tuning: Navigation heuristic thresholds.
    """

    base_url: str = "http://127.0.0.1:5679/api"
    client_id: str = "auton8-client"
    auth_key: str = ""
    backend: str = BACKEND_SSE
    ws_path: str = "/ws"
    reconnect_delay: float = 5.0
    allow_navigation_commands: bool = True
    life_events: bool = True
    endpoints: EndpointConfig = field(default_factory=EndpointConfig)
    tuning: NavigationTuning = field(default_factory=NavigationTuning)

    @property
    def credentials(self) -> Credentials:
        return Credentials(client_id=self.client_id, auth_key=self.auth_key)


def _load_yaml(path: Path) -> dict[str, Any]:
    """Load YAML file with error handling."""
    if not path.exists():
        raise ConfigError(f"File not found: {path}")
    with path.open() as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigError(f"Top level of {path} must be a mapping")
    return data


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigError(f"'{name}' must be a mapping")
    return section


def _coerce(name: str, value: Any, default: Any) -> Any:
    """Coerce ``value`` to the type of ``default``."""
    if isinstance(default, bool):
        if not isinstance(value, bool):
            raise ConfigError(f"'{name}' must be a boolean")
        return value
    if isinstance(default, int):
        if isinstance(value, bool) or not isinstance(value, int):
            raise ConfigError(f"'{name}' must be an integer")
        return value
    if isinstance(default, float):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ConfigError(f"'{name}' must be a number")
        return float(value)
    if not isinstance(value, str) or not value:
        raise ConfigError(f"'{name}' must be a non-empty string")
    return value


def _parse_dataclass(cls: type[Any], data: dict[str, Any], section: str) -> Any:
    defaults = cls()
    known = {f.name for f in dataclasses.fields(cls)}
    unknown = set(data) - known
    if unknown:
        raise ConfigError(f"Unknown {section} keys: {', '.join(sorted(unknown))}")
    values = {
        key: _coerce(f"{section}.{key}", value, getattr(defaults, key))
        for key, value in data.items()
    }
    return cls(**values)


def config_from_dict(data: dict[str, Any]) -> BridgeConfig:
    """Build a BridgeConfig from already-parsed data."""
    endpoints = _parse_dataclass(EndpointConfig, _section(data, "endpoints"), "endpoints")
    tuning = _parse_dataclass(NavigationTuning, _section(data, "tuning"), "tuning")

    top = {k: v for k, v in data.items() if k not in ("endpoints", "tuning")}
    defaults = BridgeConfig()
    known = {f.name for f in dataclasses.fields(BridgeConfig)} - {"endpoints", "tuning"}
    unknown = set(top) - known
    if unknown:
        raise ConfigError(f"Unknown keys: {', '.join(sorted(unknown))}")

    values: dict[str, Any] = {}
    for key, value in top.items():
        if key == "auth_key":
            if not isinstance(value, str):
                raise ConfigError("'auth_key' must be a string")
            values[key] = value
            continue
        values[key] = _coerce(key, value, getattr(defaults, key))

    backend = values.get("backend", defaults.backend)
    if backend not in BACKENDS:
        raise ConfigError(f"Unsupported backend: {backend}")
    if values.get("reconnect_delay", defaults.reconnect_delay) <= 0:
        raise ConfigError("'reconnect_delay' must be positive")

    return BridgeConfig(endpoints=endpoints, tuning=tuning, **values)


def load_config(path: Path | str) -> BridgeConfig:
    """Load bridge configuration from a YAML file.

    Raises:
        ConfigError: If the file is missing or holds invalid values.
    """
    return config_from_dict(_load_yaml(Path(path)))
