"""API settings loaded once at startup from an appsettings file and the environment."""
from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional, Tuple

import yaml
from jsonschema import Draft7Validator

from bddexec.endpoints import EndpointResolver, EndpointTable

LOGGER = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://127.0.0.1:8002/"
DEFAULT_TIMEOUT_SECONDS = 100
DEFAULT_CONFIG_FILE = "appsettings.json"

ENV_CONFIG = "BDDEXEC_CONFIG"
ENV_BASE_URL = "BDDEXEC_BASE_URL"
ENV_API_KEY = "BDDEXEC_API_KEY"

SETTINGS_SCHEMA = {
    "type": "object",
    "properties": {
        "Api": {
            "type": "object",
            "properties": {
                "BaseUrl": {"type": "string", "minLength": 1},
                "ApiKey": {"type": ["string", "null"]},
                "TimeoutSeconds": {"type": "number", "exclusiveMinimum": 0},
                "Endpoints": {
                    "type": ["object", "null"],
                    "additionalProperties": {"type": "string"},
                },
            },
        },
    },
}
_validator = Draft7Validator(SETTINGS_SCHEMA)

# appsettings keys -> ApiSettings field names
_FIELD_ALIASES = {
    "BaseUrl": "base_url",
    "ApiKey": "api_key",
    "TimeoutSeconds": "timeout_seconds",
    "Endpoints": "endpoints",
}


@dataclass(frozen=True)
class ApiSettings:
    base_url: str = DEFAULT_BASE_URL
    api_key: str = ""
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    endpoints: Tuple[Tuple[str, str], ...] = field(default_factory=tuple)

    def endpoint_table(self) -> EndpointTable:
        return EndpointTable(self.endpoints)

    def resolver(self) -> EndpointResolver:
        return EndpointResolver(self.endpoint_table())


def load_settings(path: Optional[str] = None, *, env: Optional[Mapping[str, str]] = None) -> ApiSettings:
    """Load settings from ``path`` (YAML or JSON) with environment overrides.

    Without an explicit path, ``$BDDEXEC_CONFIG`` and then ``./appsettings.json``
    are tried; a missing file yields the built-in defaults.
    """

    environ = os.environ if env is None else env
    config_path = _locate(path, environ)
    raw: Mapping[str, Any] = {}
    if config_path is not None:
        LOGGER.debug("Loading settings from %s", config_path)
        raw = _read(config_path)
    api = dict(raw.get("Api") or {})
    values = {_FIELD_ALIASES[key]: value for key, value in api.items() if key in _FIELD_ALIASES}
    if values.get("endpoints") is not None:
        values["endpoints"] = tuple((str(k), str(v)) for k, v in values["endpoints"].items())
    else:
        values.pop("endpoints", None)
    if values.get("api_key") is None:
        values.pop("api_key", None)
    if environ.get(ENV_BASE_URL):
        values["base_url"] = environ[ENV_BASE_URL]
    if environ.get(ENV_API_KEY):
        values["api_key"] = environ[ENV_API_KEY]
    if "timeout_seconds" in values:
        values["timeout_seconds"] = float(values["timeout_seconds"])
    return ApiSettings(**values)


def _locate(path: Optional[str], environ: Mapping[str, str]) -> Optional[Path]:
    if path:
        explicit = Path(path).expanduser()
        if not explicit.is_file():
            raise ValueError(f"Settings file not found: {explicit}")
        return explicit
    candidate = environ.get(ENV_CONFIG)
    if candidate:
        return _locate(candidate, {})
    default = Path.cwd() / DEFAULT_CONFIG_FILE
    return default if default.is_file() else None


def _read(path: Path) -> Mapping[str, Any]:
    text = path.read_text(encoding="utf-8")
    try:
        if path.suffix.lower() == ".json":
            raw = json.loads(text) if text.strip() else {}
        else:
            raw = yaml.safe_load(text) or {}
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ValueError(f"Settings file {path} is not valid YAML/JSON: {exc}") from exc
    if not isinstance(raw, Mapping):
        raise ValueError("Settings file must contain a mapping at the top level")
    errors = sorted(_validator.iter_errors(raw), key=lambda e: list(e.path))
    if errors:
        messages = "; ".join(f"{'/'.join(map(str, err.path)) or 'root'}: {err.message}" for err in errors)
        raise ValueError(f"Settings validation failed: {messages}")
    return raw

