from __future__ import annotations

import json
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field

DEFAULT_SHARED_SECRET = "1234567890"
DEFAULT_UPSTREAM_URL = "https://data-analytics-llm.onrender.com"

PRODUCTION_ENVIRONMENTS = frozenset({"production", "prod"})


@dataclass(frozen=True)
class CatalogPaths:
    config_path: Path
    log_path: Path


def resolve_catalog_paths(environ: Mapping[str, str] | None = None) -> CatalogPaths:
    """Locate the config file and log file, creating their directories.

    ``USECASE_CATALOG_HOME`` names the data directory; without it the
    directory is ``$XDG_DATA_HOME/usecase-catalog`` (``~/.local/share`` when
    XDG_DATA_HOME is unset).
    """

    env = os.environ if environ is None else environ

    raw = (env.get("USECASE_CATALOG_HOME") or "").strip()
    if raw:
        home = Path(raw).expanduser()
    else:
        data_home = (env.get("XDG_DATA_HOME") or "").strip()
        base = Path(data_home) if data_home else Path.home() / ".local" / "share"
        home = base / "usecase-catalog"
    home = home.resolve()

    paths = CatalogPaths(
        config_path=home / "config" / "catalog.json",
        log_path=home / "logs" / "catalog.log",
    )
    paths.config_path.parent.mkdir(parents=True, exist_ok=True)
    paths.log_path.parent.mkdir(parents=True, exist_ok=True)
    return paths


class NetworkConfig(BaseModel):
    bind_host: str = Field(default="127.0.0.1")
    port: int = Field(default=8000, ge=1, le=65535)


class AuthConfig(BaseModel):
    shared_secret: str = Field(
        default=DEFAULT_SHARED_SECRET,
        min_length=1,
        description="The single credential every login and data request must match exactly.",
    )


class UpstreamConfig(BaseModel):
    base_url: str = Field(default=DEFAULT_UPSTREAM_URL)
    timeout_seconds: float = Field(default=30.0, gt=0)
    max_page_size: int | None = Field(
        default=None,
        ge=1,
        description=(
            "If set, integer page_size values above this are clamped before forwarding. "
            "If omitted, page and page_size are forwarded verbatim."
        ),
    )


class LoggingConfig(BaseModel):
    max_size_mb: int = Field(
        default=10, ge=1, description="Max size of a log file in MB before rolling."
    )
    backup_count: int = Field(default=5, ge=1, description="Number of log archives to keep.")


class UiConfig(BaseModel):
    row_identity: Literal["index", "capability"] = Field(
        default="index",
        description="Row key scheme: position across pages, or the upstream capability id.",
    )


class CatalogConfig(BaseModel):
    version: str = Field(default="1")
    environment: str = Field(default="development")
    network: NetworkConfig = Field(default_factory=NetworkConfig)
    auth: AuthConfig = Field(default_factory=AuthConfig)
    upstream: UpstreamConfig = Field(default_factory=UpstreamConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    ui: UiConfig = Field(default_factory=UiConfig)

    @property
    def is_production(self) -> bool:
        return self.environment.strip().lower() in PRODUCTION_ENVIRONMENTS


def _read_json(path: Path) -> dict[str, Any]:
    with path.open("r", encoding="utf-8") as f:
        return json.load(f)


def load_catalog_config(paths: CatalogPaths) -> CatalogConfig:
    """Load config from ${USECASE_CATALOG_HOME}/config/catalog.json.

    - If missing: returns defaults.
    - Validation is performed by Pydantic.
    """

    config_path = paths.config_path
    if not config_path.exists():
        return CatalogConfig()

    raw = _read_json(config_path)
    return CatalogConfig.model_validate(raw)


def write_catalog_config(paths: CatalogPaths, config: CatalogConfig) -> None:
    """Persist config to ${USECASE_CATALOG_HOME}/config/catalog.json."""

    payload = config.model_dump(mode="json", exclude_none=True)
    paths.config_path.parent.mkdir(parents=True, exist_ok=True)
    paths.config_path.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")


def apply_env_overrides(
    config: CatalogConfig, environ: Mapping[str, str] | None = None
) -> CatalogConfig:
    """Overlay USECASE_CATALOG_* environment variables on top of file config.

    Empty values are ignored. The result is re-validated so a bad port fails the
    same way a bad config file does.
    """

    env = os.environ if environ is None else environ

    def _get(name: str) -> str | None:
        value = (env.get(name) or "").strip()
        return value or None

    raw = config.model_dump(mode="json")

    if (environment := _get("USECASE_CATALOG_ENV")) is not None:
        raw["environment"] = environment
    if (secret := env.get("USECASE_CATALOG_TOKEN")):
        # The secret is compared verbatim, so it is not stripped.
        raw["auth"]["shared_secret"] = secret
    if (upstream := _get("USECASE_CATALOG_UPSTREAM_URL")) is not None:
        raw["upstream"]["base_url"] = upstream
    if (bind := _get("USECASE_CATALOG_BIND")) is not None:
        raw["network"]["bind_host"] = bind
    if (port := _get("USECASE_CATALOG_PORT")) is not None:
        raw["network"]["port"] = port

    return CatalogConfig.model_validate(raw)
