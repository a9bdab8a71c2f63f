"""Actuator — Agent configuration.

Configuration is loaded from (in order of increasing priority):
    1. Built-in defaults (this file)
    2. System config: /etc/actuator/config.yaml
    3. User config:   ~/.actuator/config.yaml
    4. An explicit ``--config`` file
    5. Environment variables prefixed with ACTUATOR_

Config files are YAML; plain JSON files are accepted too since YAML is a
superset of JSON.

The engine never reads settings directly.  ``actuator.agent.build_agent``
turns a ``Settings`` instance into explicit paths and timeouts.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from actuator.exceptions import ConfigurationError
from actuator.logging import get_logger

log = get_logger(__name__)

DEFAULT_MODULES_DIR = Path("/usr/share/actuator/modules")
DEFAULT_MODULES_CONFIG_DIR = Path("/etc/actuator/modules.d")
DEFAULT_SPOOL_DIR = Path("~/.actuator/spool")


# ---------------------------------------------------------------------------
# Sub-configuration blocks
# ---------------------------------------------------------------------------


class AgentConfig(BaseModel):
    modules_dir: Path = Field(
        default=DEFAULT_MODULES_DIR,
        description="Directory containing external module executables.",
    )
    modules_config_dir: Path | None = Field(
        default=DEFAULT_MODULES_CONFIG_DIR,
        description="Directory holding '<module>.conf' JSON files. None disables it.",
    )
    spool_dir: Path = Field(
        default=DEFAULT_SPOOL_DIR,
        description="Directory where delayed action results are spooled.",
    )
    action_timeout: float | None = Field(
        default=None,
        gt=0,
        description="Seconds before a module process is killed. None = no limit.",
    )

    @field_validator("modules_dir", "modules_config_dir", "spool_dir", mode="after")
    @classmethod
    def expand_user(cls, v: Path | None) -> Path | None:
        return v.expanduser() if v is not None else None


class ServerConfig(BaseModel):
    """Messaging server connection.  Consumed by the transport layer only."""

    url: str = ""
    ca: Path | None = None
    cert: Path | None = None
    key: Path | None = None

    @field_validator("url")
    @classmethod
    def require_wss(cls, v: str) -> str:
        if v and not v.startswith("wss://"):
            raise ValueError("server url must start with wss://")
        return v

    @field_validator("ca", "cert", "key", mode="after")
    @classmethod
    def expand_user(cls, v: Path | None) -> Path | None:
        return v.expanduser() if v is not None else None


class LoggingConfig(BaseModel):
    level: Literal["debug", "info", "warning", "error", "critical"] = "info"
    format: Literal["json", "console"] = "console"
    file: Path | None = None


# ---------------------------------------------------------------------------
# Root settings
# ---------------------------------------------------------------------------


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="ACTUATOR_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    agent: AgentConfig = Field(default_factory=AgentConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # Environment variables win over values read from config files.
        return (env_settings, init_settings, file_secret_settings)

    @classmethod
    def load(cls, config_file: Path | None = None) -> "Settings":
        """Load settings from config files + environment variables.

        Raises:
            ConfigurationError: The explicit config file is missing, a config
                file is not a mapping, or a value is invalid (e.g. a server
                url that is not wss://).
        """
        data: dict[str, Any] = {}

        candidates = [
            Path("/etc/actuator/config.yaml"),
            Path.home() / ".actuator" / "config.yaml",
        ]
        if config_file is not None:
            if not config_file.exists():
                raise ConfigurationError(f"Config file not found: {config_file}")
            candidates.append(config_file)

        for path in candidates:
            if not path.exists():
                continue
            try:
                with path.open() as f:
                    loaded = yaml.safe_load(f) or {}
            except yaml.YAMLError as exc:
                raise ConfigurationError(f"Cannot parse config file {path}: {exc}") from exc
            if not isinstance(loaded, dict):
                raise ConfigurationError(f"Config file {path} must contain a mapping")
            for key, value in loaded.items():
                if isinstance(value, dict) and isinstance(data.get(key), dict):
                    data[key] = {**data[key], **value}
                else:
                    data[key] = value
            log.debug("config_file_loaded", path=str(path))

        try:
            return cls(**data)
        except PydanticValidationError as exc:
            raise ConfigurationError(f"Invalid settings: {exc}") from exc

    def prepare_spool_dir(self) -> Path:
        """Create the spool directory if needed and return it.

        Raises:
            ConfigurationError: The path exists but is not a directory, or it
                cannot be created.
        """
        spool_dir = self.agent.spool_dir
        if spool_dir.exists():
            if not spool_dir.is_dir():
                raise ConfigurationError(f"Not a spool directory: {spool_dir}")
            return spool_dir
        log.info("spool_dir_created", path=str(spool_dir))
        try:
            spool_dir.mkdir(parents=True)
        except OSError as exc:
            raise ConfigurationError(
                f"Failed to create the spool directory '{spool_dir}': {exc}"
            ) from exc
        return spool_dir
