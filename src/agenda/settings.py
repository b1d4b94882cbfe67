from __future__ import annotations

import logging
import os
import shutil
import sys
import tempfile
from pathlib import Path
from urllib.parse import urlparse
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

LOGGER = logging.getLogger(__name__)

CONFIG_VERSION = 1
CONFIG_DIR_NAME = "agenda"
CONFIG_FILE_NAME = "config.yaml"
API_KEY_PLACEHOLDER = "{API_KEY}"

DEFAULT_PROVIDER = "morgen"
DEFAULT_TIME_FORMAT = "%H:%M"
DEFAULT_EVENT_TEMPLATE = "- {{ start_time_formatted }}-{{ end_time_formatted }}: {{ title }}"
DEFAULT_HEADING_TEMPLATE = "# Today's Meetings ({{ date_formatted }})"
DEFAULT_TIMEOUT_SECONDS = 30.0


class ConfigError(RuntimeError):
    """Raised when the agenda configuration cannot be loaded or stored."""


class ConfigParseError(ConfigError):
    """Raised when a persisted configuration file cannot be deserialized."""


class ConfigWriteError(ConfigError):
    """Raised when a configuration file cannot be written."""


class ProviderSettings(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    base_url: str
    headers: dict[str, str] = Field(default_factory=dict)
    env_api_key: str
    calendars_to_ignore: list[str] = Field(default_factory=list)
    timeout_seconds: float = Field(default=DEFAULT_TIMEOUT_SECONDS, gt=0, le=600)

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, value: str) -> str:
        text = value.strip().rstrip("/")
        parsed = urlparse(text)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError("providers.*.base_url must be an absolute http(s) URL")
        return text

    @field_validator("env_api_key")
    @classmethod
    def validate_env_api_key(cls, value: str) -> str:
        text = value.strip()
        if not text:
            raise ValueError("providers.*.env_api_key must not be empty")
        return text

    @field_validator("calendars_to_ignore")
    @classmethod
    def validate_calendars_to_ignore(cls, values: list[str]) -> list[str]:
        names = [name.strip() for name in values if name.strip()]
        return list(dict.fromkeys(names))


class AgendaConfig(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    version: int = CONFIG_VERSION
    provider: str = DEFAULT_PROVIDER
    time_format: str = DEFAULT_TIME_FORMAT
    event_template: str = DEFAULT_EVENT_TEMPLATE
    heading_template: str = DEFAULT_HEADING_TEMPLATE
    providers: dict[str, ProviderSettings] = Field(default_factory=dict)

    @field_validator("provider", "time_format", "event_template")
    @classmethod
    def validate_non_empty_text(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("provider, time_format and event_template must not be empty")
        return value


class EnvSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    agenda_config_path: Path | None = None
    agenda_timezone: str | None = None

    @field_validator("agenda_timezone")
    @classmethod
    def validate_timezone(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        try:
            ZoneInfo(value.strip())
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value.strip()

    @property
    def timezone(self) -> ZoneInfo | None:
        if self.agenda_timezone is None:
            return None
        return ZoneInfo(self.agenda_timezone)


def default_config() -> AgendaConfig:
    return AgendaConfig(
        providers={
            DEFAULT_PROVIDER: ProviderSettings(
                base_url="https://api.morgen.so/v3",
                headers={
                    "Authorization": f"ApiKey {API_KEY_PLACEHOLDER}",
                    "Content-Type": "application/json",
                },
                env_api_key="MORGEN_API_KEY",
            )
        }
    )


def default_config_path() -> Path:
    if sys.platform == "win32" and os.environ.get("APPDATA"):
        base_dir = Path(os.environ["APPDATA"])
    elif os.environ.get("XDG_CONFIG_HOME"):
        base_dir = Path(os.environ["XDG_CONFIG_HOME"])
    else:
        base_dir = Path.home() / ".config"
    return base_dir / CONFIG_DIR_NAME / CONFIG_FILE_NAME


def resolve_config_path(explicit_path: Path | None = None, env: EnvSettings | None = None) -> Path:
    """Pick the config path: explicit flag, then AGENDA_CONFIG_PATH, then the per-user default."""
    if explicit_path is not None:
        return Path(explicit_path).expanduser()
    env = env or EnvSettings()
    if env.agenda_config_path is not None:
        return env.agenda_config_path.expanduser()
    return default_config_path()


def persist(config: AgendaConfig, path: Path) -> None:
    path = Path(path)
    document = yaml.safe_dump(
        config.model_dump(mode="json"),
        sort_keys=False,
        allow_unicode=True,
        default_flow_style=False,
    )

    temp_path: Path | None = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            "w",
            encoding="utf-8",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
        ) as handle:
            temp_path = Path(handle.name)
            handle.write(document)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(temp_path, path)
    except OSError as exc:
        if temp_path is not None:
            temp_path.unlink(missing_ok=True)
        raise ConfigWriteError(f"Unable to write config file: {path}") from exc
    LOGGER.debug("Wrote configuration to %s", path)


def _read_raw_config(path: Path) -> dict:
    try:
        raw_text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigParseError(f"Unable to read config file: {path}") from exc

    try:
        raw_config = yaml.safe_load(raw_text)
    except yaml.YAMLError as exc:
        raise ConfigParseError(f"Config file is not valid YAML: {path}: {exc}") from exc

    if raw_config is None:
        raw_config = {}
    if not isinstance(raw_config, dict):
        raise ConfigParseError(f"Config file must be a YAML mapping at the top level: {path}")
    return raw_config


def _replace_stale_config(path: Path, found_version: object) -> AgendaConfig:
    LOGGER.warning(
        "Config file %s has version %r but version %d is required; replacing it with defaults",
        path,
        found_version,
        CONFIG_VERSION,
    )
    backup_path = path.with_name(f"{path.name}.bak")
    try:
        shutil.copyfile(path, backup_path)
    except OSError as exc:
        raise ConfigWriteError(f"Unable to back up stale config file to {backup_path}") from exc
    LOGGER.warning("Previous config saved to %s", backup_path)

    config = default_config()
    persist(config, path)
    return config


def load_or_initialize(path: Path) -> AgendaConfig:
    path = Path(path)
    if not path.exists():
        LOGGER.info("No config file at %s; writing defaults", path)
        config = default_config()
        persist(config, path)
        return config

    raw_config = _read_raw_config(path)
    found_version = raw_config.get("version")
    if found_version != CONFIG_VERSION:
        return _replace_stale_config(path, found_version)

    try:
        return AgendaConfig.model_validate(raw_config)
    except ValidationError as exc:
        raise ConfigParseError(f"Invalid config file {path}:\n{exc}") from exc


def apply_overrides(
    config: AgendaConfig,
    *,
    provider: str | None = None,
    time_format: str | None = None,
    event_template: str | None = None,
) -> AgendaConfig:
    updates = {
        key: value
        for key, value in (
            ("provider", provider),
            ("time_format", time_format),
            ("event_template", event_template),
        )
        if value
    }
    if not updates:
        return config
    return config.model_copy(update=updates)
