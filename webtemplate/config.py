"""Application Configuration — YAML settings file with environment overrides via pydantic-settings.

Invariants:
    - Every setting has a documented default; an empty file yields a working development config
    - Precedence: environment variables > environment overlay file > base file > defaults
    - A missing or malformed settings file raises ConfigLoadError (fatal at startup)

Design Decisions:
    - Nested section models (app, logger, database, jwt, tracing) mirror the YAML layout
    - Env vars use WEBTEMPLATE_<SECTION>__<KEY>, e.g. WEBTEMPLATE_JWT__SECRET
    - load_settings() is cached per (path, environment) pair; Settings() itself is a plain value
      that tests construct directly
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import URL

from webtemplate.core.errors import ConfigLoadError

DEFAULT_CONFIG_PATH = "config/app.yaml"
CONFIG_PATH_ENV = "WEBTEMPLATE_CONFIG"


class AppSettings(BaseModel):
    host: str = "0.0.0.0"
    port: int = 8080
    version: str = "1.0.0"
    debug: bool = False
    timezone: str = "UTC"
    environment: str = "development"
    cors_origins: list[str] = ["*"]

    @property
    def addr(self) -> str:
        return f"{self.host}:{self.port}"


class LoggerSettings(BaseModel):
    level: str = "info"
    format: str = "console"
    output: str = "stdout"
    filename: str = "logs/app.log"
    max_size: int = 100  # MB
    max_age: int = 30  # days
    max_backups: int = 3
    compress: bool = False

    @field_validator("format")
    @classmethod
    def check_format(cls, v: str) -> str:
        v = v.lower()
        if v not in ("json", "console"):
            raise ValueError("logger.format must be 'json' or 'console'")
        return v

    @field_validator("output")
    @classmethod
    def check_output(cls, v: str) -> str:
        v = v.lower()
        if v not in ("stdout", "file"):
            raise ValueError("logger.output must be 'stdout' or 'file'")
        return v


class DatabaseSettings(BaseModel):
    host: str = "localhost"
    port: int = 5432
    username: str = "postgres"
    password: str = ""
    dbname: str = "postgres"
    sslmode: str = "disable"
    max_idle_conns: int = 10
    max_open_conns: int = 100
    conn_max_lifetime: int = 60  # minutes
    # Full SQLAlchemy URL; overrides the components above when set.
    dsn: str | None = None

    @field_validator("dsn", mode="before")
    @classmethod
    def convert_postgres_url(cls, v: Any) -> Any:
        """Hosting platforms hand out postgresql:// but the async engine needs postgresql+asyncpg://."""
        if isinstance(v, str) and v.startswith("postgresql://"):
            return v.replace("postgresql://", "postgresql+asyncpg://", 1)
        return v

    @property
    def url(self) -> str:
        if self.dsn:
            return self.dsn
        return URL.create(
            "postgresql+asyncpg",
            username=self.username,
            password=self.password or None,
            host=self.host,
            port=self.port,
            database=self.dbname,
        ).render_as_string(hide_password=False)

    @property
    def connect_args(self) -> dict:
        """asyncpg takes ssl=<mode> instead of libpq's sslmode."""
        if self.url.startswith("postgresql+asyncpg") and self.sslmode != "disable":
            return {"ssl": self.sslmode}
        return {}

    @property
    def pool_size(self) -> int:
        return self.max_idle_conns

    @property
    def max_overflow(self) -> int:
        return max(self.max_open_conns - self.max_idle_conns, 0)


class JWTSettings(BaseModel):
    secret: str = "change-this-secret-key-in-production"
    expire_hours: int = Field(24, gt=0)
    issuer: str = "web-template"
    algorithm: str = "HS256"


class TracingSettings(BaseModel):
    enabled: bool = False
    service_name: str = "web-template"
    endpoint: str = "http://localhost:9411/api/v2/spans"
    sample_rate: float = Field(1.0, gt=0.0, le=1.0)


class Settings(BaseSettings):
    """Application settings: file values, overridden by environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="WEBTEMPLATE_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    app: AppSettings = AppSettings()
    logger: LoggerSettings = LoggerSettings()
    database: DatabaseSettings = DatabaseSettings()
    jwt: JWTSettings = JWTSettings()
    tracing: TracingSettings = TracingSettings()

    @classmethod
    def settings_customise_sources(
        cls, settings_cls, init_settings, env_settings,
        dotenv_settings, file_secret_settings,
    ):
        # File values arrive as init kwargs; environment wins over them.
        return env_settings, init_settings, dotenv_settings, file_secret_settings


def _read_yaml(path: Path) -> dict:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigLoadError(f"Failed to read settings file {path}: {e}", str(path)) from e
    except yaml.YAMLError as e:
        raise ConfigLoadError(f"Failed to parse settings file {path}: {e}", str(path)) from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigLoadError(f"Settings file {path} must contain a mapping", str(path))
    return data


def _merge(base: dict, overlay: dict) -> dict:
    merged = dict(base)
    for key, value in overlay.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _overlay_path(path: Path, environment: str) -> Path:
    return path.with_name(f"{path.stem}.{environment}{path.suffix}")


def load_settings(
    path: str | os.PathLike | None = None, environment: str | None = None,
) -> Settings:
    """Load settings from the YAML file at *path* (default config/app.yaml).

    When *environment* is given and ``app.<environment>.yaml`` exists next to
    the base file, its values are merged over the base file.
    """
    config_path = Path(path or os.environ.get(CONFIG_PATH_ENV) or DEFAULT_CONFIG_PATH)
    if not config_path.is_file():
        raise ConfigLoadError(f"Settings file not found: {config_path}", str(config_path))

    data = _read_yaml(config_path)
    if environment:
        overlay = _overlay_path(config_path, environment)
        if overlay.is_file():
            data = _merge(data, _read_yaml(overlay))

    try:
        return Settings(**data)
    except ValidationError as e:
        raise ConfigLoadError(
            f"Invalid settings in {config_path}: {e}", str(config_path),
        ) from e


@lru_cache
def get_settings(path: str | None = None, environment: str | None = None) -> Settings:
    return load_settings(path, environment)
