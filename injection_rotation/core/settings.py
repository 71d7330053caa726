import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator


class ServerConfig(BaseModel):
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000, ge=1, le=65535)


class DataConfig(BaseModel):
    data_dir: Path = Field(default=Path("data"))
    history_key: str = Field(default="injection-history", min_length=1)

    @field_validator("data_dir", mode="before")
    def _expand_path(cls, v: str | Path) -> Path:
        return Path(v).expanduser()


class DatabaseConfig(BaseModel):
    url: Optional[str] = None


class CatalogConfig(BaseModel):
    path: Optional[Path] = None
    # reject: refuse unknown site ids, warn: record and log, accept: record silently
    unknown_site_policy: Literal["reject", "warn", "accept"] = "warn"

    @field_validator("path", mode="before")
    def _expand_path(cls, v: str | Path | None) -> Path | None:
        if v is None or v == "":
            return None
        return Path(v).expanduser()


class RotationConfig(BaseModel):
    window_size: int = Field(default=30, ge=1)
    recommendation_count: int = Field(default=3, ge=1)


class Settings(BaseModel):
    server: ServerConfig = Field(default_factory=ServerConfig)
    data: DataConfig = Field(default_factory=DataConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    catalog: CatalogConfig = Field(default_factory=CatalogConfig)
    rotation: RotationConfig = Field(default_factory=RotationConfig)

    model_config = ConfigDict(arbitrary_types_allowed=True)


DEFAULT_CONFIG_PATH = Path(os.environ.get("CONFIG_PATH", "config/config.json"))


def _load_file_config(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        with path.open("r", encoding="utf-8") as fh:
            return json.load(fh)
    except json.JSONDecodeError as exc:
        raise RuntimeError(f"Invalid JSON configuration at {path}") from exc


def _load_env() -> dict[str, Any]:
    env_config: dict[str, Any] = {}

    host = os.environ.get("SERVER_HOST")
    if host:
        env_config.setdefault("server", {})["host"] = host

    port = os.environ.get("SERVER_PORT")
    if port:
        env_config.setdefault("server", {})["port"] = int(port)

    data_dir = os.environ.get("DATA_DIR")
    if data_dir:
        env_config.setdefault("data", {})["data_dir"] = data_dir

    history_key = os.environ.get("HISTORY_KEY")
    if history_key:
        env_config.setdefault("data", {})["history_key"] = history_key

    database_url = os.environ.get("DATABASE_URL")
    if database_url:
        env_config.setdefault("database", {})["url"] = database_url

    catalog_path = os.environ.get("CATALOG_PATH")
    if catalog_path:
        env_config.setdefault("catalog", {})["path"] = catalog_path

    policy = os.environ.get("UNKNOWN_SITE_POLICY")
    if policy:
        env_config.setdefault("catalog", {})["unknown_site_policy"] = policy.strip().lower()

    return env_config


def merge_settings(env_config: dict[str, Any], file_config: dict[str, Any]) -> dict[str, Any]:
    merged: dict[str, Any] = {}
    for section in ("server", "data", "database", "catalog", "rotation"):
        merged[section] = {**file_config.get(section, {}), **env_config.get(section, {})}
    return merged


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    env_config = _load_env()
    file_config = _load_file_config(DEFAULT_CONFIG_PATH)
    merged = merge_settings(env_config=env_config, file_config=file_config)
    try:
        return Settings.model_validate(merged)
    except ValidationError as exc:
        raise RuntimeError(f"Configuration error: {exc}") from exc


__all__ = ["Settings", "get_settings"]
