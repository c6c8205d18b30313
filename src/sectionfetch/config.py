"""Configuration loading.

Settings are loaded in priority order (highest first):
  1. Constructor arguments   (CLI flags are passed this way)
  2. Environment variables   (SECTIONFETCH__SERVER__TRANSPORT=http)
  3. sectionfetch.yaml       (searched in cwd, then platform config dir)
  4. Hardcoded defaults

The config file is optional — all fields have sensible defaults.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import platformdirs
from pydantic import BaseModel, Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (compatible; sectionfetch/1.0; +https://modelcontextprotocol.io)"
)


def _find_config_file() -> str | None:
    """Return the path of the first sectionfetch.yaml found, or None."""
    candidates = [
        Path("sectionfetch.yaml"),
        Path(platformdirs.user_config_dir("sectionfetch")) / "sectionfetch.yaml",
    ]
    for path in candidates:
        if path.exists():
            return str(path)
    return None


class ServerSettings(BaseModel):
    transport: Literal["stdio", "http"] = "stdio"
    host: str = "0.0.0.0"
    port: int = 8080
    auth_enabled: bool = False
    auth_key: str = ""


class FetcherSettings(BaseModel):
    user_agent: str = DEFAULT_USER_AGENT
    proxy_url: str | None = None
    timeout_seconds: float = Field(default=30.0, gt=0)
    max_redirects: int = Field(default=5, ge=0)


class BrowserSettings(BaseModel):
    timeout_seconds: float = Field(default=30.0, gt=0)
    use_system_chrome: bool = True
    executable_path: str | None = None
    # Extra wait after the load event so client-side rendering can settle
    settle_ms: int = Field(default=1000, ge=0)


class CacheSettings(BaseModel):
    ttl_seconds: int = Field(default=600, ge=0)
    max_entries: int = Field(default=100, ge=1)


class LoggingSettings(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: Literal["json", "text"] = "json"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # Double-underscore separates nesting: SECTIONFETCH__SERVER__PORT=9090
        env_prefix="SECTIONFETCH__",
        env_nested_delimiter="__",
        yaml_file=_find_config_file(),
        yaml_file_encoding="utf-8",
    )

    server: ServerSettings = ServerSettings()
    fetcher: FetcherSettings = FetcherSettings()
    browser: BrowserSettings = BrowserSettings()
    cache: CacheSettings = CacheSettings()
    logging: LoggingSettings = LoggingSettings()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
        **kwargs: Any,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,  # Constructor args (highest priority)
            env_settings,  # Environment variables
            YamlConfigSettingsSource(settings_cls),  # YAML file
            # dotenv and file secrets intentionally excluded
        )
