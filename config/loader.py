"""Configuration loader utilities."""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


SETTINGS_FILE_ENV_VAR = "CATALOGUE_SETTINGS_FILE"
DEFAULT_SETTINGS_FILE = Path("config/settings.yaml")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="CATALOGUE_",
        extra="allow",
    )

    app_name: str = "bounty_catalogue"
    environment: str = "development"
    log_level: str = "INFO"
    store_path: Path = Path("data/hackerone_reports.json")
    report_link_prefix: str = "https://hackerone.com/reports/"
    ranking_cap: int = Field(default=20, ge=20)
    preview_length: int = Field(default=200, gt=0)
    default_page_size: int = Field(default=10, gt=0)
    max_page_size: int = Field(default=100, gt=0)
    stats_ranking_size: int = Field(default=10, ge=0)
    host: str = "0.0.0.0"
    port: int = 8000

    @classmethod
    def from_yaml(cls, data: Dict[str, Any]) -> "Settings":
        app = data.get("app", {})
        store = data.get("store", {})
        queries = data.get("queries", {})
        server = data.get("server", {})
        candidates = {
            "app_name": app.get("name"),
            "environment": app.get("environment"),
            "log_level": app.get("log_level"),
            "store_path": store.get("path"),
            "report_link_prefix": store.get("link_prefix"),
            "ranking_cap": store.get("ranking_cap"),
            "preview_length": queries.get("preview_length"),
            "default_page_size": queries.get("default_page_size"),
            "max_page_size": queries.get("max_page_size"),
            "stats_ranking_size": queries.get("stats_ranking_size"),
            "host": server.get("host"),
            "port": server.get("port"),
        }
        # Environment variables win over the YAML file.
        payload = {
            key: value
            for key, value in candidates.items()
            if value is not None and f"CATALOGUE_{key.upper()}" not in os.environ
        }
        return cls(**payload)


def _load_yaml_settings() -> Dict[str, Any]:
    settings_path = Path(os.getenv(SETTINGS_FILE_ENV_VAR, str(DEFAULT_SETTINGS_FILE)))
    if not settings_path.exists():
        return {}
    with settings_path.open("r", encoding="utf-8") as fh:
        return yaml.safe_load(fh) or {}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    data = _load_yaml_settings()
    return Settings.from_yaml(data)
