from __future__ import annotations

"""client/apunto/config/settings.py

Client configuration using environment-driven settings.

This module centralizes:
- backend base URL
- deadlines for the analysis request and the caller-side safety guard
- history persistence (local database URL, storage key, remote mode)
- connectivity probe target
- optional Statsig analytics secret
"""
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
  app_name: str = "apunto-client"
  environment: str = "development"

  # Backend
  # Android emulator: http://10.0.2.2:3000/api, physical device: http://<LAN IP>:3000/api
  api_base_url: str = "http://localhost:3000/api"

  # Deadlines (seconds)
  analyze_timeout_seconds: float = 60.0
  safety_timeout_seconds: float = 120.0
  history_load_timeout_seconds: float = 3.0

  # History
  history_remote_enabled: bool = True
  history_remote_timeout_seconds: float = 10.0
  history_storage_key: str = "@apunto_history"
  database_url: str = "sqlite:///apunto.db"

  # Connectivity precheck
  connectivity_check_enabled: bool = True
  connectivity_probe_host: str = "1.1.1.1"
  connectivity_probe_port: int = 53
  connectivity_probe_timeout_seconds: float = 1.5

  # Analytics
  statsig_server_secret: str | None = None

  model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
  """Return a cached Settings instance."""
  return Settings()
