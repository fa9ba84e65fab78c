"""
Runtime configuration.

Defaults live in CatalogConfig; an optional JSON file and environment
variables override them, in that order.
"""

from __future__ import annotations
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Optional
import json
import os


ENV_CACHE_PATH = "HARM_CATALOG_CACHE_PATH"
ENV_TIMEOUT = "HARM_CATALOG_TIMEOUT"
ENV_LOG_LEVEL = "HARM_CATALOG_LOG_LEVEL"


@dataclass(frozen=True)
class CatalogConfig:
    """Configuration for the catalog runtime."""
    cache_path: Path = Path("data") / "catalog_cache.sqlite3"
    timeout_seconds: float = 15.0
    user_agent: str = "HarmCatalog/1.0"
    connectivity_url: Optional[str] = None  # None = use sources.json value
    sources_path: Optional[Path] = None     # None = packaged sources.json
    bundled_dir: Optional[Path] = None      # None = packaged data/
    log_level: str = "INFO"
    log_format: str = "text"                # "text" or "json"


_PATH_FIELDS = {"cache_path", "sources_path", "bundled_dir"}


def load_config(path: Optional[Path] = None) -> CatalogConfig:
    """
    Build configuration from defaults, an optional JSON file and env vars.

    Raises:
        FileNotFoundError: If `path` is given but does not exist
        ValueError: If the file is not a JSON object or has unknown keys
    """
    config = CatalogConfig()

    if path is not None:
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Failed to parse config JSON: {e}") from e
        if not isinstance(data, dict):
            raise ValueError("Config root must be an object")

        known = {f.name for f in fields(CatalogConfig)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown config keys: {', '.join(unknown)}")

        overrides = {
            key: Path(value) if key in _PATH_FIELDS and value is not None else value
            for key, value in data.items()
        }
        config = replace(config, **overrides)

    env_cache = os.environ.get(ENV_CACHE_PATH)
    if env_cache:
        config = replace(config, cache_path=Path(env_cache))
    env_timeout = os.environ.get(ENV_TIMEOUT)
    if env_timeout:
        try:
            config = replace(config, timeout_seconds=float(env_timeout))
        except ValueError as e:
            raise ValueError(f"{ENV_TIMEOUT} must be a number, got {env_timeout!r}") from e
    env_level = os.environ.get(ENV_LOG_LEVEL)
    if env_level:
        config = replace(config, log_level=env_level.upper())

    if config.timeout_seconds <= 0:
        raise ValueError("timeout_seconds must be positive")
    return config
