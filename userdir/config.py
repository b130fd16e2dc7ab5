"""Configuration management for the user directory service."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Dict, Mapping, Optional

import yaml

logger = logging.getLogger("userdir.config")

DEFAULT_TABLE = "users"

_URL_VARIABLES = ("USERDIR_STORE_URL", "SUPABASE_URL")
_KEY_VARIABLES = ("USERDIR_STORE_KEY", "SUPABASE_ANON_KEY")


@dataclass(frozen=True)
class StoreSettings:
    """Connection details for the record store."""

    url: Optional[str] = None
    key: Optional[str] = None
    table: str = DEFAULT_TABLE

    @staticmethod
    def from_dict(data: Mapping[str, object]) -> "StoreSettings":
        """Create :class:`StoreSettings` from the ``store`` mapping of a config file."""

        unknown = set(data.keys()) - {"url", "key", "table"}
        if unknown:
            raise ValueError(f"Unknown store configuration fields: {', '.join(sorted(unknown))}")

        def _clean(value: object) -> Optional[str]:
            if value is None:
                return None
            text = str(value).strip()
            return text or None

        return StoreSettings(
            url=_clean(data.get("url")),
            key=_clean(data.get("key")),
            table=_clean(data.get("table")) or DEFAULT_TABLE,
        )

    def describe(self) -> Dict[str, str]:
        """Return a summary that is safe to log."""

        return {
            "url": "configured" if self.url else "missing",
            "key": "configured" if self.key else "missing",
            "table": self.table,
        }


def _first_env(environ: Mapping[str, str], names: tuple[str, ...]) -> Optional[str]:
    for name in names:
        value = environ.get(name)
        if value and value.strip():
            return value.strip()
    return None


def load_settings_file(config_path: Path) -> StoreSettings:
    """Load store settings from a YAML file."""
    with config_path.open("r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle) or {}

    if not isinstance(raw, dict):
        raise ValueError("Configuration file must contain a mapping")

    store_raw = raw.get("store") or {}
    if not isinstance(store_raw, dict):
        raise ValueError("The 'store' key must contain a mapping")
    return StoreSettings.from_dict(store_raw)


def resolve_config_path(env_value: Optional[str]) -> Path:
    """Resolve the path to the optional configuration file."""
    if env_value:
        candidate = Path(env_value).expanduser().resolve(strict=False)
    else:
        candidate = (Path(__file__).resolve().parent.parent / "config" / "userdir.yaml").resolve(strict=False)
    return candidate


def load_store_settings(environ: Optional[Mapping[str, str]] = None) -> StoreSettings:
    """Read the store URL and access key at process start.

    File values from ``USERDIR_CONFIG`` (when present) are overridden by the
    environment. Missing values are logged but not enforced; store calls fail
    later instead.
    """

    if environ is None:
        environ = os.environ

    settings = StoreSettings()
    config_path = resolve_config_path(environ.get("USERDIR_CONFIG"))
    if config_path.is_file():
        settings = load_settings_file(config_path)
        logger.info("Loaded store configuration from %s", config_path)

    url = _first_env(environ, _URL_VARIABLES)
    key = _first_env(environ, _KEY_VARIABLES)
    table = environ.get("USERDIR_STORE_TABLE", "").strip()
    settings = replace(
        settings,
        url=url or settings.url,
        key=key or settings.key,
        table=table or settings.table,
    )

    logger.info("Store configuration: %s", settings.describe())
    if not settings.url:
        logger.warning("Record store URL is not configured; requests will fail")
    if not settings.key and settings.url and settings.url.startswith(("http://", "https://")):
        logger.warning("Record store access key is not configured; requests may be rejected")
    return settings


__all__ = [
    "DEFAULT_TABLE",
    "StoreSettings",
    "load_settings_file",
    "load_store_settings",
    "resolve_config_path",
]
