"""Configuration du client lue depuis l'environnement."""
from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from gestion_commandes.core.env_loader import load_env

_TRUE_VALUES = {"1", "true", "yes", "on", "y", "t"}
_FALSE_VALUES = {"0", "false", "no", "off", "n", "f"}


def _get_env_flag(name: str, default: bool = False) -> bool:
    """Retourne une valeur booléenne à partir d'une variable d'environnement."""

    value = os.getenv(name)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    return default


def _get_env_int(name: str, default: int, *, minimum: int = 1) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value >= minimum else default


def _get_env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    return value if value > 0 else default


def _get_env_str(name: str) -> str | None:
    value = os.getenv(name)
    if value is None:
        return None
    value = value.strip()
    return value or None


@dataclass(frozen=True)
class Settings:
    """Paramètres globaux lus depuis l'environnement."""

    API_BASE_URL: str = "http://localhost:5000/api"
    API_TOKEN: str | None = None
    API_TIMEOUT: float = 15.0
    HISTORY_PAGE_SIZE: int = 10
    PRODUCTS_PAGE_SIZE: int = 500
    LOCAL_TIMEZONE: str | None = None
    DEBUG: bool = False

    @property
    def timezone(self) -> tzinfo | None:
        """Fuseau utilisé pour interpréter les dates saisies (None = fuseau système)."""
        if not self.LOCAL_TIMEZONE:
            return None
        try:
            return ZoneInfo(self.LOCAL_TIMEZONE)
        except (ZoneInfoNotFoundError, ValueError):
            return None


def load_settings() -> Settings:
    load_env()
    return Settings(
        API_BASE_URL=(_get_env_str("COMMANDES_API_URL") or Settings.API_BASE_URL).rstrip("/"),
        API_TOKEN=_get_env_str("COMMANDES_API_TOKEN"),
        API_TIMEOUT=_get_env_float("COMMANDES_API_TIMEOUT", Settings.API_TIMEOUT),
        HISTORY_PAGE_SIZE=_get_env_int("COMMANDES_HISTORY_PAGE_SIZE", Settings.HISTORY_PAGE_SIZE),
        PRODUCTS_PAGE_SIZE=_get_env_int("COMMANDES_PRODUCTS_PAGE_SIZE", Settings.PRODUCTS_PAGE_SIZE),
        LOCAL_TIMEZONE=_get_env_str("COMMANDES_TIMEZONE"),
        DEBUG=_get_env_flag("COMMANDES_DEBUG", default=False),
    )


settings = load_settings()
