from __future__ import annotations

import os
from dataclasses import dataclass
from decimal import Decimal
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict


_TIER_PRESETS = {"none", "standard"}
_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


@dataclass(frozen=True)
class Config:
    currency_symbol: str = "฿"
    decimal_places: int = 2
    default_tiers: str = "none"
    snapshot_path: str = ".tiercart/cart.json"
    log_level: str = "WARNING"

    @property
    def minor_unit(self) -> Decimal:
        return Decimal(1).scaleb(-self.decimal_places)


_ENV_PREFIX = "TIERCART_"


def _find_pyproject(start_dir: Path) -> Path | None:
    for directory in (start_dir, *start_dir.parents):
        candidate = directory / "pyproject.toml"
        if candidate.exists():
            return candidate
    return None


def _load_toml(path: Path) -> Dict[str, Any]:
    try:
        import tomllib  # py311+
    except ModuleNotFoundError:
        import tomli as tomllib

    return tomllib.loads(path.read_text(encoding="utf-8"))


def _to_int(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _to_choice(value: Any, choices: set[str], default: str, *, upper: bool = False) -> str:
    if not isinstance(value, str):
        return default
    normalized = value.strip().upper() if upper else value.strip().lower()
    return normalized if normalized in choices else default


def _from_sources(raw: Dict[str, Any]) -> Config:
    currency_symbol = os.getenv(f"{_ENV_PREFIX}CURRENCY_SYMBOL", raw.get("currency_symbol", "฿"))
    decimal_places = _to_int(os.getenv(f"{_ENV_PREFIX}DECIMAL_PLACES", raw.get("decimal_places", 2)), 2)
    default_tiers = _to_choice(
        os.getenv(f"{_ENV_PREFIX}DEFAULT_TIERS", raw.get("default_tiers", "none")), _TIER_PRESETS, "none"
    )
    snapshot_path = os.getenv(f"{_ENV_PREFIX}SNAPSHOT_PATH", raw.get("snapshot_path", ".tiercart/cart.json"))
    log_level = _to_choice(
        os.getenv(f"{_ENV_PREFIX}LOG_LEVEL", raw.get("log_level", "WARNING")), _LOG_LEVELS, "WARNING", upper=True
    )

    return Config(
        currency_symbol=str(currency_symbol),
        decimal_places=max(0, min(6, decimal_places)),
        default_tiers=default_tiers,
        snapshot_path=str(snapshot_path),
        log_level=log_level,
    )


@lru_cache(maxsize=32)
def load_config(start_dir: str | os.PathLike[str] | None = None) -> Config:
    root = Path(start_dir or os.getcwd()).resolve()
    pyproject = _find_pyproject(root)
    if pyproject is None:
        return _from_sources({})

    parsed = _load_toml(pyproject)
    tool = parsed.get("tool", {}) if isinstance(parsed, dict) else {}
    section = tool.get("tiercart", {}) if isinstance(tool, dict) else {}
    return _from_sources(section if isinstance(section, dict) else {})


def get_config() -> Config:
    return load_config(os.getcwd())


def refresh_config(start_dir: str | os.PathLike[str] | None = None) -> Config:
    load_config.cache_clear()
    return load_config(start_dir)
