"""
chaintrack.config - YAML Configuration Loader
===============================================

This module reads ``config.yaml`` for **soft** settings: where the Torn API
lives, how hard we may hit it, and how often the dashboard refreshes.
Secrets never go here.  ``DATABASE_URL`` comes from the environment and the
API key lives in the ``settings`` table.

Usage::

    from chaintrack.config import load_config

    cfg = load_config()          # reads ./config.yaml by default
    print(cfg.rate_limit)        # 50
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from pathlib import Path

import yaml


# ---------------------------------------------------------------------------
# Typed settings object
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class ChainTrackConfig:
    """Immutable configuration loaded from ``config.yaml``.

    Every key is optional in the YAML file; the defaults below match the
    limits Torn documents for a single API key.
    """

    # Torn API
    api_base: str = "https://api.torn.com/v2"
    request_timeout_seconds: float = 10.0
    strip_tags: bool = False  # Keep profile links so members resolve by id

    # Rate limiting (rolling window per key)
    rate_limit: int = 50
    rate_window_seconds: float = 60.0
    retry_delay_seconds: float = 5.0

    # Pagination
    news_page_limit: int = 100
    chain_list_limit: int = 100

    # Dashboard
    refresh_interval_seconds: float = 120.0


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path = "config.yaml") -> ChainTrackConfig:
    """Read *path* and return a :class:`ChainTrackConfig` instance.

    Parameters
    ----------
    path:
        Filesystem path to the YAML configuration file.
        Defaults to ``config.yaml`` in the current working directory.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    ValueError
        If a key is unknown or its value cannot be coerced to the
        expected type.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example -> config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    known = {f.name: f for f in fields(ChainTrackConfig)}
    unknown = sorted(set(raw) - set(known))
    if unknown:
        raise ValueError(f"Unknown config keys in {config_path}: {unknown}")

    values: dict[str, object] = {}
    for name, value in raw.items():
        expected = type(getattr(ChainTrackConfig(), name))
        try:
            values[name] = _coerce(value, expected)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"Invalid value for {name!r}: {value!r}") from exc

    cfg = ChainTrackConfig(**values)
    if cfg.rate_limit < 1 or cfg.news_page_limit < 1 or cfg.chain_list_limit < 1:
        raise ValueError("rate_limit and page limits must be positive")
    return cfg


def _coerce(value: object, expected: type) -> object:
    if expected is bool:
        if isinstance(value, bool):
            return value
        raise ValueError("expected a boolean")
    return expected(value)
