"""
Environment variable loading and parsing for RiskScope.

- OPENAI_API_KEY / OPENAI_MODEL: narrative generation (optional; absent -> templates)
- TWITTER_BEARER_TOKEN: live X/Twitter metrics (optional; absent -> synthetic)
- BSC_EXPLORER_URL / BSC_API_KEY: BNB Smart Chain explorer (txlist)
- Loads .env from project root when available.
"""

from __future__ import annotations

import math
import os
from pathlib import Path

from dotenv import load_dotenv

# Project root: config is backend_riskscope/config/, root is 2 levels up
_CONFIG_DIR = Path(__file__).resolve().parent
_BACKEND_DIR = _CONFIG_DIR.parent
_ROOT = _BACKEND_DIR.parent
_ENV_PATH = _ROOT / ".env"

_TRUE_VALUES = ("1", "true", "yes", "on")


def load_riskscope_env() -> None:
    """Load .env from project root. Safe to call multiple times; never overrides the shell."""
    if _ENV_PATH.is_file():
        load_dotenv(_ENV_PATH, override=False)


def env_str(name: str, default: str = "") -> str:
    """Return stripped env value, or default when unset/blank."""
    raw = (os.getenv(name) or "").strip()
    return raw or default


def env_float(name: str, default: float, *, minimum: float | None = None) -> float:
    """Parse a float env value; invalid or non-finite values use default."""
    raw = env_str(name)
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError:
        return default
    if not math.isfinite(value):
        return default
    if minimum is not None:
        value = max(minimum, value)
    return value


def env_int(name: str, default: int, *, minimum: int | None = None) -> int:
    """Parse an int env value; invalid values use default."""
    raw = env_str(name)
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    if minimum is not None:
        value = max(minimum, value)
    return value


def env_bool(name: str, default: bool = False) -> bool:
    raw = env_str(name).lower()
    if not raw:
        return default
    return raw in _TRUE_VALUES
