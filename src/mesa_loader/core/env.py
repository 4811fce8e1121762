from __future__ import annotations

from typing import Mapping, Optional

_TRUTHY = {"1", "true", "yes", "y", "on"}


def _env_first(env: Mapping[str, str], *keys: str) -> Optional[str]:
    """Return the value of the first key present in *env*, or ``None``."""
    for k in keys:
        v = env.get(k)
        if v is not None:
            return v
    return None


def _env_flag(env: Mapping[str, str], *keys: str) -> Optional[bool]:
    """
    Parse a boolean environment override.

    Returns ``None`` when none of *keys* is set so callers can fall back to
    their own platform-dependent default.
    """
    v = _env_first(env, *keys)
    if v is None:
        return None
    return v.strip().lower() in _TRUTHY


def _parse_flag(value: str) -> bool:
    return value.strip().lower() in _TRUTHY
