"""
Pre-main entry point.

Python runs ``import`` lines of ``*.pth`` files in site-packages while the
``site`` module initializes, before ``__main__`` executes. ``install_hook``
drops such a line so Mesa is installed before the application's first OpenGL
call, the way a JVM agent's ``premain`` would.
"""

from __future__ import annotations

import logging
import os
import sysconfig
from pathlib import Path
from typing import Mapping, Optional

from .core.env import _env_first, _env_flag, _parse_flag
from .errors import LoadError
from .loader import LoaderConfig, NativeLoader, ResolvedLibrary, default_loader

_LOG = logging.getLogger(__name__)

HOOK_PTH_NAME = "mesa_loader_premain.pth"
HOOK_LINE = "import mesa_loader.premain; mesa_loader.premain.run_from_env()\n"

_AGENT_KEYS = {"driver", "arch", "bundle", "cache-dir", "preload"}


def parse_agent_args(agent_args: Optional[str]) -> dict[str, str]:
    """
    Parse a ``key=value,key=value`` option string.

    A bare value is shorthand for ``driver=<value>``.
    """
    out: dict[str, str] = {}
    for raw in (agent_args or "").split(","):
        item = raw.strip()
        if not item:
            continue
        if "=" not in item:
            k, v = "driver", item
        else:
            k, v = item.split("=", 1)
        k = k.strip().lower()
        if k not in _AGENT_KEYS:
            raise ValueError(f"Unknown mesa-loader agent option: {k!r}")
        out[k] = v.strip()
    return out


def _config_from_args(opts: Mapping[str, str], env: Mapping[str, str]) -> LoaderConfig:
    preload = _parse_flag(opts["preload"]) if "preload" in opts else None
    return LoaderConfig.from_env(
        env,
        driver=opts.get("driver") or None,
        machine=opts.get("arch") or None,
        bundle_path=Path(opts["bundle"]) if opts.get("bundle") else None,
        cache_dir=Path(opts["cache-dir"]) if opts.get("cache-dir") else None,
        preload=preload,
    )


def premain(
    agent_args: Optional[str] = None,
    *,
    loader: Optional[NativeLoader] = None,
    env: Mapping[str, str] = os.environ,
) -> Optional[ResolvedLibrary]:
    """
    Install Mesa for this process; never raises on loader failure.

    Returns ``None`` when loading failed, leaving the host on its own OpenGL.
    """
    ld = loader or default_loader()
    try:
        opts = parse_agent_args(agent_args)
        if opts and not ld.configure(_config_from_args(opts, env)):
            _LOG.debug("mesa-loader already initialized; ignoring agent options %r", agent_args)
        return ld.initialize()
    except (LoadError, ValueError) as e:
        _LOG.warning("Mesa was not installed, falling back to the system OpenGL: %s", e)
        return None


def run_from_env(env: Mapping[str, str] = os.environ) -> Optional[ResolvedLibrary]:
    """
    Called by the ``.pth`` hook. Opt-in through MESA_LOADER_AUTOLOAD.
    """
    if not _env_flag(env, "MESA_LOADER_AUTOLOAD"):
        return None
    return premain(_env_first(env, "MESA_LOADER_AGENT_ARGS"), env=env)


def _default_site_dir() -> Path:
    return Path(sysconfig.get_paths()["purelib"])


def install_hook(site_dir: Optional[Path] = None) -> Path:
    d = Path(site_dir) if site_dir is not None else _default_site_dir()
    d.mkdir(parents=True, exist_ok=True)
    pth = d / HOOK_PTH_NAME
    pth.write_text(HOOK_LINE, encoding="utf-8")
    return pth


def uninstall_hook(site_dir: Optional[Path] = None) -> bool:
    d = Path(site_dir) if site_dir is not None else _default_site_dir()
    pth = d / HOOK_PTH_NAME
    if not pth.exists():
        return False
    pth.unlink()
    return True
