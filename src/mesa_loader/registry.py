from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, MutableMapping, Optional, Sequence

from .errors import RegistrationFailed

_LOG = logging.getLogger(__name__)


@dataclass
class Registration:
    """
    Process-wide linker state installed for one directory.

    Holds the ``os.add_dll_directory`` cookie and the ctypes handles: dropping
    them would undo the registration.
    """

    directory: Path
    dll_directory: Optional[Any] = None
    preloaded: list[Any] = field(default_factory=list)


def _default_load_library(sys_platform: str) -> Callable[[str], Any]:
    import ctypes

    if sys_platform.startswith("win"):
        return ctypes.WinDLL  # type: ignore[attr-defined]

    def _load(path: str) -> Any:
        return ctypes.CDLL(path, mode=ctypes.RTLD_GLOBAL)

    return _load


def default_preload(sys_platform: str = sys.platform) -> bool:
    # The bundled binaries are Windows DLLs; elsewhere only the search path is touched.
    return sys_platform.startswith("win")


def prepend_search_path(env: MutableMapping[str, str], directory: Path, *, key: str = "PATH") -> None:
    d = str(directory)
    parts = [p for p in (env.get(key) or "").split(os.pathsep) if p]
    if parts and os.path.normcase(parts[0]) == os.path.normcase(d):
        return
    parts = [p for p in parts if os.path.normcase(p) != os.path.normcase(d)]
    env[key] = os.pathsep.join([d, *parts])


def _default_unload_library(sys_platform: str) -> Callable[[Any], None]:
    import ctypes

    if sys_platform.startswith("win"):

        def _free(handle: Any) -> None:
            ctypes.windll.kernel32.FreeLibrary(ctypes.c_void_p(handle._handle))  # type: ignore[attr-defined]

        return _free

    dlclose = getattr(ctypes.CDLL(None), "dlclose", None)

    def _close(handle: Any) -> None:
        if dlclose is not None:
            dlclose(ctypes.c_void_p(handle._handle))

    return _close


def _rollback(
    reg: Registration,
    env: MutableMapping[str, str],
    previous_path: Optional[str],
    unload: Callable[[Any], None],
) -> None:
    """
    Undo a partial registration so the host's own OpenGL lookup is unaffected.
    """
    if previous_path is None:
        env.pop("PATH", None)
    else:
        env["PATH"] = previous_path

    if reg.dll_directory is not None:
        close = getattr(reg.dll_directory, "close", None)
        try:
            if close is not None:
                close()
        except OSError as e:
            _LOG.debug("could not remove dll directory %s: %s", reg.directory, e)
        reg.dll_directory = None

    for handle in reversed(reg.preloaded):
        try:
            unload(handle)
        except OSError as e:
            _LOG.debug("could not unload %r: %s", handle, e)
    reg.preloaded.clear()


def register_library(
    directory: Path,
    files: Sequence[Path],
    *,
    preload: bool,
    env: MutableMapping[str, str] = os.environ,
    sys_platform: str = sys.platform,
    add_dll_directory: Optional[Callable[[str], Any]] = None,
    load_library: Optional[Callable[[str], Any]] = None,
    unload_library: Optional[Callable[[Any], None]] = None,
) -> Registration:
    """
    Make the OS dynamic linker resolve the bundled libraries before system copies.

    - PATH gets *directory* prepended (also inherited by child processes).
    - On Windows the directory is added with ``os.add_dll_directory``.
    - With *preload*, every file is loaded now; auxiliary files first so the
      primary library finds them already mapped.

    On failure every step already taken is undone before ``RegistrationFailed`` is raised.
    """
    directory = Path(directory)
    reg = Registration(directory=directory)
    previous_path = env.get("PATH")

    try:
        prepend_search_path(env, directory)

        if sys_platform.startswith("win"):
            adder = add_dll_directory or getattr(os, "add_dll_directory", None)
            if adder is not None:
                reg.dll_directory = adder(str(directory))

        if preload and files:
            loader = load_library or _default_load_library(sys_platform)
            ordered = [*files[1:], files[0]]
            for f in ordered:
                _LOG.debug("preloading %s", f)
                reg.preloaded.append(loader(str(f)))
    except OSError as e:
        unload = unload_library
        if unload is None and reg.preloaded:
            unload = _default_unload_library(sys_platform)
        _rollback(reg, env, previous_path, unload or (lambda _h: None))
        raise RegistrationFailed(f"Could not register Mesa libraries from {directory}: {e}") from e

    _LOG.info("registered native library directory %s (preloaded=%d)", directory, len(reg.preloaded))
    return reg
