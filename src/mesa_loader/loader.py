from __future__ import annotations

import logging
import os
import sys
import threading
import zipfile
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Mapping, MutableMapping, Optional, Self

from .cache import default_cache_dir, extract_variant
from .core.env import _env_first, _env_flag
from .errors import LoadError, ResourceMissing
from .registry import Registration, default_preload, register_library
from .resources import Bundle, bundle_version, default_bundle_path, open_bundle
from .variants import Arch, BackendVariant, Driver, detect_arch, driver_candidates

_LOG = logging.getLogger(__name__)


class LoaderState(str, Enum):
    UNINITIALIZED = "uninitialized"
    RESOLVING = "resolving"
    RESOLVED = "resolved"
    FAILED = "failed"


@dataclass(frozen=True)
class LoaderConfig:
    driver: Optional[Driver]
    machine: Optional[str]
    bundle_path: Path
    cache_dir: Path
    preload: bool

    @classmethod
    def from_env(
        cls,
        env: Mapping[str, str] = os.environ,
        *,
        sys_platform: str = sys.platform,
        driver: Driver | str | None = None,
        machine: str | None = None,
        bundle_path: Path | None = None,
        cache_dir: Path | None = None,
        preload: bool | None = None,
    ) -> Self:
        """
        Build a config from MESA_LOADER_* variables; explicit arguments win.
        """
        if driver is None:
            raw = (_env_first(env, "MESA_LOADER_DRIVER") or "").strip()
            driver = raw or None
        if machine is None:
            machine = (_env_first(env, "MESA_LOADER_ARCH") or "").strip() or None
        if preload is None:
            preload = _env_flag(env, "MESA_LOADER_PRELOAD")
        if preload is None:
            preload = default_preload(sys_platform)

        return cls(
            driver=Driver.parse(driver) if driver is not None else None,
            machine=machine,
            bundle_path=Path(bundle_path).expanduser() if bundle_path is not None else default_bundle_path(env),
            cache_dir=Path(cache_dir).expanduser() if cache_dir is not None else default_cache_dir(env),
            preload=bool(preload),
        )


@dataclass(frozen=True)
class ResolvedLibrary:
    variant: BackendVariant
    directory: Path
    path: Path
    files: tuple[Path, ...]
    version: str

    @property
    def arch(self) -> Arch:
        return self.variant.arch

    @property
    def driver(self) -> Driver:
        return self.variant.driver


def _has_variant(bundle: Bundle, variant: BackendVariant) -> bool:
    try:
        return all(bundle.has(f"{variant.resource_dir}/{name}") for name in variant.library_files)
    except (OSError, zipfile.BadZipFile, ResourceMissing):
        return False


def resolve_variant(
    machine: Arch | str | None,
    preferred_driver: Driver | str | None,
    *,
    bundle: Bundle,
    cache_dir: Path,
    emit: Callable[[dict[str, Any]], None] | None = None,
) -> ResolvedLibrary:
    """
    Pick and extract one backend variant without touching process-wide state.

    With no preference the first driver of the default order that the bundle
    carries for this architecture wins; an explicit preference is used as-is.
    """
    arch = machine if isinstance(machine, Arch) else detect_arch(machine)
    version = bundle_version(bundle)
    candidates = driver_candidates(preferred_driver)

    chosen: Optional[BackendVariant] = None
    if len(candidates) == 1:
        chosen = BackendVariant(arch, candidates[0])
    else:
        for driver in candidates:
            v = BackendVariant(arch, driver)
            if _has_variant(bundle, v):
                chosen = v
                break
            _LOG.debug("bundle %s has no %s, trying next driver", bundle.location, v)
    if chosen is None:
        names = ", ".join(d.value for d in candidates)
        raise ResourceMissing(f"Bundle {bundle.location} has no Mesa driver for {arch.value} (tried: {names})")

    extracted = extract_variant(bundle, chosen, cache_dir=cache_dir, version=version, emit=emit)
    return ResolvedLibrary(
        variant=chosen,
        directory=extracted.directory,
        path=extracted.primary,
        files=extracted.files,
        version=version,
    )


class NativeLoader:
    """
    Process-wide installer for one Mesa variant.

    UNINITIALIZED -> RESOLVING -> RESOLVED | FAILED. Both end states are final:
    later ``initialize`` calls return the recorded handle or re-raise the
    recorded error, whatever driver they ask for.
    """

    def __init__(
        self,
        config: LoaderConfig | None = None,
        *,
        env: MutableMapping[str, str] = os.environ,
        sys_platform: str = sys.platform,
        register: Callable[..., Registration] = register_library,
        emit: Callable[[dict[str, Any]], None] | None = None,
    ) -> None:
        self._config = config
        self._env = env
        self._sys_platform = sys_platform
        self._register = register
        self._emit = emit
        self._lock = threading.Lock()
        self._state = LoaderState.UNINITIALIZED
        self._resolved: Optional[ResolvedLibrary] = None
        self._error: Optional[LoadError] = None
        self._registration: Optional[Registration] = None

    @property
    def state(self) -> LoaderState:
        return self._state

    @property
    def registration(self) -> Optional[Registration]:
        return self._registration

    def configure(self, config: LoaderConfig) -> bool:
        """
        Replace the config used for resolution. Only possible before the first ``initialize``.
        """
        with self._lock:
            if self._state is not LoaderState.UNINITIALIZED:
                return False
            self._config = config
            return True

    def current_variant(self) -> Optional[BackendVariant]:
        r = self._resolved
        return r.variant if r is not None else None

    def initialize(self, preferred_driver: Driver | str | None = None) -> ResolvedLibrary:
        # Reject typos before the one-shot resolution is spent on them.
        if preferred_driver is not None:
            preferred_driver = Driver.parse(preferred_driver)

        with self._lock:
            if self._state is LoaderState.RESOLVED:
                assert self._resolved is not None
                if preferred_driver is not None:
                    _LOG.debug(
                        "ignoring driver preference %s: %s is already installed", preferred_driver, self._resolved.variant
                    )
                return self._resolved
            if self._state is LoaderState.FAILED:
                assert self._error is not None
                raise self._error

            self._state = LoaderState.RESOLVING
            try:
                resolved, registration = self._resolve(preferred_driver)
            except LoadError as e:
                self._fail(e)
                raise
            except Exception as e:
                err = LoadError(f"Unexpected error while loading Mesa: {e.__class__.__name__}: {e}")
                self._fail(err)
                raise err from e

            self._resolved = resolved
            self._registration = registration
            self._state = LoaderState.RESOLVED
            _LOG.info("Mesa %s installed from %s", resolved.variant, resolved.path)
            if self._emit is not None:
                self._emit(
                    {
                        "event": "loader.resolved",
                        "variant": str(resolved.variant),
                        "path": str(resolved.path),
                        "version": resolved.version,
                    }
                )
            return resolved

    def _fail(self, err: LoadError) -> None:
        self._error = err
        self._state = LoaderState.FAILED
        _LOG.warning("Mesa loader failed: %s", err)
        if self._emit is not None:
            self._emit({"event": "loader.failed", "error": str(err), "error_type": err.__class__.__name__})

    def _resolve(self, preferred_driver: Driver | str | None) -> tuple[ResolvedLibrary, Registration]:
        cfg = self._config or LoaderConfig.from_env(self._env, sys_platform=self._sys_platform)

        # Architecture first: an unknown machine must not create cache directories.
        arch = detect_arch(cfg.machine)
        driver = preferred_driver if preferred_driver is not None else cfg.driver
        if driver is not None:
            driver = Driver.parse(driver)

        bundle = open_bundle(cfg.bundle_path)
        resolved = resolve_variant(arch, driver, bundle=bundle, cache_dir=cfg.cache_dir, emit=self._emit)
        registration = self._register(
            resolved.directory,
            resolved.files,
            preload=cfg.preload,
            env=self._env,
            sys_platform=self._sys_platform,
        )
        return resolved, registration


_DEFAULT_LOADER: Optional[NativeLoader] = None
_DEFAULT_LOADER_LOCK = threading.Lock()


def default_loader() -> NativeLoader:
    global _DEFAULT_LOADER
    with _DEFAULT_LOADER_LOCK:
        if _DEFAULT_LOADER is None:
            _DEFAULT_LOADER = NativeLoader()
        return _DEFAULT_LOADER


def initialize(preferred_driver: Driver | str | None = None) -> ResolvedLibrary:
    """
    Install the Mesa variant for this process (once) and return its handle.

    Raises a ``LoadError`` subclass on failure; the host decides whether to
    fall back to the system OpenGL or give up.
    """
    return default_loader().initialize(preferred_driver)


def current_variant() -> Optional[BackendVariant]:
    return default_loader().current_variant()


def current_state() -> LoaderState:
    return default_loader().state
