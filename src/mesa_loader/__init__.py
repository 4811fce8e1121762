from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version as _pkg_version

from .errors import (
    ExtractionFailed,
    LoadError,
    PermissionDenied,
    RegistrationFailed,
    ResourceMissing,
    UnsupportedArchitecture,
    VersionDescriptorError,
)
from .loader import (
    LoaderConfig,
    LoaderState,
    NativeLoader,
    ResolvedLibrary,
    current_state,
    current_variant,
    initialize,
    resolve_variant,
)
from .premain import install_hook, premain, uninstall_hook
from .variants import ALL_VARIANTS, DEFAULT_DRIVER_ORDER, Arch, BackendVariant, Driver
from .version import read_version_descriptor, write_version_descriptor

try:
    __version__ = _pkg_version("mesa-loader")
except PackageNotFoundError:  # pragma: no cover - only hit in editable/dev without metadata
    __version__ = "0.0.0"

__all__ = [
    "__version__",
    "ALL_VARIANTS",
    "Arch",
    "BackendVariant",
    "DEFAULT_DRIVER_ORDER",
    "Driver",
    "ExtractionFailed",
    "LoadError",
    "LoaderConfig",
    "LoaderState",
    "NativeLoader",
    "PermissionDenied",
    "RegistrationFailed",
    "ResolvedLibrary",
    "ResourceMissing",
    "UnsupportedArchitecture",
    "VersionDescriptorError",
    "current_state",
    "current_variant",
    "initialize",
    "install_hook",
    "premain",
    "read_version_descriptor",
    "resolve_variant",
    "uninstall_hook",
    "write_version_descriptor",
]
