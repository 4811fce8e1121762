from __future__ import annotations

from ..variants import BackendVariant

MESA_VERSION = "25.2.1"

_RELEASE_URL_BASE = "https://github.com/mmozeiko/build-mesa/releases/download"


class BundleError(RuntimeError):
    pass


def archive_name(variant: BackendVariant, mesa_version: str = MESA_VERSION) -> str:
    """
    Release asset stem, e.g. ``mesa-d3d12-x64-25.2.1``. Also the extraction dir name.
    """
    return f"mesa-{variant.driver.value}-{variant.arch.value}-{mesa_version}"


def archive_url(variant: BackendVariant, mesa_version: str = MESA_VERSION) -> str:
    return f"{_RELEASE_URL_BASE}/{mesa_version}/{archive_name(variant, mesa_version)}.7z"
