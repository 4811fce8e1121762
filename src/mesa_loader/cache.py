from __future__ import annotations

import hashlib
import logging
import os
import re
import secrets
import shutil
import stat
import threading
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, BinaryIO, Callable, Mapping

from platformdirs import user_cache_dir

from .core.env import _env_first
from .errors import ExtractionFailed, PermissionDenied, ResourceMissing
from .resources import Bundle
from .variants import BackendVariant

_LOG = logging.getLogger(__name__)

_CHUNK = 1024 * 1024
_UNSAFE_SEGMENT = re.compile(r"[^A-Za-z0-9._+-]")


def default_cache_dir(env: Mapping[str, str] = os.environ) -> Path:
    """
    Base directory that extracted Mesa libraries are written to.
    """
    override = (_env_first(env, "MESA_LOADER_CACHE_DIR") or "").strip()
    if override:
        return Path(override).expanduser()
    return Path(user_cache_dir("mesa-loader", appauthor=False))


def _version_segment(version: str) -> str:
    seg = _UNSAFE_SEGMENT.sub("_", str(version).strip())
    if not seg or seg in {".", ".."}:
        raise ExtractionFailed(f"Cannot derive a cache directory from version {version!r}")
    return seg


def variant_cache_dir(cache_dir: Path, version: str, variant: BackendVariant) -> Path:
    # Keyed by version so two installed loader builds never overwrite each other's DLLs.
    return Path(cache_dir) / _version_segment(version) / variant.arch.value / variant.driver.value


@dataclass(frozen=True)
class ExtractedVariant:
    variant: BackendVariant
    directory: Path
    files: tuple[Path, ...]
    written: tuple[Path, ...]

    @property
    def primary(self) -> Path:
        return self.files[0]


def _digest_stream(f: BinaryIO) -> tuple[int, str]:
    h = hashlib.sha256()
    size = 0
    while True:
        chunk = f.read(_CHUNK)
        if not chunk:
            break
        size += len(chunk)
        h.update(chunk)
    return size, h.hexdigest()


def _file_matches(path: Path, size: int, digest: str) -> bool:
    try:
        if not path.is_file() or path.stat().st_size != size:
            return False
        with path.open("rb") as f:
            return _digest_stream(f) == (size, digest)
    except OSError:
        return False


def _make_loadable(path: Path) -> None:
    if os.name == "nt":
        return
    try:
        mode = path.stat().st_mode
        path.chmod(mode | stat.S_IRUSR | stat.S_IWUSR | stat.S_IXUSR | stat.S_IRGRP | stat.S_IROTH)
    except OSError:
        return


def _temp_name(target: Path) -> Path:
    suffix = f".{os.getpid()}-{threading.get_ident()}-{secrets.token_hex(4)}.tmp"
    return target.with_name(f".{target.name}{suffix}")


def _install_file(bundle: Bundle, relpath: str, target: Path, *, size: int, digest: str) -> None:
    """
    Copy one bundle member to *target* through a private temp file and an atomic rename.
    """
    tmp = _temp_name(target)
    try:
        with bundle.open(relpath) as src, tmp.open("xb") as dst:
            shutil.copyfileobj(src, dst, _CHUNK)
        _make_loadable(tmp)
        try:
            os.replace(tmp, target)
        except OSError:
            # Windows refuses to replace a DLL another process has loaded; fine if it is ours.
            if _file_matches(target, size, digest):
                return
            raise
    finally:
        try:
            tmp.unlink()
        except FileNotFoundError:
            pass


def extract_variant(
    bundle: Bundle,
    variant: BackendVariant,
    *,
    cache_dir: Path,
    version: str,
    emit: Callable[[dict[str, Any]], None] | None = None,
) -> ExtractedVariant:
    """
    Make the variant's libraries available as plain files under *cache_dir*.

    Files already present with the same size and SHA-256 are left untouched, so
    independent processes sharing one cache converge on identical content.
    """
    target_dir = variant_cache_dir(cache_dir, version, variant)

    sources: list[tuple[str, Path]] = []
    for name in variant.library_files:
        relpath = f"{variant.resource_dir}/{name}"
        try:
            present = bundle.has(relpath)
        except (OSError, zipfile.BadZipFile) as e:
            raise ResourceMissing(f"Cannot read bundle {bundle.location}: {e}") from e
        if not present:
            raise ResourceMissing(f"Bundle {bundle.location} has no {relpath} for variant {variant}")
        sources.append((relpath, target_dir / name))

    try:
        target_dir.mkdir(parents=True, exist_ok=True)
    except PermissionError as e:
        raise PermissionDenied(f"Cache directory is not writable: {target_dir}") from e
    except OSError as e:
        raise ExtractionFailed(f"Cannot create cache directory {target_dir}: {e}") from e

    written: list[Path] = []
    for relpath, target in sources:
        try:
            with bundle.open(relpath) as f:
                size, digest = _digest_stream(f)
        except (OSError, zipfile.BadZipFile) as e:
            raise ExtractionFailed(f"Cannot read {relpath} from {bundle.location}: {e}") from e

        if _file_matches(target, size, digest):
            _LOG.debug("cache hit: %s", target)
            continue

        try:
            _install_file(bundle, relpath, target, size=size, digest=digest)
        except PermissionError as e:
            raise PermissionDenied(f"Cannot write {target}: {e}") from e
        except (OSError, zipfile.BadZipFile) as e:
            raise ExtractionFailed(f"Cannot extract {relpath} to {target}: {e}") from e

        written.append(target)
        _LOG.info("extracted %s -> %s", relpath, target)
        if emit is not None:
            emit({"event": "loader.extract", "variant": str(variant), "path": str(target), "bytes": int(size)})

    return ExtractedVariant(
        variant=variant,
        directory=target_dir,
        files=tuple(t for _, t in sources),
        written=tuple(written),
    )
