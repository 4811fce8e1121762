from __future__ import annotations

import contextlib
import os
import zipfile
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import BinaryIO, Iterator, Mapping, Optional, Union

from .core.env import _env_first
from .errors import ResourceMissing, VersionDescriptorError
from .version import VERSION_DESCRIPTOR_NAME, parse_version_descriptor

# Populated by scripts/build_bundles.py before building a wheel.
PACKAGED_NATIVES_DIR = Path(__file__).resolve().parent / "natives"


def default_bundle_path(env: Mapping[str, str] = os.environ) -> Path:
    """
    Where the Mesa binaries are read from: MESA_LOADER_BUNDLE, else the packaged ``natives/`` dir.
    """
    override = (_env_first(env, "MESA_LOADER_BUNDLE") or "").strip()
    if override:
        return Path(override).expanduser()
    return PACKAGED_NATIVES_DIR


def _check_member(relpath: str) -> str:
    p = PurePosixPath(relpath)
    if p.is_absolute() or ".." in p.parts or "\\" in relpath:
        raise ResourceMissing(f"Refusing suspicious bundle path: {relpath!r}")
    return str(p)


@dataclass(frozen=True)
class DirectoryBundle:
    root: Path

    @property
    def location(self) -> str:
        return str(self.root)

    def has(self, relpath: str) -> bool:
        return (self.root / _check_member(relpath)).is_file()

    @contextlib.contextmanager
    def open(self, relpath: str) -> Iterator[BinaryIO]:
        path = self.root / _check_member(relpath)
        try:
            f = path.open("rb")
        except FileNotFoundError as e:
            raise ResourceMissing(f"Bundle resource missing: {relpath} (in {self.root})") from e
        with f:
            yield f

    def read_text(self, relpath: str) -> str:
        with self.open(relpath) as f:
            return f.read().decode("utf-8")


@dataclass(frozen=True)
class ZipBundle:
    """
    A zip archive with the same layout as a directory bundle (the per-arch distributables).
    """

    path: Path

    @property
    def location(self) -> str:
        return str(self.path)

    def has(self, relpath: str) -> bool:
        name = _check_member(relpath)
        with zipfile.ZipFile(self.path) as zf:
            try:
                info = zf.getinfo(name)
            except KeyError:
                return False
            return not info.is_dir()

    @contextlib.contextmanager
    def open(self, relpath: str) -> Iterator[BinaryIO]:
        name = _check_member(relpath)
        with zipfile.ZipFile(self.path) as zf:
            try:
                info = zf.getinfo(name)
            except KeyError as e:
                raise ResourceMissing(f"Bundle resource missing: {relpath} (in {self.path})") from e
            with zf.open(info, "r") as f:
                yield f

    def read_text(self, relpath: str) -> str:
        with self.open(relpath) as f:
            return f.read().decode("utf-8")


Bundle = Union[DirectoryBundle, ZipBundle]


def open_bundle(path: Optional[Path] = None, *, env: Mapping[str, str] = os.environ) -> Bundle:
    p = Path(path).expanduser() if path is not None else default_bundle_path(env)
    if p.is_dir():
        return DirectoryBundle(p)
    if p.is_file():
        if not zipfile.is_zipfile(p):
            raise ResourceMissing(f"Bundle is not a zip archive: {p}")
        return ZipBundle(p)
    raise ResourceMissing(f"Mesa bundle does not exist: {p}")


def bundle_version(bundle: Bundle) -> str:
    """
    Read the loader version recorded in the bundle's ``version.properties``.

    A missing or malformed descriptor means the bundle was packaged wrong.
    """
    try:
        text = bundle.read_text(VERSION_DESCRIPTOR_NAME)
    except zipfile.BadZipFile as e:
        raise ResourceMissing(f"Corrupt bundle archive: {bundle.location}") from e
    try:
        return parse_version_descriptor(text, source=f"{bundle.location}/{VERSION_DESCRIPTOR_NAME}")
    except VersionDescriptorError as e:
        raise ResourceMissing(str(e)) from e
