from __future__ import annotations

import os
import shutil
import zipfile
from pathlib import Path
from typing import Iterable, Sequence

from ..variants import Arch, BackendVariant, Driver
from ..version import VERSION_DESCRIPTOR_NAME, format_version_descriptor, write_version_descriptor
from .layout import MESA_VERSION, BundleError, archive_name

# Fixed timestamp so rebuilding from the same inputs yields byte-identical zips.
_ZIP_DATE_TIME = (1980, 1, 1, 0, 0, 0)


def _bundle_entries(
    extracted_root: Path,
    arches: Iterable[Arch],
    mesa_version: str,
) -> list[tuple[str, Path]]:
    """
    (bundle path, source file) pairs for every variant of *arches*, in a stable order.
    """
    entries: list[tuple[str, Path]] = []
    for arch in arches:
        for driver in Driver:
            v = BackendVariant(arch, driver)
            base = Path(extracted_root) / archive_name(v, mesa_version)
            for name in v.library_files:
                src = base / name
                if not src.is_file():
                    raise BundleError(f"Extracted archive is missing {name}: {src}")
                entries.append((f"{v.resource_dir}/{name}", src))
    return entries


def stage_natives(
    extracted_root: Path,
    dest_dir: Path,
    *,
    loader_version: str,
    mesa_version: str = MESA_VERSION,
    arches: Sequence[Arch] = tuple(Arch),
) -> Path:
    """
    Lay out a directory bundle (``<arch>/<driver>/*.dll`` + version descriptor).

    Pointed at ``src/mesa_loader/natives`` this produces the package data the
    loader reads by default.
    """
    dest_dir = Path(dest_dir)
    entries = _bundle_entries(extracted_root, arches, mesa_version)
    # Only wipe what a previous staging run produced; other files (e.g. .gitkeep) stay.
    for arch in Arch:
        shutil.rmtree(dest_dir / arch.value, ignore_errors=True)
    (dest_dir / VERSION_DESCRIPTOR_NAME).unlink(missing_ok=True)
    for relpath, src in entries:
        target = dest_dir / relpath
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(src, target)
    write_version_descriptor(dest_dir / VERSION_DESCRIPTOR_NAME, loader_version)
    return dest_dir


def _write_zip(out_path: Path, entries: list[tuple[str, Path]], loader_version: str) -> Path:
    out_path.parent.mkdir(parents=True, exist_ok=True)
    tmp = out_path.with_name(f".{out_path.name}.{os.getpid()}.tmp")
    try:
        with zipfile.ZipFile(tmp, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            info = zipfile.ZipInfo(VERSION_DESCRIPTOR_NAME, date_time=_ZIP_DATE_TIME)
            info.compress_type = zipfile.ZIP_DEFLATED
            zf.writestr(info, format_version_descriptor(loader_version))
            for relpath, src in entries:
                info = zipfile.ZipInfo(relpath, date_time=_ZIP_DATE_TIME)
                info.compress_type = zipfile.ZIP_DEFLATED
                info.external_attr = 0o644 << 16
                with src.open("rb") as f_in, zf.open(info, "w") as f_out:
                    shutil.copyfileobj(f_in, f_out)
        os.replace(tmp, out_path)
    finally:
        try:
            tmp.unlink()
        except FileNotFoundError:
            pass
    return out_path


def build_bundles(
    extracted_root: Path,
    out_dir: Path,
    *,
    loader_version: str,
    mesa_version: str = MESA_VERSION,
    arches: Sequence[Arch] = tuple(Arch),
) -> list[Path]:
    """
    Write ``mesa-loader-<v>.zip`` with every architecture plus one ``mesa-loader-<v>-<arch>.zip`` each.
    """
    out_dir = Path(out_dir)
    stem = f"mesa-loader-{loader_version}"
    out: list[Path] = []

    all_entries = _bundle_entries(extracted_root, arches, mesa_version)
    out.append(_write_zip(out_dir / f"{stem}.zip", all_entries, loader_version))
    print(f"[bundle] Wrote {out[-1]}")

    for arch in arches:
        entries = [e for e in all_entries if e[0].startswith(f"{arch.value}/")]
        out.append(_write_zip(out_dir / f"{stem}-{arch.value}.zip", entries, loader_version))
        print(f"[bundle] Wrote {out[-1]}")
    return out
