from __future__ import annotations

import os
import shutil
import subprocess
import sys
from pathlib import Path
from typing import Any, Callable, Iterable, Mapping, Optional

from ..variants import ALL_VARIANTS, BackendVariant
from .layout import MESA_VERSION, BundleError, archive_name


def find_7zip(
    *,
    sys_platform: str = sys.platform,
    env: Mapping[str, str] = os.environ,
    which: Callable[[str], Optional[str]] = shutil.which,
    is_executable: Callable[[Path], bool] = lambda p: p.is_file() and os.access(p, os.X_OK),
) -> Path:
    """
    Locate a 7-Zip command line binary.

    Windows: ``7z.exe`` on PATH, then the 7-Zip and 7-Zip-Zstandard install dirs.
    Elsewhere: ``7zz`` (upstream 7-Zip) before ``7z`` (p7zip).
    """
    if sys_platform.startswith("win"):
        p = which("7z.exe")
        if p:
            return Path(p)
        program_files = env.get("ProgramFiles") or "C:\\Program Files"
        for sub in ("7-Zip", "7-Zip-Zstandard"):
            candidate = Path(program_files) / sub / "7z.exe"
            if is_executable(candidate):
                return candidate
    else:
        for name in ("7zz", "7z"):
            p = which(name)
            if p:
                return Path(p)

    raise BundleError("7z not found in PATH")


def extract_archives(
    archive_dir: Path,
    *,
    mesa_version: str = MESA_VERSION,
    variants: Iterable[BackendVariant] = ALL_VARIANTS,
    seven_zip: Optional[Path] = None,
    run: Callable[..., Any] = subprocess.run,
) -> list[Path]:
    """
    Unpack every variant archive into ``<archive_dir>/<archive name>/``.

    Output dirs are wiped first so the layout only ever reflects the archive.
    """
    archive_dir = Path(archive_dir)
    exe = Path(seven_zip) if seven_zip is not None else find_7zip()

    out: list[Path] = []
    for v in variants:
        name = archive_name(v, mesa_version)
        archive = archive_dir / f"{name}.7z"
        output = archive_dir / name
        if not archive.exists():
            raise BundleError(f"Archive not downloaded: {archive}")

        shutil.rmtree(output, ignore_errors=True)
        print(f"[bundle] Extracting {archive.name}")
        proc = run(
            [str(exe), "x", str(archive.resolve()), f"-o{output.resolve()}", "-y"],
            stdout=subprocess.DEVNULL,
            check=False,
        )
        if proc.returncode != 0:
            raise BundleError(f"7z exited with code {proc.returncode} for {archive}")
        out.append(output)
    return out
