from __future__ import annotations

import os
import shutil
import time
import urllib.error
import urllib.request
from pathlib import Path
from typing import Any, Callable, Iterable

from ..variants import ALL_VARIANTS, BackendVariant
from .layout import MESA_VERSION, BundleError, archive_name, archive_url


def _urlopen(req: urllib.request.Request, timeout: float) -> Any:
    return urllib.request.urlopen(req, timeout=timeout)


def _download_file(url: str, dest: Path, *, opener: Callable[..., Any], timeout: float) -> None:
    dest.parent.mkdir(parents=True, exist_ok=True)
    part = dest.with_name(f".{dest.name}.{os.getpid()}-{int(time.time())}.part")
    req = urllib.request.Request(url, headers={"User-Agent": "mesa-loader"})
    try:
        with opener(req, timeout) as resp, part.open("wb") as f:
            shutil.copyfileobj(resp, f)
        os.replace(part, dest)
    finally:
        try:
            part.unlink()
        except FileNotFoundError:
            pass


def download_archives(
    dest_dir: Path,
    *,
    mesa_version: str = MESA_VERSION,
    variants: Iterable[BackendVariant] = ALL_VARIANTS,
    overwrite: bool = False,
    opener: Callable[..., Any] = _urlopen,
    timeout: float = 300.0,
) -> list[Path]:
    """
    Download one ``.7z`` per variant into *dest_dir* and return their paths.

    Archives already on disk are kept unless *overwrite* is set.
    """
    dest_dir = Path(dest_dir)
    out: list[Path] = []
    for v in variants:
        dest = dest_dir / f"{archive_name(v, mesa_version)}.7z"
        out.append(dest)
        if dest.exists() and not overwrite:
            print(f"[bundle] Up to date: {dest.name}")
            continue

        url = archive_url(v, mesa_version)
        print(f"[bundle] Downloading {url}")
        try:
            _download_file(url, dest, opener=opener, timeout=timeout)
        except (urllib.error.URLError, OSError) as e:
            raise BundleError(f"Download failed for {url}: {e}") from e
    return out
