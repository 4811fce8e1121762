"""
Build-time tooling: download the Mesa release archives, unpack them with 7-Zip
and assemble the bundles the runtime loader reads.

Signing and publishing are left to the release tooling.
"""

from __future__ import annotations

from .assemble import build_bundles, stage_natives
from .extract import extract_archives, find_7zip
from .fetch import download_archives
from .layout import MESA_VERSION, BundleError, archive_name, archive_url

__all__ = [
    "MESA_VERSION",
    "BundleError",
    "archive_name",
    "archive_url",
    "build_bundles",
    "download_archives",
    "extract_archives",
    "find_7zip",
    "stage_natives",
]
