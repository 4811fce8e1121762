from __future__ import annotations

from pathlib import Path

from .errors import VersionDescriptorError

VERSION_DESCRIPTOR_NAME = "version.properties"
VERSION_KEY = "loader.version"


def format_version_descriptor(version: str) -> str:
    v = str(version).strip()
    if not v or any(c in v for c in "\r\n"):
        raise VersionDescriptorError(f"invalid loader version: {version!r}")
    return f"{VERSION_KEY}={v}\n"


def parse_version_descriptor(text: str, *, source: str = "<string>") -> str:
    """
    Return the ``loader.version`` value from a properties-style descriptor.

    Blank lines and ``#``/``!`` comments are ignored, as in Java properties files.
    """
    for raw in text.splitlines():
        line = raw.strip()
        if not line or line.startswith(("#", "!")):
            continue
        if "=" in line:
            k, v = line.split("=", 1)
        elif ":" in line:
            k, v = line.split(":", 1)
        else:
            continue
        if k.strip() == VERSION_KEY:
            value = v.strip()
            if not value:
                raise VersionDescriptorError(f"empty {VERSION_KEY} in {source}")
            return value
    raise VersionDescriptorError(f"{VERSION_KEY} missing from {source}")


def write_version_descriptor(path: Path, version: str) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(format_version_descriptor(version), encoding="utf-8")
    return path


def read_version_descriptor(path: Path) -> str:
    path = Path(path)
    return parse_version_descriptor(path.read_text(encoding="utf-8"), source=str(path))
