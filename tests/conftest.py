import sys
import zipfile
from pathlib import Path

import pytest

# Make the src-layout package importable for test runs without requiring users
# to set PYTHONPATH or install the package.
_ROOT = Path(__file__).resolve().parents[1]
_SRC = _ROOT / "src"
if str(_SRC) not in sys.path:
    sys.path.insert(0, str(_SRC))

from mesa_loader.variants import ALL_VARIANTS  # noqa: E402


def _fake_dll(variant, name: str) -> bytes:
    return f"MZ fake {name} for {variant.arch.value}/{variant.driver.value}\n".encode("utf-8")


def write_bundle_dir(root: Path, variants=ALL_VARIANTS, *, version: str = "25.2.1") -> Path:
    root.mkdir(parents=True, exist_ok=True)
    (root / "version.properties").write_text(f"loader.version={version}\n", encoding="utf-8")
    for v in variants:
        d = root / v.arch.value / v.driver.value
        d.mkdir(parents=True, exist_ok=True)
        for name in v.library_files:
            (d / name).write_bytes(_fake_dll(v, name))
    return root


def write_bundle_zip(path: Path, variants=ALL_VARIANTS, *, version: str = "25.2.1") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(path, "w") as zf:
        zf.writestr("version.properties", f"loader.version={version}\n")
        for v in variants:
            for name in v.library_files:
                zf.writestr(f"{v.arch.value}/{v.driver.value}/{name}", _fake_dll(v, name))
    return path


@pytest.fixture
def bundle_dir(tmp_path: Path) -> Path:
    return write_bundle_dir(tmp_path / "bundle")


@pytest.fixture
def bundle_zip(tmp_path: Path) -> Path:
    return write_bundle_zip(tmp_path / "mesa-loader.zip")


class FakeRegistrar:
    """Stands in for register_library: records calls, never touches the real linker."""

    def __init__(self):
        self.calls = []

    def __call__(self, directory, files, *, preload, env, sys_platform):
        from mesa_loader.registry import Registration

        self.calls.append({"directory": Path(directory), "files": tuple(files), "preload": preload})
        return Registration(directory=Path(directory))


@pytest.fixture
def registrar() -> FakeRegistrar:
    return FakeRegistrar()
