from pathlib import Path

import pytest

from conftest import write_bundle_dir
from mesa_loader.errors import ResourceMissing
from mesa_loader.resources import DirectoryBundle, ZipBundle, bundle_version, default_bundle_path, open_bundle


def test_open_bundle_directory(bundle_dir: Path):
    b = open_bundle(bundle_dir)
    assert isinstance(b, DirectoryBundle)
    assert b.has("x64/d3d12/dxil.dll")
    assert not b.has("x64/zink/dxil.dll")
    assert bundle_version(b) == "25.2.1"


def test_open_bundle_zip(bundle_zip: Path):
    b = open_bundle(bundle_zip)
    assert isinstance(b, ZipBundle)
    assert b.has("arm64/zink/opengl32.dll")
    with b.open("arm64/zink/opengl32.dll") as f:
        assert b"arm64/zink" in f.read()
    assert bundle_version(b) == "25.2.1"


def test_open_bundle_missing(tmp_path: Path):
    with pytest.raises(ResourceMissing):
        open_bundle(tmp_path / "nope")


def test_open_bundle_rejects_non_zip_file(tmp_path: Path):
    p = tmp_path / "bundle.zip"
    p.write_bytes(b"not a zip")
    with pytest.raises(ResourceMissing):
        open_bundle(p)


def test_bundle_paths_cannot_escape(bundle_dir: Path):
    b = open_bundle(bundle_dir)
    with pytest.raises(ResourceMissing):
        b.has("../outside.dll")


def test_bundle_without_descriptor_is_a_packaging_defect(tmp_path: Path):
    root = write_bundle_dir(tmp_path / "b")
    (root / "version.properties").unlink()
    with pytest.raises(ResourceMissing):
        bundle_version(open_bundle(root))


def test_default_bundle_path_env(tmp_path: Path):
    assert default_bundle_path({"MESA_LOADER_BUNDLE": str(tmp_path)}) == tmp_path
    assert default_bundle_path({}).name == "natives"
