from pathlib import Path

import pytest

from mesa_loader.errors import VersionDescriptorError
from mesa_loader.version import (
    format_version_descriptor,
    parse_version_descriptor,
    read_version_descriptor,
    write_version_descriptor,
)


def test_version_descriptor_round_trip(tmp_path: Path):
    path = write_version_descriptor(tmp_path / "nested" / "version.properties", "1.2.3")
    assert path.read_text(encoding="utf-8") == "loader.version=1.2.3\n"
    assert read_version_descriptor(path) == "1.2.3"


def test_parse_ignores_comments_and_other_keys():
    text = "# generated\n! also a comment\n\nother.key=x\nloader.version = 25.2.1-SNAPSHOT \n"
    assert parse_version_descriptor(text) == "25.2.1-SNAPSHOT"


def test_parse_missing_key():
    with pytest.raises(VersionDescriptorError):
        parse_version_descriptor("other.key=1\n")


def test_parse_empty_value():
    with pytest.raises(VersionDescriptorError):
        parse_version_descriptor("loader.version=\n")


@pytest.mark.parametrize("bad", ["", "   ", "1.0\nloader.version=2.0"])
def test_format_rejects_unwritable_versions(bad):
    with pytest.raises(VersionDescriptorError):
        format_version_descriptor(bad)
