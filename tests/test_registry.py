import os
from pathlib import Path

import pytest

from mesa_loader.errors import RegistrationFailed
from mesa_loader.registry import default_preload, prepend_search_path, register_library


def test_prepend_search_path_moves_dir_to_front(tmp_path: Path):
    env = {"PATH": os.pathsep.join(["/usr/bin", str(tmp_path), "/bin"])}
    prepend_search_path(env, tmp_path)
    assert env["PATH"].split(os.pathsep) == [str(tmp_path), "/usr/bin", "/bin"]

    prepend_search_path(env, tmp_path)
    assert env["PATH"].split(os.pathsep).count(str(tmp_path)) == 1


def test_prepend_search_path_empty_env(tmp_path: Path):
    env = {}
    prepend_search_path(env, tmp_path)
    assert env["PATH"] == str(tmp_path)


def test_register_on_windows_adds_dll_directory_and_preloads(tmp_path: Path):
    added, loaded = [], []
    files = [tmp_path / "opengl32.dll", tmp_path / "dxil.dll"]
    env = {"PATH": "C:\\Windows"}

    reg = register_library(
        tmp_path,
        files,
        preload=True,
        env=env,
        sys_platform="win32",
        add_dll_directory=lambda d: added.append(d) or "cookie",
        load_library=lambda p: loaded.append(p) or object(),
    )

    assert added == [str(tmp_path)]
    assert reg.dll_directory == "cookie"
    # dxil.dll must be mapped before opengl32.dll asks for it.
    assert loaded == [str(files[1]), str(files[0])]
    assert len(reg.preloaded) == 2
    assert env["PATH"].split(os.pathsep)[0] == str(tmp_path)


def test_register_without_preload_only_touches_search_path(tmp_path: Path):
    def _never(_):
        raise AssertionError("must not load libraries")

    env = {}
    reg = register_library(
        tmp_path,
        [tmp_path / "opengl32.dll"],
        preload=False,
        env=env,
        sys_platform="linux",
        add_dll_directory=_never,
        load_library=_never,
    )
    assert reg.preloaded == []
    assert reg.dll_directory is None
    assert env["PATH"] == str(tmp_path)


def test_register_wraps_os_errors(tmp_path: Path):
    def _fail(path):
        raise OSError(f"[WinError 193] not a valid Win32 application: {path}")

    with pytest.raises(RegistrationFailed):
        register_library(
            tmp_path,
            [tmp_path / "opengl32.dll"],
            preload=True,
            env={},
            sys_platform="win32",
            add_dll_directory=lambda d: None,
            load_library=_fail,
        )


def test_default_preload():
    assert default_preload("win32") is True
    assert default_preload("linux") is False


class FakeDllDirectory:
    def __init__(self, path):
        self.path = path
        self.closed = False

    def close(self):
        self.closed = True


def test_failed_preload_rolls_back_registration(tmp_path: Path):
    cookies, unloaded = [], []
    aux = object()
    files = [tmp_path / "opengl32.dll", tmp_path / "dxil.dll"]
    env = {"PATH": "C:\\Windows\\System32"}

    def _add(d):
        cookies.append(FakeDllDirectory(d))
        return cookies[-1]

    def _load(path):
        if path.endswith("opengl32.dll"):
            raise OSError("[WinError 126] The specified module could not be found")
        return aux

    with pytest.raises(RegistrationFailed):
        register_library(
            tmp_path,
            files,
            preload=True,
            env=env,
            sys_platform="win32",
            add_dll_directory=_add,
            load_library=_load,
            unload_library=unloaded.append,
        )

    assert env == {"PATH": "C:\\Windows\\System32"}
    assert cookies[0].closed is True
    assert unloaded == [aux]


def test_failed_registration_removes_path_it_created(tmp_path: Path):
    env = {}

    def _add(_d):
        raise OSError("access denied")

    with pytest.raises(RegistrationFailed):
        register_library(tmp_path, [tmp_path / "opengl32.dll"], preload=False, env=env, sys_platform="win32", add_dll_directory=_add)

    assert "PATH" not in env
