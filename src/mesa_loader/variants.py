from __future__ import annotations

import platform as _platform
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .errors import UnsupportedArchitecture


class Arch(str, Enum):
    X86 = "x86"
    X64 = "x64"
    ARM64 = "arm64"


class Driver(str, Enum):
    """
    Mesa Gallium drivers shipped in the bundle.

    - llvmpipe: software rasterizer, works everywhere.
    - d3d12: hardware accelerated through DirectX 12.
    - zink: hardware accelerated through the Vulkan translation layer.
    """

    LLVMPIPE = "llvmpipe"
    D3D12 = "d3d12"
    ZINK = "zink"

    @classmethod
    def parse(cls, value: "str | Driver") -> "Driver":
        if isinstance(value, Driver):
            return value
        v = str(value).strip().lower()
        for d in cls:
            if d.value == v:
                return d
        raise ValueError(f"Unknown driver: {value!r} (expected one of: llvmpipe, d3d12, zink)")


PRIMARY_LIBRARY = "opengl32.dll"
DXIL_LIBRARY = "dxil.dll"

# Hardware paths first; llvmpipe is the fallback that always renders.
DEFAULT_DRIVER_ORDER: tuple[Driver, ...] = (Driver.D3D12, Driver.ZINK, Driver.LLVMPIPE)

_MACHINE_ALIASES = {
    "x86": Arch.X86,
    "i386": Arch.X86,
    "i486": Arch.X86,
    "i586": Arch.X86,
    "i686": Arch.X86,
    "x86_64": Arch.X64,
    "amd64": Arch.X64,
    "x64": Arch.X64,
    "arm64": Arch.ARM64,
    "aarch64": Arch.ARM64,
    "armv8": Arch.ARM64,
    "armv8l": Arch.ARM64,
}


@dataclass(frozen=True)
class BackendVariant:
    arch: Arch
    driver: Driver

    @property
    def resource_dir(self) -> str:
        """Path segment of this variant inside a bundle, e.g. ``x64/d3d12``."""
        return f"{self.arch.value}/{self.driver.value}"

    @property
    def library_files(self) -> tuple[str, ...]:
        return library_files(self.driver)

    def __str__(self) -> str:
        return f"{self.arch.value}/{self.driver.value}"


def library_files(driver: Driver) -> tuple[str, ...]:
    # The d3d12 driver compiles shaders through dxil.dll, which must sit beside opengl32.dll.
    if driver is Driver.D3D12:
        return (PRIMARY_LIBRARY, DXIL_LIBRARY)
    return (PRIMARY_LIBRARY,)


ALL_VARIANTS: tuple[BackendVariant, ...] = tuple(BackendVariant(a, d) for a in Arch for d in Driver)


def arch_from_machine(machine: str) -> Arch:
    """
    Map a ``platform.machine()``-style string to one of the bundled architectures.
    """
    key = str(machine or "").strip().lower()
    arch = _MACHINE_ALIASES.get(key)
    if arch is None:
        raise UnsupportedArchitecture(str(machine))
    return arch


def detect_arch(machine: Optional[str] = None) -> Arch:
    if machine is None:
        machine = _platform.machine()
    return arch_from_machine(machine)


def driver_candidates(preferred: "Driver | str | None") -> tuple[Driver, ...]:
    """
    Drivers to try, in order. An explicit preference is never substituted.
    """
    if preferred is None:
        return DEFAULT_DRIVER_ORDER
    return (Driver.parse(preferred),)
