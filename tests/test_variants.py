import pytest

from mesa_loader.errors import UnsupportedArchitecture
from mesa_loader.variants import (
    ALL_VARIANTS,
    DEFAULT_DRIVER_ORDER,
    Arch,
    BackendVariant,
    Driver,
    arch_from_machine,
    driver_candidates,
    library_files,
)


@pytest.mark.parametrize(
    "machine,expected",
    [
        ("AMD64", Arch.X64),
        ("x86_64", Arch.X64),
        ("x86", Arch.X86),
        ("i686", Arch.X86),
        ("ARM64", Arch.ARM64),
        ("aarch64", Arch.ARM64),
    ],
)
def test_arch_from_machine_aliases(machine, expected):
    assert arch_from_machine(machine) is expected


@pytest.mark.parametrize("machine", ["", "riscv64", "ppc64le", "armv7l", "mips"])
def test_arch_from_machine_rejects_unknown(machine):
    with pytest.raises(UnsupportedArchitecture) as ei:
        arch_from_machine(machine)
    assert ei.value.machine == machine


def test_all_variants_is_the_full_cross_product():
    assert len(ALL_VARIANTS) == 9
    assert len(set(ALL_VARIANTS)) == 9
    assert BackendVariant(Arch.ARM64, Driver.ZINK) in ALL_VARIANTS


def test_only_d3d12_carries_dxil():
    assert library_files(Driver.D3D12) == ("opengl32.dll", "dxil.dll")
    assert library_files(Driver.ZINK) == ("opengl32.dll",)
    assert library_files(Driver.LLVMPIPE) == ("opengl32.dll",)


def test_resource_dir_names_both_identifiers():
    v = BackendVariant(Arch.X86, Driver.LLVMPIPE)
    assert v.resource_dir == "x86/llvmpipe"
    assert str(v) == "x86/llvmpipe"


def test_default_order_prefers_hardware():
    assert DEFAULT_DRIVER_ORDER == (Driver.D3D12, Driver.ZINK, Driver.LLVMPIPE)
    assert driver_candidates(None) == DEFAULT_DRIVER_ORDER


def test_explicit_preference_is_not_substituted():
    assert driver_candidates("  Zink ") == (Driver.ZINK,)
    assert driver_candidates(Driver.LLVMPIPE) == (Driver.LLVMPIPE,)


def test_driver_parse_rejects_unknown():
    with pytest.raises(ValueError):
        Driver.parse("swrast")
