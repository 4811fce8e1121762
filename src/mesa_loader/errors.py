from __future__ import annotations


class LoadError(RuntimeError):
    """
    Base class for every failure the loader reports to its host.

    A host catches this to fall back to its own OpenGL resolution.
    """


class UnsupportedArchitecture(LoadError):
    def __init__(self, machine: str) -> None:
        super().__init__(f"Unsupported architecture for bundled Mesa drivers: {machine!r} (expected x86, x64 or arm64)")
        self.machine = machine


class ResourceMissing(LoadError):
    pass


class ExtractionFailed(LoadError):
    pass


class PermissionDenied(LoadError):
    pass


class RegistrationFailed(LoadError):
    pass


class VersionDescriptorError(ValueError):
    pass
