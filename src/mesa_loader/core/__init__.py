"""
Shared helpers for the loader runtime.

Nothing here may import ctypes or touch the filesystem at import time: these
modules run from a `.pth` hook during interpreter startup.
"""
