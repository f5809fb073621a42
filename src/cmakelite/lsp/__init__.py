"""CMake Lite Language Server Protocol (LSP) implementation.

Provides placeholder completion and resolved-value hover for CMake Lite
settings files.
"""

__all__ = ["server"]
