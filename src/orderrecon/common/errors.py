"""Exception types raised by the Clean-Master build and its utilities."""
from __future__ import annotations

from typing import Iterable, List


class ConfigurationError(ValueError):
    """Raised when a raw store, sheet, or configuration value is unusable."""


class MissingColumnError(ConfigurationError):
    """A raw store lacks a required column (or every accepted synonym of it)."""

    def __init__(self, sheet_name: str, missing: Iterable[str], expected: Iterable[str] | None = None) -> None:
        self.sheet_name = sheet_name
        self.missing: List[str] = list(missing)
        self.expected: List[str] = list(expected or [])
        message = f'{sheet_name} missing required column(s): {", ".join(self.missing)}'
        if self.expected:
            quoted = ", ".join(f'"{name}"' for name in self.expected)
            message += f". Expected one of: {quoted}."
        super().__init__(message)


class BuildLockTimeout(RuntimeError):
    """Another invocation holds the build lock."""
