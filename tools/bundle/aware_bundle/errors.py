"""Error taxonomy for the bundling pipeline."""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    CONFIGURATION = "configuration"
    ASSEMBLY = "assembly"
    MINIFICATION = "minification"
    ENVIRONMENT = "environment"


class BundleError(RuntimeError):
    """Base error raised by every pipeline stage."""

    kind: ErrorKind = ErrorKind.ASSEMBLY

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"[{self.kind.value}] {self.message}"


class ConfigurationError(BundleError):
    """Missing or invalid inputs: module directories, descriptor, destination."""

    kind = ErrorKind.CONFIGURATION


class AssemblyError(BundleError):
    """Raised while walking, transforming or writing the bundle."""

    kind = ErrorKind.ASSEMBLY


class MinificationError(BundleError):
    """Raised when the minifier rejects the emitted bundle."""

    kind = ErrorKind.MINIFICATION


class EnvironmentLookupError(BundleError):
    """Raised when the process environment cannot supply build metadata."""

    kind = ErrorKind.ENVIRONMENT
