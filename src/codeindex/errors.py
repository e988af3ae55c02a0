"""Exception types for codeindex."""

from typing import Optional


class CodeIndexError(Exception):
    """Base exception for all codeindex errors."""


class ConfigurationError(CodeIndexError):
    """Missing or invalid configuration.

    Raised before any I/O when:
    - a provider's required settings are absent
    - the vector dimension cannot be determined
    - the feature is not configured at all
    """

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        field: Optional[str] = None,
    ):
        super().__init__(message)
        self.provider = provider
        self.field = field


class UnsupportedPlatformError(CodeIndexError):
    """No native driver build exists for this OS/CPU/libc combination."""

    def __init__(self, system: str, machine: str, libc: Optional[str] = None):
        variant = f"{system}-{machine}" + (f"-{libc}" if libc else "")
        super().__init__(f"Unsupported platform for the LanceDB driver: {variant}")
        self.system = system
        self.machine = machine
        self.libc = libc


class DependencyInstallError(CodeIndexError):
    """Provisioning the native driver failed."""

    def __init__(self, message: str, version: str, output: str = ""):
        super().__init__(message)
        self.version = version
        self.output = output


class VectorStoreError(CodeIndexError):
    """Failure reported by the underlying vector database."""


class VectorStoreInitError(VectorStoreError):
    """The vector store could not be opened or created."""


class DriverLoadError(VectorStoreError):
    """The database driver module could not be imported."""


class EmbedderError(CodeIndexError):
    """Error communicating with an embedding provider."""

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code
