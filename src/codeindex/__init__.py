"""codeindex - semantic code search backed by an embedded vector store."""

from codeindex.config import CodeIndexConfig
from codeindex.errors import CodeIndexError, ConfigurationError
from codeindex.factory import CodeIndexServiceFactory, CodeIndexServices

__version__ = "0.1.0"

__all__ = [
    "CodeIndexConfig",
    "CodeIndexError",
    "CodeIndexServiceFactory",
    "CodeIndexServices",
    "ConfigurationError",
    "__version__",
]
