"""
akv-tui - Azure Key Vault terminal client

Browse, search and edit Key Vault secrets from the terminal, with
token and listing caches that keep network round-trips to a minimum.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("akv-tui")
except PackageNotFoundError:
    __version__ = "0.4.0"

__all__ = [
    "__version__",
]
