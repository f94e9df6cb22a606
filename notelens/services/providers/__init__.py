"""Analysis providers: the capability protocol and its implementations."""

from notelens.services.providers.base import AnalysisProvider, UnavailableProvider
from notelens.services.providers.local import LocalProvider
from notelens.services.providers.remote import RemoteProvider

__all__ = [
    "AnalysisProvider",
    "LocalProvider",
    "RemoteProvider",
    "UnavailableProvider",
]
