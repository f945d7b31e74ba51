"""Identity provider adapters.

This module provides the adapter contract and the Google implementation.
Adapters are collected into a `ProviderRegistry` once at startup.
"""

from authgate.providers.base import (
    Identity,
    IdentityProvider,
    ProviderRegistry,
    ProviderSession,
)
from authgate.providers.google import GoogleProvider, GoogleSession

__all__ = [
    "Identity",
    "IdentityProvider",
    "ProviderRegistry",
    "ProviderSession",
    "GoogleProvider",
    "GoogleSession",
]
