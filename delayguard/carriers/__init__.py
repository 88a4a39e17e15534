"""
Carrier integrations.

Identification of carriers from free text and tracking numbers, one
adapter per carrier, and the shared OAuth credential cache.
"""

from delayguard.carriers.base import CarrierAdapter
from delayguard.carriers.fedex import FedexAdapter
from delayguard.carriers.identification import identify_carrier
from delayguard.carriers.registry import CarrierRegistry, build_default_registry
from delayguard.carriers.token_cache import (
    CredentialCache,
    DatabaseTokenStore,
    InMemoryTokenStore,
)
from delayguard.carriers.ups import UpsAdapter
from delayguard.carriers.usps import UspsAdapter

__all__ = [
    "CarrierAdapter",
    "CarrierRegistry",
    "CredentialCache",
    "DatabaseTokenStore",
    "FedexAdapter",
    "InMemoryTokenStore",
    "UpsAdapter",
    "UspsAdapter",
    "build_default_registry",
    "identify_carrier",
]
