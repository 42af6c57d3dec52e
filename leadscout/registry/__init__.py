"""Registry access - capability interface, HTTP client and record mapping."""

from leadscout.registry.base import (
    ChangePage,
    EntitySnapshot,
    RegistryClient,
    RegistryPage,
    RoleRecord,
    SubEntityRecord,
)
from leadscout.registry.client import HttpRegistryClient
from leadscout.registry.profiles import BRREG, RegistryProfile, get_profile

__all__ = [
    "ChangePage",
    "EntitySnapshot",
    "RegistryClient",
    "RegistryPage",
    "RoleRecord",
    "SubEntityRecord",
    "HttpRegistryClient",
    "BRREG",
    "RegistryProfile",
    "get_profile",
]
