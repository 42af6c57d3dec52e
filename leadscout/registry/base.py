"""Registry capability interface and portal-agnostic record types."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Optional

from leadscout.registry.profiles import BRREG, RegistryProfile


@dataclass
class EntitySnapshot:
    """Normalized company data from the registry (portal-agnostic format)."""
    orgnr: str
    name: str
    status: str = "active"
    organization_form_code: str | None = None
    organization_form_name: str | None = None
    founded_date: date | None = None
    municipality: str | None = None
    municipality_number: str | None = None
    county: str | None = None
    postal_code: str | None = None
    address: str | None = None
    industry_code: str | None = None
    industry_description: str | None = None
    employee_count: int | None = None
    phone: str | None = None
    website: str | None = None
    email: str | None = None
    logo_url: str | None = None
    source_updated_at: datetime | None = None
    raw_json: dict = field(default_factory=dict)
    # Not delivered by the main listing, maintained by the roles sync
    has_roles_data: bool = False


@dataclass
class SubEntityRecord:
    """Branch record mapped from the registry."""
    orgnr: str
    parent_orgnr: str | None
    name: str
    status: str = "active"
    industry_code: str | None = None
    address: str | None = None
    municipality: str | None = None
    raw_json: dict = field(default_factory=dict)


@dataclass
class RoleRecord:
    """One active role (board member, CEO, ...) of a company."""
    role_type: str
    role_group: str | None = None
    person_name: str | None = None
    birth_date: date | None = None
    raw_json: dict = field(default_factory=dict)


@dataclass
class RegistryPage:
    """One page of raw records from a listing endpoint."""
    records: list[dict[str, Any]]
    has_next: bool


@dataclass
class ChangePage:
    """One page of the change feed."""
    changed_ids: list[str]
    has_next: bool


class RegistryClient(ABC):
    """Capability interface for a national business registry."""

    country: str = "unknown"
    # Record field names the mapper reads
    profile: RegistryProfile = BRREG

    @abstractmethod
    def fetch_page(
        self,
        page: int,
        page_size: int,
        filters: Optional[dict[str, Any]] = None,
    ) -> RegistryPage:
        """Fetch one page of the main entity listing.

        Raises:
            TransientError: After retries are exhausted
            PermanentError: On non-retryable 4xx
        """

    @abstractmethod
    def fetch_sub_entity_page(
        self,
        page: int,
        page_size: int,
        filters: Optional[dict[str, Any]] = None,
    ) -> RegistryPage:
        """Fetch one page of the branch (sub-entity) listing."""

    @abstractmethod
    def fetch_by_id(self, orgnr: str) -> dict[str, Any]:
        """Fetch a single entity.

        Raises:
            NotFoundError: If the registry answers 404
        """

    @abstractmethod
    def fetch_changes_since(self, since: date, page: int, page_size: int) -> ChangePage:
        """Fetch ids of entities changed since a date."""

    @abstractmethod
    def fetch_relations(self, orgnr: str) -> list[dict[str, Any]]:
        """Fetch role groups for an entity."""

    def close(self) -> None:
        """Release network resources."""
