"""Dependency injection container."""

from dataclasses import dataclass, field
from typing import Callable, Optional

from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from leadscout.core.logging import get_logger
from leadscout.db.session import create_db_engine, create_session_factory
from leadscout.db.stores import EntityStore, JobStore
from leadscout.orchestrator import SyncOrchestrator, SyncProgress
from leadscout.registry.base import RegistryClient
from leadscout.registry.client import HttpRegistryClient
from leadscout.registry.logo import LogoLookup
from leadscout.registry.profiles import get_profile
from leadscout.services.summary_service import SummaryService
from leadscout.settings import Settings, settings as default_settings

logger = get_logger("core.container")


@dataclass
class ApplicationContainer:
    """Container for application dependencies.

    Builds the engine, stores, registry client and optional services
    lazily from one Settings instance.
    """

    settings: Settings = field(default_factory=lambda: default_settings)
    _engine: Optional[Engine] = field(default=None, repr=False)
    _session_factory: Optional[sessionmaker] = field(default=None, repr=False)
    _registry: Optional[RegistryClient] = field(default=None, repr=False)
    _logo_lookup: Optional[LogoLookup] = field(default=None, repr=False)
    _summary_service: Optional[SummaryService] = field(default=None, repr=False)

    @classmethod
    def create(cls, settings: Optional[Settings] = None) -> "ApplicationContainer":
        """Create a new application container.

        Args:
            settings: Optional settings override

        Returns:
            Configured ApplicationContainer instance
        """
        container = cls(settings=settings or default_settings)
        logger.debug("Created ApplicationContainer")
        return container

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            self._engine = create_db_engine(self.settings)
        return self._engine

    @property
    def session_factory(self) -> sessionmaker:
        if self._session_factory is None:
            self._session_factory = create_session_factory(self.engine)
        return self._session_factory

    @property
    def registry(self) -> RegistryClient:
        """Get registry client for the configured country (lazy initialization)."""
        if self._registry is None:
            profile = get_profile(self.settings.registry_country)
            self._registry = HttpRegistryClient.from_settings(profile, self.settings)
        return self._registry

    @property
    def logo_lookup(self) -> Optional[LogoLookup]:
        if not self.settings.logo_lookup_enabled:
            return None
        if self._logo_lookup is None:
            self._logo_lookup = LogoLookup()
        return self._logo_lookup

    @property
    def summary_service(self) -> Optional[SummaryService]:
        if not self.settings.ai_summary_enabled:
            return None
        if self._summary_service is None:
            self._summary_service = SummaryService(settings=self.settings)
        return self._summary_service

    def create_orchestrator(
        self,
        on_progress: Optional[Callable[[SyncProgress], None]] = None,
    ) -> SyncOrchestrator:
        """Wire a SyncOrchestrator from the container's collaborators."""
        return SyncOrchestrator(
            registry=self.registry,
            jobs=JobStore(self.session_factory),
            entities=EntityStore(self.session_factory),
            settings=self.settings,
            summary_service=self.summary_service,
            logo_lookup=self.logo_lookup,
            on_progress=on_progress,
        )

    def close(self) -> None:
        """Clean up container resources."""
        if self._registry is not None:
            self._registry.close()
            self._registry = None
        if self._logo_lookup is not None:
            self._logo_lookup.close()
            self._logo_lookup = None
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None
            self._session_factory = None
        logger.debug("ApplicationContainer closed")
