"""Core module - logging, exceptions, and application infrastructure."""

from leadscout.core.logging import setup_logging, get_logger
from leadscout.core.exceptions import (
    LeadScoutError,
    RegistryError,
    TransientError,
    RateLimitedError,
    PermanentError,
    NotFoundError,
    RecordMappingError,
    ParentNotFoundError,
    JobPersistenceError,
    ScoringModelError,
    SummaryGenerationError,
)

__all__ = [
    "setup_logging",
    "get_logger",
    "LeadScoutError",
    "RegistryError",
    "TransientError",
    "RateLimitedError",
    "PermanentError",
    "NotFoundError",
    "RecordMappingError",
    "ParentNotFoundError",
    "JobPersistenceError",
    "ScoringModelError",
    "SummaryGenerationError",
]
