"""Application exception hierarchy."""


class LeadScoutError(Exception):
    """Base exception for all leadscout errors."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class RegistryError(LeadScoutError):
    """Error talking to the upstream business registry."""

    def __init__(
        self,
        message: str,
        url: str | None = None,
        status_code: int | None = None,
        details: dict | None = None,
    ):
        super().__init__(message, details)
        self.url = url
        self.status_code = status_code


class TransientError(RegistryError):
    """Retryable failure: 5xx, timeout, connection error or unusable body."""


class RateLimitedError(TransientError):
    """Upstream answered 429 Too Many Requests."""


class PermanentError(RegistryError):
    """Non-retryable client error (4xx other than 429)."""


# Name used by operators and in job logs for permanent 4xx failures
ClientError = PermanentError


class NotFoundError(PermanentError):
    """Requested record does not exist upstream (404)."""


class RecordMappingError(LeadScoutError):
    """A single raw record could not be mapped to a snapshot."""

    def __init__(
        self,
        message: str,
        orgnr: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(message, details)
        self.orgnr = orgnr


class ParentNotFoundError(LeadScoutError):
    """Sub-entity whose parent company is not stored locally."""

    def __init__(self, message: str, parent_orgnr: str | None = None):
        super().__init__(message)
        self.parent_orgnr = parent_orgnr


class JobPersistenceError(LeadScoutError):
    """Sync job state could not be created or updated."""

    def __init__(
        self,
        message: str,
        job_id: int | None = None,
        operation: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(message, details)
        self.job_id = job_id
        self.operation = operation


class ScoringModelError(LeadScoutError):
    """Invalid custom scoring model configuration."""


class SummaryGenerationError(LeadScoutError):
    """Error generating an AI lead summary."""

    def __init__(
        self,
        message: str,
        model: str | None = None,
        raw_output: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(message, details)
        self.model = model
        self.raw_output = raw_output[:500] if raw_output else None
