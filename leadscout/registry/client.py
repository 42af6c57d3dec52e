"""Generic HTTP client for paginated business registry APIs.

One implementation of the RegistryClient capability, parameterized by a
RegistryProfile. Failures are classified into transient (retried with
exponential backoff) and permanent (raised immediately):

- 5xx, 429, timeouts, connection errors, non-JSON bodies -> TransientError
- 404 -> NotFoundError
- other 4xx -> PermanentError
"""

import time
from datetime import date
from typing import Any, Callable, Dict, List, Optional

import httpx

from leadscout.core.exceptions import (
    NotFoundError,
    PermanentError,
    RateLimitedError,
    TransientError,
)
from leadscout.core.logging import get_logger
from leadscout.registry.base import ChangePage, RegistryClient, RegistryPage
from leadscout.registry.profiles import RegistryProfile
from leadscout.registry.retry import registry_retrying
from leadscout.settings import Settings

logger = get_logger("registry.client")

# Default timeout for API requests
DEFAULT_TIMEOUT = 30.0


def _dig(data: Any, path: str) -> Any:
    """Resolve a dotted key path in nested dicts, None if any level is missing."""
    current = data
    for key in path.split("."):
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current


class HttpRegistryClient(RegistryClient):
    """Resilient client for one registry profile."""

    def __init__(
        self,
        profile: RegistryProfile,
        user_agent: str,
        base_url: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
        retries: int = 3,
        base_delay: float = 1.0,
        transport: Optional[httpx.BaseTransport] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize API client.

        Args:
            profile: Endpoints and response keys of the registry
            user_agent: Identifying User-Agent sent with every request
            base_url: Optional override for the profile's base URL
            timeout: Request timeout in seconds
            retries: Retries for transient failures
            base_delay: Backoff base delay in seconds
            transport: Optional httpx transport (tests use MockTransport)
            sleep: Sleep function used between retries
        """
        self.profile = profile
        self.country = profile.country
        self._retrying = registry_retrying(retries=retries, base_delay=base_delay, sleep=sleep)
        self._client = httpx.Client(
            base_url=base_url or profile.base_url,
            timeout=timeout,
            headers={
                "User-Agent": user_agent,
                "Accept": "application/json",
            },
            follow_redirects=True,
            transport=transport,
        )

    @classmethod
    def from_settings(
        cls,
        profile: RegistryProfile,
        settings: Settings,
        **kwargs: Any,
    ) -> "HttpRegistryClient":
        """Create a client from application settings."""
        return cls(
            profile=profile,
            user_agent=settings.registry_user_agent,
            base_url=settings.registry_base_url,
            timeout=settings.registry_timeout_seconds,
            retries=settings.registry_retry_count,
            base_delay=settings.registry_retry_base_delay,
            **kwargs,
        )

    def __enter__(self) -> "HttpRegistryClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    # ------------------------------------------------------------------
    # Capability interface
    # ------------------------------------------------------------------

    def fetch_page(
        self,
        page: int,
        page_size: int,
        filters: Optional[Dict[str, Any]] = None,
    ) -> RegistryPage:
        return self._fetch_listing(
            self.profile.list_path, self.profile.records_key, page, page_size, filters
        )

    def fetch_sub_entity_page(
        self,
        page: int,
        page_size: int,
        filters: Optional[Dict[str, Any]] = None,
    ) -> RegistryPage:
        return self._fetch_listing(
            self.profile.sub_entity_list_path,
            self.profile.sub_records_key,
            page,
            page_size,
            filters,
        )

    def fetch_by_id(self, orgnr: str) -> Dict[str, Any]:
        return self._get_json(self.profile.single_path.format(orgnr=orgnr))

    def fetch_changes_since(self, since: date, page: int, page_size: int) -> ChangePage:
        params = {
            self.profile.since_param: since.isoformat(),
            "page": page,
            "size": page_size,
        }
        data = self._get_json(
            self.profile.changes_path, params=params, list_key=self.profile.changes_key
        )
        items = _dig(data, self.profile.changes_key) or []

        changed_ids = []
        for item in items:
            orgnr = item.get(self.profile.change_id_field) if isinstance(item, dict) else None
            if orgnr:
                changed_ids.append(str(orgnr))

        return ChangePage(
            changed_ids=changed_ids,
            has_next=bool(_dig(data, self.profile.next_link_key)),
        )

    def fetch_relations(self, orgnr: str) -> List[Dict[str, Any]]:
        data = self._get_json(
            self.profile.relations_path.format(orgnr=orgnr),
            list_key=self.profile.relations_key,
        )
        groups = _dig(data, self.profile.relations_key) or []
        return [group for group in groups if isinstance(group, dict)]

    # ------------------------------------------------------------------
    # HTTP plumbing
    # ------------------------------------------------------------------

    def _fetch_listing(
        self,
        path: str,
        records_key: str,
        page: int,
        page_size: int,
        filters: Optional[Dict[str, Any]],
    ) -> RegistryPage:
        params: Dict[str, Any] = {"page": page, "size": page_size}
        if filters:
            params.update({k: v for k, v in filters.items() if v is not None})

        data = self._get_json(path, params=params, list_key=records_key)
        records = _dig(data, records_key) or []

        logger.debug("%s page %d returned %d records", path, page, len(records))
        return RegistryPage(
            records=[r for r in records if isinstance(r, dict)],
            has_next=bool(_dig(data, self.profile.next_link_key)),
        )

    def _get_json(
        self,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        list_key: Optional[str] = None,
    ) -> Dict[str, Any]:
        """GET a path and return the decoded JSON object, retrying transient failures.

        A body of the wrong shape counts as transient, so it is retried like a 5xx
        instead of being read as an empty page.

        Args:
            path: Path relative to the base URL
            params: Optional query parameters
            list_key: Dotted path that must hold a list when present
        """
        return self._retrying(self._request, path, params, list_key)

    def _request(
        self,
        path: str,
        params: Optional[Dict[str, Any]],
        list_key: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Perform a single GET and classify the outcome."""
        try:
            response = self._client.get(path, params=params)
        except httpx.TimeoutException as e:
            raise TransientError(f"Timeout calling {path}: {e}", url=path) from e
        except httpx.TransportError as e:
            raise TransientError(f"Network error calling {path}: {e}", url=path) from e

        status = response.status_code
        if status == 429:
            raise RateLimitedError(f"Rate limited on {path}", url=path, status_code=status)
        if status >= 500:
            raise TransientError(
                f"HTTP {status} from {path}", url=path, status_code=status
            )
        if status == 404:
            raise NotFoundError(f"Not found: {path}", url=path, status_code=status)
        if not response.is_success:
            raise PermanentError(
                f"HTTP {status} from {path}", url=path, status_code=status
            )

        try:
            data = response.json()
        except ValueError as e:
            raise TransientError(
                f"Invalid JSON body from {path}", url=path, status_code=status
            ) from e

        if not isinstance(data, dict):
            raise TransientError(
                f"Expected JSON object from {path}, got {type(data).__name__}",
                url=path,
                status_code=status,
            )
        if list_key is not None:
            items = _dig(data, list_key)
            if items is not None and not isinstance(items, list):
                raise TransientError(
                    f"Expected list at '{list_key}' from {path}, got {type(items).__name__}",
                    url=path,
                    status_code=status,
                )
        return data
