"""Best-effort company logo lookup."""

from typing import Optional
from urllib.parse import urlparse

import httpx

from leadscout.core.logging import get_logger

logger = get_logger("registry.logo")

CLEARBIT_LOGO_URL = "https://logo.clearbit.com/{domain}"
FAVICON_URL = "https://www.google.com/s2/favicons?domain={domain}&sz=128"


def extract_domain(website: str) -> Optional[str]:
    """Extract the bare host name from a website value.

    Args:
        website: URL or bare host as stored in the registry

    Returns:
        Host without a leading "www.", or None if unparsable
    """
    if not website or not website.strip():
        return None
    url = website.strip()
    if not url.startswith(("http://", "https://")):
        url = f"https://{url}"
    host = urlparse(url).hostname
    if not host:
        return None
    return host[4:] if host.startswith("www.") else host


class LogoLookup:
    """Resolve a logo URL for a company website.

    Tries the Clearbit logo endpoint and falls back to the Google favicon
    service. Used as an optional mapper collaborator.
    """

    def __init__(self, timeout: float = 5.0, transport: Optional[httpx.BaseTransport] = None):
        self._client = httpx.Client(timeout=timeout, follow_redirects=True, transport=transport)

    def __call__(self, website: str, company_name: Optional[str] = None) -> Optional[str]:
        domain = extract_domain(website)
        if not domain:
            return None

        clearbit_url = CLEARBIT_LOGO_URL.format(domain=domain)
        try:
            response = self._client.head(clearbit_url)
            if response.is_success:
                return clearbit_url
        except httpx.HTTPError as e:
            logger.debug("Logo check failed for %s (%s): %s", domain, company_name, e)

        return FAVICON_URL.format(domain=domain)

    def close(self) -> None:
        self._client.close()
