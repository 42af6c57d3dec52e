"""Unit tests for the registry HTTP client, profiles and logo lookup."""

import pytest
from datetime import date

import httpx

from leadscout.core.exceptions import (
    NotFoundError,
    PermanentError,
    RateLimitedError,
    TransientError,
)
from leadscout.registry.client import HttpRegistryClient
from leadscout.registry.logo import LogoLookup, extract_domain
from leadscout.registry.profiles import BRREG, get_profile


class ScriptedTransport:
    """Returns queued responses and records the requests it saw."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return response


def make_client(transport, retries=3, base_delay=1.0):
    sleeps = []
    client = HttpRegistryClient(
        profile=BRREG,
        user_agent="leadscout-tests/1.0",
        retries=retries,
        base_delay=base_delay,
        transport=httpx.MockTransport(transport),
        sleep=sleeps.append,
    )
    return client, sleeps


def listing(records, has_next=False):
    body = {"_embedded": {"enheter": records}, "page": {"size": 2}}
    if has_next:
        body["_links"] = {"next": {"href": "https://data.brreg.no/...&page=1"}}
    return httpx.Response(200, json=body)


class TestRetryBehaviour:
    """Tests for transient/permanent failure classification and backoff."""

    def test_retries_server_errors_with_exponential_backoff(self):
        transport = ScriptedTransport(
            httpx.Response(500), httpx.Response(500), listing([{"organisasjonsnummer": "1"}])
        )
        client, sleeps = make_client(transport)

        page = client.fetch_page(0, 2)

        assert len(page.records) == 1
        assert len(transport.requests) == 3
        assert sleeps == [1.0, 2.0]

    def test_not_found_is_not_retried(self):
        transport = ScriptedTransport(httpx.Response(404))
        client, sleeps = make_client(transport)

        with pytest.raises(NotFoundError) as exc_info:
            client.fetch_by_id("999999999")

        assert exc_info.value.status_code == 404
        assert len(transport.requests) == 1
        assert sleeps == []

    def test_client_error_is_permanent(self):
        transport = ScriptedTransport(httpx.Response(400))
        client, sleeps = make_client(transport)

        with pytest.raises(PermanentError):
            client.fetch_page(0, 2)
        assert len(transport.requests) == 1

    def test_rate_limit_retried_until_exhausted(self):
        transport = ScriptedTransport(httpx.Response(429))
        client, sleeps = make_client(transport, retries=2, base_delay=0.5)

        with pytest.raises(RateLimitedError):
            client.fetch_page(0, 2)

        assert len(transport.requests) == 3
        assert sleeps == [0.5, 1.0]

    def test_invalid_json_is_transient(self):
        transport = ScriptedTransport(httpx.Response(200, text="<html>maintenance</html>"))
        client, _ = make_client(transport, retries=1)

        with pytest.raises(TransientError):
            client.fetch_page(0, 2)
        assert len(transport.requests) == 2

    def test_timeout_is_transient(self):
        transport = ScriptedTransport(
            httpx.ConnectTimeout("timed out"),
            httpx.Response(200, json={"organisasjonsnummer": "1", "navn": "X"}),
        )
        client, sleeps = make_client(transport)

        assert client.fetch_by_id("1")["navn"] == "X"
        assert len(sleeps) == 1

    def test_non_object_entity_body_is_retried(self):
        transport = ScriptedTransport(
            httpx.Response(200, json=[]),
            httpx.Response(200, json={"organisasjonsnummer": "1", "navn": "X"}),
        )
        client, sleeps = make_client(transport)

        assert client.fetch_by_id("1")["navn"] == "X"
        assert len(transport.requests) == 2
        assert sleeps == [1.0]

    def test_non_object_entity_body_fails_after_retries(self):
        transport = ScriptedTransport(httpx.Response(200, json="ok"))
        client, sleeps = make_client(transport, retries=2)

        with pytest.raises(TransientError):
            client.fetch_by_id("1")
        assert len(transport.requests) == 3
        assert len(sleeps) == 2

    def test_malformed_listing_is_retried_not_empty(self):
        transport = ScriptedTransport(
            httpx.Response(200, json={"_embedded": {"enheter": {"error": "partial"}}}),
            httpx.Response(200, json=["truncated"]),
            listing([{"organisasjonsnummer": "1"}]),
        )
        client, sleeps = make_client(transport)

        page = client.fetch_page(0, 2)

        assert page.records == [{"organisasjonsnummer": "1"}]
        assert len(transport.requests) == 3
        assert sleeps == [1.0, 2.0]

    def test_malformed_change_feed_is_transient(self):
        body = {"_embedded": {"oppdaterteEnheter": "unavailable"}}
        transport = ScriptedTransport(httpx.Response(200, json=body))
        client, _ = make_client(transport, retries=1)

        with pytest.raises(TransientError):
            client.fetch_changes_since(date(2025, 5, 31), 0, 100)
        assert len(transport.requests) == 2


class TestEndpoints:
    """Tests for request shape and response parsing."""

    def test_sends_identifying_headers(self):
        transport = ScriptedTransport(listing([]))
        client, _ = make_client(transport)

        client.fetch_page(0, 2)

        request = transport.requests[0]
        assert request.headers["User-Agent"] == "leadscout-tests/1.0"
        assert request.headers["Accept"] == "application/json"
        assert request.url.path == "/enhetsregisteret/api/enheter"
        assert request.url.params["page"] == "0"
        assert request.url.params["size"] == "2"

    def test_filters_passed_as_params(self):
        transport = ScriptedTransport(listing([]))
        client, _ = make_client(transport)

        client.fetch_page(0, 2, {"naeringskode": "49.410", "kommunenummer": None})

        params = transport.requests[0].url.params
        assert params["naeringskode"] == "49.410"
        assert "kommunenummer" not in params

    def test_next_link_sets_has_next(self):
        transport = ScriptedTransport(listing([{"organisasjonsnummer": "1"}], has_next=True))
        client, _ = make_client(transport)
        assert client.fetch_page(0, 2).has_next is True

    def test_missing_embedded_is_empty_page(self):
        transport = ScriptedTransport(httpx.Response(200, json={"page": {"totalElements": 0}}))
        client, _ = make_client(transport)

        page = client.fetch_page(5, 2)
        assert page.records == []
        assert page.has_next is False

    def test_sub_entity_listing(self):
        body = {"_embedded": {"underenheter": [{"organisasjonsnummer": "2"}]}}
        transport = ScriptedTransport(httpx.Response(200, json=body))
        client, _ = make_client(transport)

        page = client.fetch_sub_entity_page(0, 2)
        assert page.records == [{"organisasjonsnummer": "2"}]
        assert transport.requests[0].url.path == "/enhetsregisteret/api/underenheter"

    def test_changes_since(self):
        body = {
            "_embedded": {"oppdaterteEnheter": [
                {"organisasjonsnummer": "1", "endringstype": "Endring"},
                {"organisasjonsnummer": "2", "endringstype": "Ny"},
                {"endringstype": "Ukjent"},
            ]},
        }
        transport = ScriptedTransport(httpx.Response(200, json=body))
        client, _ = make_client(transport)

        changes = client.fetch_changes_since(date(2025, 5, 31), 0, 100)

        assert changes.changed_ids == ["1", "2"]
        assert changes.has_next is False
        assert transport.requests[0].url.params["dato"] == "2025-05-31"

    def test_relations(self):
        body = {"rollegrupper": [{"type": {"beskrivelse": "Styre"}, "roller": []}]}
        transport = ScriptedTransport(httpx.Response(200, json=body))
        client, _ = make_client(transport)

        groups = client.fetch_relations("912345678")
        assert groups[0]["type"]["beskrivelse"] == "Styre"
        assert transport.requests[0].url.path == "/enhetsregisteret/api/enheter/912345678/roller"


class TestProfiles:
    """Tests for registry profile lookup."""

    def test_lookup_is_case_insensitive(self):
        assert get_profile("no") is BRREG

    def test_unknown_country(self):
        with pytest.raises(ValueError):
            get_profile("XX")


class TestLogoLookup:
    """Tests for best-effort logo resolution."""

    def test_extract_domain(self):
        assert extract_domain("www.example.no") == "example.no"
        assert extract_domain("https://shop.example.no/path") == "shop.example.no"
        assert extract_domain("  ") is None

    def test_clearbit_hit(self):
        lookup = LogoLookup(transport=httpx.MockTransport(lambda request: httpx.Response(200)))
        assert lookup("www.example.no") == "https://logo.clearbit.com/example.no"

    def test_favicon_fallback(self):
        lookup = LogoLookup(transport=httpx.MockTransport(lambda request: httpx.Response(404)))
        assert lookup("example.no").startswith("https://www.google.com/s2/favicons?domain=example.no")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
