"""Unit tests for registry record mapping."""

import pytest
from dataclasses import replace
from datetime import date, datetime

from leadscout.core.exceptions import RecordMappingError
from leadscout.registry.mapper import (
    derive_status,
    get_county,
    get_industry_vertical,
    is_commercial_org_form,
    map_entity,
    map_roles,
    map_sub_entity,
)
from leadscout.registry.profiles import BRREG, BRREG_FIELDS
from tests.fakes import make_entity, make_role_groups, make_sub_entity


class TestMapEntity:
    """Tests for mapping main listing entities."""

    def test_maps_core_fields(self):
        snapshot = map_entity(make_entity("912345678", name="Nordic Freight AS"))

        assert snapshot.orgnr == "912345678"
        assert snapshot.name == "Nordic Freight AS"
        assert snapshot.status == "active"
        assert snapshot.organization_form_code == "AS"
        assert snapshot.organization_form_name == "Aksjeselskap"
        assert snapshot.industry_code == "49.410"
        assert snapshot.employee_count == 25
        assert snapshot.municipality == "OSLO"
        assert snapshot.municipality_number == "0301"
        assert snapshot.county == "Oslo"
        assert snapshot.postal_code == "0155"
        assert snapshot.address == "Storgata 1"
        assert snapshot.phone == "22 33 44 55"
        assert snapshot.website == "www.example.no"
        assert snapshot.source_updated_at == datetime(2024, 1, 15)
        assert snapshot.raw_json["organisasjonsnummer"] == "912345678"
        assert snapshot.has_roles_data is False

    def test_location_address_fallback(self):
        record = make_entity("1", forretningsadresse=None, beliggenhetsadresse={
            "adresse": ["Havnegata 2", "Bygg B"],
            "kommune": "BERGEN",
            "kommunenummer": "4601",
        })
        snapshot = map_entity(record)
        assert snapshot.address == "Havnegata 2, Bygg B"
        assert snapshot.county == "Vestland"

    def test_phone_falls_back_to_mobile(self):
        snapshot = map_entity(make_entity("1", telefon=None, mobil="900 00 000"))
        assert snapshot.phone == "900 00 000"

    def test_missing_optional_fields(self):
        record = {"organisasjonsnummer": "1", "navn": "Minimal"}
        snapshot = map_entity(record)
        assert snapshot.status == "active"
        assert snapshot.employee_count is None
        assert snapshot.county is None
        assert snapshot.address is None
        assert snapshot.founded_date is None

    def test_parses_founded_date(self):
        snapshot = map_entity(make_entity("1", stiftelsesdato="2010-03-04"))
        assert snapshot.founded_date == date(2010, 3, 4)

    def test_aware_timestamp_converted_to_naive_utc(self):
        record = make_entity("1", registreringsdatoEnhetsregisteret="2024-01-15T02:00:00+02:00")
        assert map_entity(record).source_updated_at == datetime(2024, 1, 15, 0, 0)

    def test_missing_orgnr_raises(self):
        with pytest.raises(RecordMappingError):
            map_entity({"navn": "No Id"})

    def test_missing_name_raises(self):
        with pytest.raises(RecordMappingError) as exc_info:
            map_entity({"organisasjonsnummer": "1"})
        assert exc_info.value.orgnr == "1"

    def test_malformed_employee_count_raises(self):
        with pytest.raises(RecordMappingError):
            map_entity(make_entity("1", antallAnsatte="many"))

    def test_logo_lookup_used_for_website(self):
        calls = []

        def lookup(website, name):
            calls.append((website, name))
            return "https://logo.example/x.png"

        snapshot = map_entity(make_entity("1", name="Logo AS"), logo_lookup=lookup)
        assert snapshot.logo_url == "https://logo.example/x.png"
        assert calls == [("www.example.no", "Logo AS")]

    def test_logo_lookup_failure_does_not_block(self):
        def lookup(website, name):
            raise RuntimeError("logo service down")

        snapshot = map_entity(make_entity("1"), logo_lookup=lookup)
        assert snapshot.logo_url is None
        assert snapshot.orgnr == "1"


class TestStatus:
    """Tests for lifecycle status derivation."""

    @pytest.mark.parametrize("flag", [
        "konkurs",
        "underAvvikling",
        "underTvangsavviklingEllerTvangsopplosning",
    ])
    def test_closure_flag_means_inactive(self, flag):
        assert derive_status({flag: True}) == "inactive"
        assert map_entity(make_entity("1", **{flag: True})).status == "inactive"

    def test_no_flags_means_active(self):
        assert derive_status({"konkurs": False}) == "active"


class TestLookups:
    """Tests for county, vertical and org form lookups."""

    def test_county(self):
        assert get_county("0301") == "Oslo"
        assert get_county("9999") is None
        assert get_county(None) is None

    def test_vertical(self):
        assert get_industry_vertical("52.100") == "Warehousing"
        assert get_industry_vertical("01.110") is None
        assert get_industry_vertical("") is None

    def test_commercial_org_form(self):
        assert is_commercial_org_form("ENK") is True
        assert is_commercial_org_form("FORENING") is False
        assert is_commercial_org_form(None) is False


class TestSubEntityAndRoles:
    """Tests for branch and role mapping."""

    def test_map_sub_entity(self):
        record = map_sub_entity(make_sub_entity("973000001", "912345678"))
        assert record.orgnr == "973000001"
        assert record.parent_orgnr == "912345678"
        assert record.status == "active"
        assert record.address == "Havnegata 2"
        assert record.municipality == "BERGEN"

    def test_map_sub_entity_closed(self):
        record = map_sub_entity(make_sub_entity("2", "1", nedleggelsesdato="2023-01-01"))
        assert record.status == "inactive"

    def test_map_sub_entity_without_parent(self):
        assert map_sub_entity(make_sub_entity("2", None)).parent_orgnr is None

    def test_map_roles(self):
        roles = map_roles(make_role_groups("Daglig leder", "Styreleder"))
        assert [r.role_type for r in roles] == ["Daglig leder", "Styreleder"]
        assert roles[0].role_group == "Styre"
        assert roles[0].person_name == "Kari Nordmann"

    def test_map_roles_skips_resigned(self):
        groups = make_role_groups("Daglig leder")
        groups[0]["roller"][0]["fratraadt"] = True
        assert map_roles(groups) == []


# Registry with its own record vocabulary
OTHER_REGISTRY = replace(
    BRREG,
    country="XX",
    fields=replace(
        BRREG_FIELDS,
        id="regNumber",
        name="legalName",
        closure_flags=("dissolved",),
        parent="parentRegNumber",
        roles="officers",
    ),
    county_map={"11": "North Region"},
)


class TestProfileFields:
    """Tests for mapping with another registry's field names."""

    def test_map_entity_reads_profile_fields(self):
        record = {
            "regNumber": "A-100",
            "legalName": "Harbour Logistics Ltd",
            "forretningsadresse": {"kommunenummer": "1103"},
        }
        snapshot = map_entity(record, profile=OTHER_REGISTRY)

        assert snapshot.orgnr == "A-100"
        assert snapshot.name == "Harbour Logistics Ltd"
        assert snapshot.county == "North Region"
        assert snapshot.status == "active"

    def test_home_registry_keys_are_not_read(self):
        with pytest.raises(RecordMappingError):
            map_entity(make_entity("1"), profile=OTHER_REGISTRY)

    def test_closure_flags_come_from_profile(self):
        assert derive_status({"dissolved": True}, OTHER_REGISTRY) == "inactive"
        assert derive_status({"konkurs": True}, OTHER_REGISTRY) == "active"

    def test_sub_entity_and_roles_use_profile_fields(self):
        branch = map_sub_entity(
            {"regNumber": "B-1", "parentRegNumber": "A-100"}, OTHER_REGISTRY
        )
        assert branch.parent_orgnr == "A-100"

        groups = [{"type": {"beskrivelse": "Board"}, "officers": [
            {"type": {"beskrivelse": "Chair"}, "person": {"fornavn": "Ola"}},
        ]}]
        roles = map_roles(groups, OTHER_REGISTRY)
        assert [(r.role_type, r.person_name) for r in roles] == [("Chair", "Ola")]

if __name__ == "__main__":
    pytest.main([__file__, "-v"])
