"""Per-country registry profiles.

Registries that expose the same paginated REST shape differ only in paths,
JSON keys and a few lookup tables, so each country is described as data and
served by the one generic HTTP client and the one mapper.
"""

from dataclasses import dataclass, field
from typing import Dict, Tuple


@dataclass(frozen=True)
class RecordFields:
    """Field names inside raw entity, branch and role records."""

    id: str
    name: str
    org_form: str  # object with code/description
    industry: str  # object with code/description
    employees: str
    founded: str
    registered: str
    business_address: str
    location_address: str
    phone: str
    mobile: str
    website: str
    email: str
    closure_flags: Tuple[str, ...]
    parent: str
    closed_date: str
    # Nested keys
    code: str = "kode"
    description: str = "beskrivelse"
    address_lines: str = "adresse"
    postal_code: str = "postnummer"
    municipality: str = "kommune"
    municipality_number: str = "kommunenummer"
    # Role groups
    group_type: str = "type"
    roles: str = "roller"
    role_type: str = "type"
    resigned: str = "fratraadt"
    person: str = "person"
    person_name: str = "navn"
    first_name: str = "fornavn"
    middle_name: str = "mellomnavn"
    last_name: str = "etternavn"
    birth_date: str = "fodselsdato"


@dataclass(frozen=True)
class RegistryProfile:
    """Endpoints, response keys and record fields of one registry API."""

    country: str
    name: str
    base_url: str
    list_path: str
    sub_entity_list_path: str
    single_path: str  # formatted with {orgnr}
    changes_path: str
    relations_path: str  # formatted with {orgnr}
    records_key: str  # dotted path into the listing body
    sub_records_key: str
    changes_key: str
    change_id_field: str
    relations_key: str
    fields: RecordFields
    # County (region) by first two digits of the municipality number
    county_map: Dict[str, str] = field(default_factory=dict, compare=False)
    next_link_key: str = "_links.next"
    since_param: str = "dato"


BRREG_FIELDS = RecordFields(
    id="organisasjonsnummer",
    name="navn",
    org_form="organisasjonsform",
    industry="naeringskode1",
    employees="antallAnsatte",
    founded="stiftelsesdato",
    registered="registreringsdatoEnhetsregisteret",
    business_address="forretningsadresse",
    location_address="beliggenhetsadresse",
    phone="telefon",
    mobile="mobil",
    website="hjemmeside",
    email="epostadresse",
    closure_flags=(
        "konkurs",  # bankruptcy
        "underAvvikling",  # voluntary liquidation
        "underTvangsavviklingEllerTvangsopplosning",  # forced dissolution
    ),
    parent="overordnetEnhet",
    closed_date="nedleggelsesdato",
)

BRREG_COUNTIES = {
    "03": "Oslo",
    "11": "Rogaland",
    "15": "Møre og Romsdal",
    "18": "Nordland",
    "31": "Østfold",
    "32": "Akershus",
    "33": "Buskerud",
    "34": "Innlandet",
    "38": "Vestfold og Telemark",
    "42": "Agder",
    "46": "Vestland",
    "50": "Trøndelag",
    "54": "Troms og Finnmark",
}

# Brønnøysundregistrene, Enhetsregisteret (Norway)
BRREG = RegistryProfile(
    country="NO",
    name="Enhetsregisteret",
    base_url="https://data.brreg.no",
    list_path="/enhetsregisteret/api/enheter",
    sub_entity_list_path="/enhetsregisteret/api/underenheter",
    single_path="/enhetsregisteret/api/enheter/{orgnr}",
    changes_path="/enhetsregisteret/api/oppdateringer/enheter",
    relations_path="/enhetsregisteret/api/enheter/{orgnr}/roller",
    records_key="_embedded.enheter",
    sub_records_key="_embedded.underenheter",
    changes_key="_embedded.oppdaterteEnheter",
    change_id_field="organisasjonsnummer",
    relations_key="rollegrupper",
    fields=BRREG_FIELDS,
    county_map=BRREG_COUNTIES,
)

PROFILES: Dict[str, RegistryProfile] = {
    BRREG.country: BRREG,
}


def get_profile(country: str) -> RegistryProfile:
    """Look up the registry profile for a country code.

    Args:
        country: ISO 3166-1 alpha-2 code (case-insensitive)

    Returns:
        Matching RegistryProfile

    Raises:
        ValueError: If no profile is configured for the country
    """
    try:
        return PROFILES[country.upper()]
    except KeyError:
        raise ValueError(
            f"No registry profile for country '{country}' "
            f"(available: {', '.join(sorted(PROFILES))})"
        ) from None
