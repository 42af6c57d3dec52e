"""Map raw registry records to snapshots.

Pure transformations; the only outside call is the optional logo lookup,
whose failures never block mapping.
"""

from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from leadscout.core.constants import COMPANY_STATUS_ACTIVE, COMPANY_STATUS_INACTIVE
from leadscout.core.exceptions import RecordMappingError
from leadscout.core.logging import get_logger
from leadscout.registry.base import EntitySnapshot, RoleRecord, SubEntityRecord
from leadscout.registry.profiles import BRREG, RegistryProfile

logger = get_logger("registry.mapper")

LogoLookupFn = Callable[[str, Optional[str]], Optional[str]]

# Industry vertical by NACE division (first two digits of the industry code)
VERTICAL_MAP: Dict[str, str] = {
    "10": "Manufacturing - Food",
    "25": "Manufacturing - Metal",
    "41": "Construction",
    "42": "Construction",
    "43": "Construction",
    "45": "Retail - Automotive",
    "46": "Wholesale Trade",
    "47": "Retail Trade",
    "49": "Transportation",
    "50": "Transportation",
    "51": "Transportation",
    "52": "Warehousing",
    "55": "Accommodation",
    "56": "Food Services",
    "62": "IT Services",
    "68": "Real Estate",
    "69": "Legal & Accounting",
    "70": "Management Consulting",
    "71": "Architecture & Engineering",
    "81": "Facility Services",
    "86": "Healthcare",
    "87": "Social Services",
}

COMMERCIAL_ORG_FORMS = frozenset({
    "AS",   # Aksjeselskap
    "ASA",  # Allmennaksjeselskap
    "ENK",  # Enkeltpersonforetak
    "ANS",  # Ansvarlig selskap
    "DA",   # Selskap med delt ansvar
    "FLI",  # Filial av utenlandsk foretak
    "NUF",  # Norskregistrert utenlandsk foretak
})


def get_county(
    municipality_number: Optional[str],
    profile: RegistryProfile = BRREG,
) -> Optional[str]:
    """Get county name from a municipality number, None if unmapped."""
    if not municipality_number:
        return None
    return profile.county_map.get(municipality_number[:2])


def get_industry_vertical(industry_code: Optional[str]) -> Optional[str]:
    """Get the industry vertical for an industry code, None if unmapped."""
    if not industry_code:
        return None
    return VERTICAL_MAP.get(industry_code[:2])


def is_commercial_org_form(org_form_code: Optional[str]) -> bool:
    """Check if an organization form code is a commercial entity."""
    if not org_form_code:
        return False
    return org_form_code in COMMERCIAL_ORG_FORMS


def derive_status(record: Dict[str, Any], profile: RegistryProfile = BRREG) -> str:
    """Derive lifecycle status; any closure flag wins over everything else."""
    if any(record.get(flag) for flag in profile.fields.closure_flags):
        return COMPANY_STATUS_INACTIVE
    return COMPANY_STATUS_ACTIVE


def map_entity(
    record: Dict[str, Any],
    logo_lookup: Optional[LogoLookupFn] = None,
    profile: RegistryProfile = BRREG,
) -> EntitySnapshot:
    """Map a raw registry entity to an EntitySnapshot.

    Args:
        record: Raw entity as returned by the registry
        logo_lookup: Optional best-effort logo resolver
        profile: Registry whose field names the record uses

    Returns:
        EntitySnapshot

    Raises:
        RecordMappingError: If identifier or name are missing or a field is malformed
    """
    if not isinstance(record, dict):
        raise RecordMappingError(f"Expected object, got {type(record).__name__}")

    f = profile.fields
    orgnr = _clean_str(record.get(f.id))
    name = _clean_str(record.get(f.name))
    if not orgnr:
        raise RecordMappingError(f"Record without {f.id}", details={f.name: name})
    if not name:
        raise RecordMappingError(f"Record without {f.name}", orgnr=orgnr)

    # Business address first, then location address
    address = record.get(f.business_address) or record.get(f.location_address) or {}
    org_form = record.get(f.org_form) or {}
    industry = record.get(f.industry) or {}
    municipality_number = _clean_str(address.get(f.municipality_number))
    website = _clean_str(record.get(f.website))

    try:
        employee_count = _to_int(record.get(f.employees))
        founded_date = _parse_date(record.get(f.founded))
        source_updated_at = _parse_datetime(record.get(f.registered))
    except (TypeError, ValueError) as e:
        raise RecordMappingError(f"Malformed field in {orgnr}: {e}", orgnr=orgnr) from e

    logo_url = None
    if logo_lookup and website:
        try:
            logo_url = logo_lookup(website, name)
        except Exception as e:
            logger.debug("Logo lookup failed for %s: %s", orgnr, e)

    return EntitySnapshot(
        orgnr=orgnr,
        name=name,
        status=derive_status(record, profile),
        organization_form_code=_clean_str(org_form.get(f.code)),
        organization_form_name=_clean_str(org_form.get(f.description)),
        founded_date=founded_date,
        municipality=_clean_str(address.get(f.municipality)),
        municipality_number=municipality_number,
        county=get_county(municipality_number, profile),
        postal_code=_clean_str(address.get(f.postal_code)),
        address=", ".join(address.get(f.address_lines) or []) or None,
        industry_code=_clean_str(industry.get(f.code)),
        industry_description=_clean_str(industry.get(f.description)),
        employee_count=employee_count,
        phone=_clean_str(record.get(f.phone)) or _clean_str(record.get(f.mobile)),
        website=website,
        email=_clean_str(record.get(f.email)),
        logo_url=logo_url,
        source_updated_at=source_updated_at,
        raw_json=record,
    )


def map_sub_entity(record: Dict[str, Any], profile: RegistryProfile = BRREG) -> SubEntityRecord:
    """Map a raw branch record to a SubEntityRecord.

    A missing parent reference is kept as None; the sync decides what to do
    with orphans.
    """
    if not isinstance(record, dict):
        raise RecordMappingError(f"Expected object, got {type(record).__name__}")

    f = profile.fields
    orgnr = _clean_str(record.get(f.id))
    if not orgnr:
        raise RecordMappingError(f"Sub-entity without {f.id}")

    address = record.get(f.location_address) or {}
    industry = record.get(f.industry) or {}

    return SubEntityRecord(
        orgnr=orgnr,
        parent_orgnr=_clean_str(record.get(f.parent)),
        name=_clean_str(record.get(f.name)) or orgnr,
        status=COMPANY_STATUS_INACTIVE if record.get(f.closed_date) else COMPANY_STATUS_ACTIVE,
        industry_code=_clean_str(industry.get(f.code)),
        address=", ".join(address.get(f.address_lines) or []) or None,
        municipality=_clean_str(address.get(f.municipality)),
        raw_json=record,
    )


def map_roles(
    role_groups: List[Dict[str, Any]],
    profile: RegistryProfile = BRREG,
) -> List[RoleRecord]:
    """Flatten role groups into RoleRecords, skipping resigned roles."""
    f = profile.fields
    roles = []
    for group in role_groups:
        group_name = (group.get(f.group_type) or {}).get(f.description)
        for rolle in group.get(f.roles) or []:
            if rolle.get(f.resigned):
                continue
            role_type = (rolle.get(f.role_type) or {}).get(f.description)
            if not role_type:
                continue
            person = rolle.get(f.person) or {}
            roles.append(
                RoleRecord(
                    role_type=role_type,
                    role_group=group_name,
                    person_name=_person_name(person, profile),
                    birth_date=_parse_date(person.get(f.birth_date)),
                    raw_json=rolle,
                )
            )
    return roles


def _person_name(person: Dict[str, Any], profile: RegistryProfile) -> Optional[str]:
    f = profile.fields
    # Newer API versions nest the name parts under the name key
    nested = person.get(f.person_name)
    names = nested if isinstance(nested, dict) else person
    parts = [names.get(f.first_name), names.get(f.middle_name), names.get(f.last_name)]
    full = " ".join(p.strip() for p in parts if p and p.strip())
    return full or None


def _clean_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _to_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    return int(value)


def _parse_date(value: Any) -> Optional[date]:
    if not value:
        return None
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def _parse_datetime(value: Any) -> Optional[datetime]:
    """Parse ISO dates/datetimes to naive UTC datetimes."""
    if not value:
        return None
    text = str(value).strip()
    if len(text) == 10:
        return datetime.fromisoformat(text)
    parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed
