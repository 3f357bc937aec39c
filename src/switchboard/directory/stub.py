"""In-memory directory used when no API credentials are configured."""

from __future__ import annotations

from typing import Any

from loguru import logger

from .base import DirectoryEntry, EntryId, Registration, dedup_facilities, numeric_id

# Cadres with specialties use the numeric ids the real API assigns them.
CADRES: list[DirectoryEntry] = [
    DirectoryEntry(1, "Medical Specialist"),
    DirectoryEntry("mo", "MO"),
    DirectoryEntry(60, "AMO"),
    DirectoryEntry("co", "CO"),
    DirectoryEntry("aco", "ACO"),
    DirectoryEntry(67, "Dental Specialist"),
    DirectoryEntry("do", "Dental Officer"),
    DirectoryEntry("ado", "ADO"),
    DirectoryEntry("dt", "Dental Therapist"),
]

DISTRICTS: list[DirectoryEntry] = [
    DirectoryEntry("kigoma-mc", "Kigoma MC"),
    DirectoryEntry("kigoma-dc", "Kigoma DC"),
    DirectoryEntry("kasulu-dc", "Kasulu DC"),
]

FACILITY_TYPES: list[DirectoryEntry] = [
    DirectoryEntry("hospital", "Hospital"),
    DirectoryEntry("health-centre", "Health Centre"),
    DirectoryEntry("dispensary", "Dispensary"),
    DirectoryEntry("clinic", "Clinic"),
    DirectoryEntry("mhsw", "Ministry of Health and Social Welfare"),
    DirectoryEntry("council", "Council"),
    DirectoryEntry("training", "Training Institution"),
    DirectoryEntry("zonal-training", "Zonal Training Centre"),
    DirectoryEntry("ngo", "NGO"),
]

FACILITIES: list[dict[str, Any]] = [
    {"id": "wazazi-galapo", "title": "Wazazi Galapo"},
    {"id": "wazazi-magugu", "title": "Wazazi Magugu"},
    {"id": "wazazu-mchuo", "title": "Wazazu Mchuo"},
]

SPECIALTIES: dict[int, list[DirectoryEntry]] = {
    67: [DirectoryEntry("cd", "Community Dentistry"), DirectoryEntry("ms", "Maxilofacial Surgery")],
    1: [DirectoryEntry("anaesthesia", "Anaesthesia"), DirectoryEntry("anatomy", "Anatomy")],
    60: [DirectoryEntry("anaesthesiology", "Anaesthesiology"), DirectoryEntry("em", "Emergency Medicime")],
}


class StubDirectory:
    """Fixed data, successful writes."""

    def __init__(self, lang: str = "en") -> None:
        self.lang = lang
        self.registrations: list[Registration] = []

    async def list_categories(self) -> list[DirectoryEntry]:
        return list(CADRES)

    async def list_regions(self, query: str | None = None) -> list[DirectoryEntry]:
        return list(DISTRICTS)

    async def list_facility_types(self) -> list[DirectoryEntry]:
        return list(FACILITY_TYPES)

    async def list_facilities(
        self,
        region_id: EntryId | None,
        type_id: EntryId | None,
        query: str | None,
    ) -> list[DirectoryEntry]:
        return dedup_facilities(FACILITIES)

    async def list_subcategories(self, category_id: EntryId) -> list[DirectoryEntry]:
        key = numeric_id(category_id)
        if key is None:
            return []
        return list(SPECIALTIES.get(key, []))

    async def category_has_subcategories(self, category_id: EntryId) -> bool:
        return numeric_id(category_id) in SPECIALTIES

    async def submit_unknown_category(self, identity: str, name: str) -> EntryId | None:
        return None

    async def submit_unknown_facility(
        self,
        identity: str,
        name: str,
        region_id: EntryId | None,
        type_id: EntryId | None,
    ) -> EntryId | None:
        return None

    async def register_identity(self, registration: Registration) -> None:
        logger.info("directory.stub_registered phone={}", registration.phone)
        self.registrations.append(registration)

    async def update_profile_field(self, identity: str, field_name: str, value: str) -> dict[str, Any] | None:
        return {"status": 0}

    async def check_number(self, number: str) -> bool | None:
        return False
