"""Directory types, the client contract and list normalization helpers."""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Protocol

# Printable ASCII: 0x20 (space) to 0x7E (tilde).
NON_PRINTABLE_ASCII_RE = re.compile(r"[^\x20-\x7E]")
MAX_IDENTITY_LENGTH = 32

type EntryId = int | str


@dataclass(frozen=True)
class DirectoryEntry:
    id: EntryId
    label: str


@dataclass
class Registration:
    """Payload for registering one identity with the directory."""

    phone: str
    firstname: str
    surname: str
    country: str = "TZ"
    specialties: list[EntryId] = field(default_factory=list)
    facility: EntryId | None = None
    registration_number: str | None = None
    cheque_number: str | None = None

    @property
    def full_name(self) -> str:
        return f"{self.firstname} {self.surname}"


class DirectoryClient(Protocol):
    """List, lookup and write operations against the registration directory."""

    async def list_categories(self) -> list[DirectoryEntry]: ...

    async def list_regions(self, query: str | None = None) -> list[DirectoryEntry]: ...

    async def list_facility_types(self) -> list[DirectoryEntry]: ...

    async def list_facilities(
        self,
        region_id: EntryId | None,
        type_id: EntryId | None,
        query: str | None,
    ) -> list[DirectoryEntry]: ...

    async def list_subcategories(self, category_id: EntryId) -> list[DirectoryEntry]: ...

    async def category_has_subcategories(self, category_id: EntryId) -> bool: ...

    async def submit_unknown_category(self, identity: str, name: str) -> EntryId | None: ...

    async def submit_unknown_facility(
        self,
        identity: str,
        name: str,
        region_id: EntryId | None,
        type_id: EntryId | None,
    ) -> EntryId | None: ...

    async def register_identity(self, registration: Registration) -> None: ...

    async def update_profile_field(self, identity: str, field_name: str, value: str) -> dict[str, Any] | None: ...

    async def check_number(self, number: str) -> bool | None: ...


def clean_title(title: str) -> str:
    """Replace every character outside printable ASCII with ``?``."""
    return NON_PRINTABLE_ASCII_RE.sub("?", title)


def deduplicate_items[T](
    items: list[T],
    get_title: Callable[[T], str],
    dedup: Callable[[T], None],
) -> None:
    """Call ``dedup`` on every item whose title is shared with another item.

    Runs in one pass: the first holder of a title is deduplicated when the
    second one shows up, later holders as they are seen. Items with a unique
    title are never touched and the order of ``items`` is not changed.
    """
    seen: dict[str, list[T]] = {}
    for item in items:
        title = get_title(item)
        holders = seen.get(title)
        if holders is None:
            seen[title] = [item]
            continue
        if len(holders) == 1:
            dedup(holders[0])
        dedup(item)
        holders.append(item)


def region_title(facility: dict[str, Any]) -> str | None:
    region = facility.get("region")
    if isinstance(region, dict):
        title = region.get("title")
        return str(title) if title else None
    if isinstance(region, str) and region:
        return region
    return None


def dedup_facilities(facilities: list[dict[str, Any]]) -> list[DirectoryEntry]:
    """Disambiguate facilities sharing a title by appending their region title."""

    def append_region(facility: dict[str, Any]) -> None:
        suffix = region_title(facility)
        if suffix:
            facility["title"] = f"{facility['title']} {suffix}"

    copies = [dict(facility) for facility in facilities]
    deduplicate_items(copies, lambda facility: str(facility["title"]), append_region)
    return [DirectoryEntry(id=facility["id"], label=clean_title(str(facility["title"]))) for facility in copies]


def clip_identity(identity: str) -> str:
    """Directory API limit for identity fields."""
    return identity[:MAX_IDENTITY_LENGTH]


def numeric_id(category_id: EntryId) -> int | None:
    """Category ids are compared numerically; non-numeric ids never match."""
    try:
        return int(category_id)
    except (TypeError, ValueError):
        return None
