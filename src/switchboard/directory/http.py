"""Directory client backed by the Switchboard HTTP API."""

from __future__ import annotations

import json
from typing import Any, Literal
from urllib.parse import quote

import httpx
from loguru import logger

from switchboard.errors import DirectoryError

from .base import (
    DirectoryEntry,
    EntryId,
    Registration,
    clean_title,
    clip_identity,
    dedup_facilities,
    numeric_id,
)

DEFAULT_TIMEOUT_SECONDS = 15.0
# Same reserved set as JavaScript's encodeURIComponent, which the API expects.
_URI_COMPONENT_SAFE = "-_.!~*'()"

type HttpMethod = Literal["GET", "POST"]


def build_url(base_url: str, api_cmd: str, params: dict[str, Any] | None = None) -> str:
    """Join ``api_cmd`` onto ``base_url`` and append params in insertion order.

    ``None`` values are left out.
    """
    url = base_url + api_cmd
    items = [
        f"{quote(str(key), safe=_URI_COMPONENT_SAFE)}={quote(str(value), safe=_URI_COMPONENT_SAFE)}"
        for key, value in (params or {}).items()
        if value is not None
    ]
    if items:
        url = f"{url}?{'&'.join(items)}"
    return url


class HttpDirectory:
    """Typed list/lookup/write operations over the directory REST API.

    Replies are accepted only when the request went through, the HTTP status
    is 200 and the JSON body carries ``status == 0``. Everything else is a
    :class:`DirectoryError`, or ``None`` for calls made with ``ignore_error``.
    """

    def __init__(
        self,
        url: str,
        *,
        username: str | None = None,
        password: str | None = None,
        lang: str = "en",
        client: httpx.AsyncClient | None = None,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self.url = url
        self.lang = lang
        self._auth = (
            httpx.BasicAuth(username, password or "") if username else httpx.USE_CLIENT_DEFAULT
        )
        self._headers = {"Content-Type": "application/json"}
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout_seconds)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def api_get(self, api_cmd: str, params: dict[str, Any]) -> dict[str, Any]:
        url = build_url(self.url, api_cmd, params)
        result = await self._request("GET", url)
        if result is None:
            raise DirectoryError(f"SwB API GET to {url} failed: no result")
        return result

    async def api_post(self, api_cmd: str, data: dict[str, Any], *, ignore_error: bool = False) -> dict[str, Any] | None:
        url = build_url(self.url, api_cmd)
        return await self._request("POST", url, data=data, ignore_error=ignore_error)

    async def _request(
        self,
        method: HttpMethod,
        url: str,
        *,
        data: dict[str, Any] | None = None,
        ignore_error: bool = False,
    ) -> dict[str, Any] | None:
        try:
            if method == "GET":
                response = await self._client.get(url, headers=self._headers, auth=self._auth)
            else:
                response = await self._client.post(
                    url,
                    headers=self._headers,
                    content=json.dumps(data),
                    auth=self._auth,
                )
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            return self._fail(str(exc) or exc.__class__.__name__, url, method, data, ignore_error)
        return self.check_reply(response, url, method, data, ignore_error)

    def check_reply(
        self,
        response: httpx.Response,
        url: str,
        method: HttpMethod,
        data: dict[str, Any] | None,
        ignore_error: bool,
    ) -> dict[str, Any] | None:
        if response.status_code != httpx.codes.OK:
            reason = response.reason_phrase or f"HTTP {response.status_code}"
            return self._fail(reason, url, method, data, ignore_error)
        try:
            body = response.json()
        except ValueError:
            return self._fail("API returned a body that is not JSON", url, method, data, ignore_error)
        status = body.get("status") if isinstance(body, dict) else None
        if status == 0 and isinstance(body, dict):
            return body
        return self._fail(f"API did not return status OK (got {status} instead)", url, method, data, ignore_error)

    @staticmethod
    def _fail(
        reason: str,
        url: str,
        method: HttpMethod,
        data: dict[str, Any] | None,
        ignore_error: bool,
    ) -> None:
        message = f"SwB API {method} to {url} failed: {reason}"
        if data is not None:
            message = f"{message}; data: {json.dumps(data)}"
        logger.warning(message)
        if not ignore_error:
            raise DirectoryError(message)
        return None

    async def list_categories(self) -> list[DirectoryEntry]:
        result = await self.api_get("specialties", {"lang": self.lang})
        return [
            _specialty_entry(specialty)
            for specialty in result.get("specialties", [])
            if specialty.get("parent_specialty_id") is None
        ]

    async def list_regions(self, query: str | None = None) -> list[DirectoryEntry]:
        result = await self.api_get("regions", {"type": "District", "title": query, "lang": self.lang})
        return [DirectoryEntry(id=region["id"], label=clean_title(str(region["title"]))) for region in result.get("regions", [])]

    async def list_facility_types(self) -> list[DirectoryEntry]:
        result = await self.api_get("facility-types", {"lang": self.lang})
        return [
            DirectoryEntry(id=facility_type["id"], label=clean_title(str(facility_type["title"])))
            for facility_type in result.get("facility_types", [])
        ]

    async def list_facilities(
        self,
        region_id: EntryId | None,
        type_id: EntryId | None,
        query: str | None,
    ) -> list[DirectoryEntry]:
        params: dict[str, Any] = {"title": query, "lang": self.lang}
        if region_id is not None:
            params["region"] = region_id
        if type_id is not None:
            params["type"] = type_id
        result = await self.api_get("facilities", params)
        return dedup_facilities(result.get("facilities", []))

    async def list_subcategories(self, category_id: EntryId) -> list[DirectoryEntry]:
        parent_id = numeric_id(category_id)
        if parent_id is None:
            return []
        result = await self.api_get("specialties", {"lang": self.lang})
        return [
            _specialty_entry(specialty)
            for specialty in result.get("specialties", [])
            if specialty.get("parent_specialty_id") == parent_id
        ]

    async def category_has_subcategories(self, category_id: EntryId) -> bool:
        wanted = numeric_id(category_id)
        if wanted is None:
            return False
        result = await self.api_get("specialties", {"lang": self.lang})
        matches = [specialty for specialty in result.get("specialties", []) if specialty.get("id") == wanted]
        if len(matches) != 1:
            return False
        return bool(matches[0].get("is_query_subspecialties"))

    # TODO: stop ignoring errors on the submit calls once the API accepts duplicates.
    async def submit_unknown_category(self, identity: str, name: str) -> EntryId | None:
        result = await self.api_post(
            "specialties",
            {
                "msisdn": clip_identity(identity),
                "title": name,
                "parent_specialty": None,
                "lang": self.lang,
            },
            ignore_error=True,
        )
        return None if result is None else result.get("id")

    async def submit_unknown_facility(
        self,
        identity: str,
        name: str,
        region_id: EntryId | None,
        type_id: EntryId | None,
    ) -> EntryId | None:
        result = await self.api_post(
            "facilities",
            {
                "msisdn": clip_identity(identity),
                "title": name,
                "region": region_id,
                "type": type_id,
                "address": None,
                "lang": self.lang,
            },
            ignore_error=True,
        )
        return None if result is None else result.get("id")

    async def register_identity(self, registration: Registration) -> None:
        await self.api_post(
            "health-workers",
            {
                "name": registration.full_name,
                "surname": registration.surname,
                "firstname": registration.firstname,
                "specialties": list(registration.specialties),
                "country": registration.country,
                "facility": registration.facility,
                "vodacom_phone": registration.phone,
                "mct_registration_number": registration.registration_number,
                "mct_payroll_number": registration.cheque_number,
                "language": self.lang,
            },
        )

    async def update_profile_field(self, identity: str, field_name: str, value: str) -> dict[str, Any] | None:
        return await self.api_post(
            "update_profile",
            {
                "data_field": field_name,
                "new_value": value,
                "msisdn": clip_identity(identity),
                "lang": self.lang,
            },
            ignore_error=True,
        )

    async def check_number(self, number: str) -> bool | None:
        result = await self.api_post("in_cug", {"search_number": number, "lang": self.lang}, ignore_error=True)
        if result is None:
            return None
        return str(result.get("in_cug")) == "1"


def _specialty_entry(specialty: dict[str, Any]) -> DirectoryEntry:
    text = specialty.get("short_title") or specialty.get("title") or ""
    return DirectoryEntry(id=specialty["id"], label=clean_title(str(text)))
