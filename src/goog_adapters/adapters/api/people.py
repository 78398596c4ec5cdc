"""
Google People v1 client and verification adapter for contacts and contact groups.

Reference: https://developers.google.com/people/api/rest
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional

from ...core.retry import CancelToken
from ..base import VerificationResult
from ..errors import ErrorTable, Resource
from .base import REMOTE_ERRORS, BaseAPIClient, failed_verification

DEFAULT_BASE_URL = "https://people.googleapis.com/v1"
DEFAULT_PERSON_FIELDS = ("names", "emailAddresses", "phoneNumbers", "organizations", "memberships")
BATCH_GET_LIMIT = 200
GROUP_MEMBER_LIMIT = 1000

PEOPLE_ERRORS = ErrorTable(service="people")


def _resource_name(value: str, prefix: str) -> str:
    return value if value.startswith(f"{prefix}/") else f"{prefix}/{value}"


class PeopleClient(BaseAPIClient):
    """People client for the authenticated user's contacts."""

    error_table = PEOPLE_ERRORS

    def __init__(
        self,
        *,
        base_url: str = DEFAULT_BASE_URL,
        person_fields: Iterable[str] = DEFAULT_PERSON_FIELDS,
        **kwargs: Any,
    ) -> None:
        super().__init__(base_url=base_url, **kwargs)
        self.person_fields = ",".join(person_fields)

    async def list_contacts(
        self,
        *,
        page_size: Optional[int] = None,
        page_token: Optional[str] = None,
        cancel: Optional[CancelToken] = None,
    ) -> Dict[str, Any]:
        payload = self._expect_dict(
            await self._get_json(
                "/people/me/connections",
                resource=Resource.CONTACT,
                cancel=cancel,
                params={"personFields": self.person_fields, "pageSize": page_size, "pageToken": page_token},
            ),
            "contact listing",
        )
        return {
            "connections": list(payload.get("connections") or []),
            "nextPageToken": payload.get("nextPageToken"),
            "totalPeople": payload.get("totalPeople", 0),
        }

    async def get_contact(self, resource_name: str, *, cancel: Optional[CancelToken] = None) -> Dict[str, Any]:
        payload = await self._get_json(
            f"/{_resource_name(resource_name, 'people')}",
            resource=Resource.CONTACT,
            cancel=cancel,
            params={"personFields": self.person_fields},
        )
        return self._expect_dict(payload, "contact lookup")

    async def search_contacts(self, query: str, *, page_size: Optional[int] = None, cancel: Optional[CancelToken] = None) -> List[Dict[str, Any]]:
        payload = await self._get_json(
            "/people:searchContacts",
            resource=Resource.CONTACT,
            cancel=cancel,
            params={"query": query, "readMask": self.person_fields, "pageSize": page_size},
        )
        results = self._expect_dict(payload, "contact search").get("results") or []
        return [entry["person"] for entry in results if isinstance(entry, dict) and isinstance(entry.get("person"), dict)]

    async def batch_get_contacts(self, resource_names: Iterable[str], *, cancel: Optional[CancelToken] = None) -> List[Dict[str, Any]]:
        """Fetch several contacts, at most ``BATCH_GET_LIMIT`` names per request."""

        names = [_resource_name(name, "people") for name in resource_names]
        people: List[Dict[str, Any]] = []
        for offset in range(0, len(names), BATCH_GET_LIMIT):
            payload = await self._get_json(
                "/people:batchGet",
                resource=Resource.CONTACT,
                cancel=cancel,
                params={"resourceNames": names[offset : offset + BATCH_GET_LIMIT], "personFields": self.person_fields},
            )
            responses = self._expect_dict(payload, "contact batch lookup").get("responses") or []
            people.extend(entry["person"] for entry in responses if isinstance(entry, dict) and isinstance(entry.get("person"), dict))
        return people

    async def create_contact(self, person: Mapping[str, Any], *, cancel: Optional[CancelToken] = None) -> Dict[str, Any]:
        payload = await self._post_json(
            "/people:createContact",
            resource=Resource.CONTACT,
            cancel=cancel,
            json_body=dict(person),
            params={"personFields": self.person_fields},
        )
        return self._expect_dict(payload, "contact creation")

    async def update_contact(
        self,
        resource_name: str,
        person: Mapping[str, Any],
        update_fields: Iterable[str],
        *,
        cancel: Optional[CancelToken] = None,
    ) -> Dict[str, Any]:
        """Patch the listed person fields; ``person`` must carry the current ``etag``."""

        payload = await self._request_json(
            "PATCH",
            f"/{_resource_name(resource_name, 'people')}:updateContact",
            resource=Resource.CONTACT,
            cancel=cancel,
            json_body=dict(person),
            params={"updatePersonFields": ",".join(update_fields), "personFields": self.person_fields},
        )
        return self._expect_dict(payload, "contact update")

    async def delete_contact(self, resource_name: str, *, cancel: Optional[CancelToken] = None) -> None:
        await self._request_json("DELETE", f"/{_resource_name(resource_name, 'people')}:deleteContact", resource=Resource.CONTACT, cancel=cancel)

    async def list_contact_groups(self, *, cancel: Optional[CancelToken] = None) -> List[Dict[str, Any]]:
        payload = await self._get_json("/contactGroups", resource=Resource.CONTACT_GROUP, cancel=cancel)
        return list(self._expect_dict(payload, "contact group listing").get("contactGroups") or [])

    async def get_contact_group(self, resource_name: str, *, max_members: Optional[int] = None, cancel: Optional[CancelToken] = None) -> Dict[str, Any]:
        payload = await self._get_json(
            f"/{_resource_name(resource_name, 'contactGroups')}",
            resource=Resource.CONTACT_GROUP,
            cancel=cancel,
            params={"maxMembers": max_members},
        )
        return self._expect_dict(payload, "contact group lookup")

    async def create_contact_group(self, name: str, *, cancel: Optional[CancelToken] = None) -> Dict[str, Any]:
        payload = await self._post_json(
            "/contactGroups",
            resource=Resource.CONTACT_GROUP,
            cancel=cancel,
            json_body={"contactGroup": {"name": name}},
        )
        return self._expect_dict(payload, "contact group creation")

    async def update_contact_group(self, resource_name: str, group: Mapping[str, Any], *, cancel: Optional[CancelToken] = None) -> Dict[str, Any]:
        """Replace a group's writable fields; ``group`` should carry the current ``etag``."""

        payload = await self._request_json(
            "PUT",
            f"/{_resource_name(resource_name, 'contactGroups')}",
            resource=Resource.CONTACT_GROUP,
            cancel=cancel,
            json_body={"contactGroup": dict(group)},
        )
        return self._expect_dict(payload, "contact group update")

    async def list_group_members(self, resource_name: str, *, cancel: Optional[CancelToken] = None) -> List[Dict[str, Any]]:
        group = await self.get_contact_group(resource_name, max_members=GROUP_MEMBER_LIMIT, cancel=cancel)
        members = [name for name in group.get("memberResourceNames") or [] if isinstance(name, str)]
        if not members:
            return []
        return await self.batch_get_contacts(members, cancel=cancel)

    async def add_group_members(self, resource_name: str, members: Iterable[str], *, cancel: Optional[CancelToken] = None) -> List[str]:
        """Add contacts to a group and return the names the service could not find."""

        return await self._modify_members(resource_name, {"resourceNamesToAdd": [_resource_name(name, "people") for name in members]}, cancel)

    async def remove_group_members(self, resource_name: str, members: Iterable[str], *, cancel: Optional[CancelToken] = None) -> List[str]:
        return await self._modify_members(resource_name, {"resourceNamesToRemove": [_resource_name(name, "people") for name in members]}, cancel)

    async def _modify_members(self, resource_name: str, body: Dict[str, Any], cancel: Optional[CancelToken]) -> List[str]:
        payload = await self._post_json(
            f"/{_resource_name(resource_name, 'contactGroups')}/members:modify",
            resource=Resource.CONTACT_GROUP,
            cancel=cancel,
            json_body=body,
        )
        return list(self._expect_dict(payload or {}, "group membership update").get("notFoundResourceNames") or [])

    async def delete_contact_group(self, resource_name: str, *, delete_contacts: bool = False, cancel: Optional[CancelToken] = None) -> None:
        await self._request_json(
            "DELETE",
            f"/{_resource_name(resource_name, 'contactGroups')}",
            resource=Resource.CONTACT_GROUP,
            cancel=cancel,
            params={"deleteContacts": "true" if delete_contacts else None},
        )


@dataclass(slots=True)
class PeopleAdapter:
    """Adapter used for connectivity verification."""

    service_id: str = "people"
    client: PeopleClient = field(default_factory=PeopleClient)

    async def verify(self) -> VerificationResult:
        try:
            groups = await self.client.list_contact_groups()
        except REMOTE_ERRORS as exc:
            return failed_verification("People API", exc)
        return VerificationResult(success=True, message="People API reachable.", details={"contact_groups": len(groups)})
