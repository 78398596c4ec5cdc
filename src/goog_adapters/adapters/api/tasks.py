"""
Google Tasks v1 client and verification adapter.

Reference: https://developers.google.com/tasks/reference/rest
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import quote

from ...core.retry import CancelToken
from ..base import VerificationResult
from ..errors import ErrorTable, Resource
from .base import REMOTE_ERRORS, BaseAPIClient, failed_verification

DEFAULT_BASE_URL = "https://tasks.googleapis.com/tasks/v1"

TASKS_ERRORS = ErrorTable(service="tasks")


def _segment(value: str) -> str:
    return quote(value, safe="")


class TasksClient(BaseAPIClient):
    """Tasks client covering task lists and the tasks they contain."""

    error_table = TASKS_ERRORS

    def __init__(self, *, base_url: str = DEFAULT_BASE_URL, **kwargs: Any) -> None:
        super().__init__(base_url=base_url, **kwargs)

    async def list_task_lists(self, *, cancel: Optional[CancelToken] = None) -> List[Dict[str, Any]]:
        payload = await self._get_json("/users/@me/lists", resource=Resource.TASK_LIST, cancel=cancel)
        return list(self._expect_dict(payload, "task list listing").get("items") or [])

    async def get_task_list(self, task_list_id: str, *, cancel: Optional[CancelToken] = None) -> Dict[str, Any]:
        payload = await self._get_json(f"/users/@me/lists/{_segment(task_list_id)}", resource=Resource.TASK_LIST, cancel=cancel)
        return self._expect_dict(payload, "task list lookup")

    async def create_task_list(self, title: str, *, cancel: Optional[CancelToken] = None) -> Dict[str, Any]:
        payload = await self._post_json("/users/@me/lists", resource=Resource.TASK_LIST, cancel=cancel, json_body={"title": title})
        return self._expect_dict(payload, "task list creation")

    async def update_task_list(self, task_list_id: str, title: str, *, cancel: Optional[CancelToken] = None) -> Dict[str, Any]:
        payload = await self._request_json(
            "PATCH",
            f"/users/@me/lists/{_segment(task_list_id)}",
            resource=Resource.TASK_LIST,
            cancel=cancel,
            json_body={"title": title},
        )
        return self._expect_dict(payload, "task list update")

    async def delete_task_list(self, task_list_id: str, *, cancel: Optional[CancelToken] = None) -> None:
        await self._request_json("DELETE", f"/users/@me/lists/{_segment(task_list_id)}", resource=Resource.TASK_LIST, cancel=cancel)

    async def list_tasks(
        self,
        task_list_id: str,
        *,
        show_completed: bool = True,
        show_hidden: bool = False,
        due_min: Optional[str] = None,
        due_max: Optional[str] = None,
        max_results: Optional[int] = None,
        page_token: Optional[str] = None,
        cancel: Optional[CancelToken] = None,
    ) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "showCompleted": "true" if show_completed else "false",
            "showHidden": "true" if show_hidden else "false",
            "dueMin": due_min,
            "dueMax": due_max,
            "maxResults": max_results,
            "pageToken": page_token,
        }
        payload = self._expect_dict(
            await self._get_json(f"/lists/{_segment(task_list_id)}/tasks", resource=Resource.TASK, cancel=cancel, params=params),
            "task listing",
        )
        return {"items": list(payload.get("items") or []), "nextPageToken": payload.get("nextPageToken")}

    async def get_task(self, task_list_id: str, task_id: str, *, cancel: Optional[CancelToken] = None) -> Dict[str, Any]:
        payload = await self._get_json(f"/lists/{_segment(task_list_id)}/tasks/{_segment(task_id)}", resource=Resource.TASK, cancel=cancel)
        return self._expect_dict(payload, "task lookup")

    async def create_task(
        self,
        task_list_id: str,
        task: Mapping[str, Any],
        *,
        parent: Optional[str] = None,
        previous: Optional[str] = None,
        cancel: Optional[CancelToken] = None,
    ) -> Dict[str, Any]:
        payload = await self._post_json(
            f"/lists/{_segment(task_list_id)}/tasks",
            resource=Resource.TASK,
            cancel=cancel,
            json_body=dict(task),
            params={"parent": parent, "previous": previous},
        )
        return self._expect_dict(payload, "task creation")

    async def update_task(self, task_list_id: str, task_id: str, task: Mapping[str, Any], *, cancel: Optional[CancelToken] = None) -> Dict[str, Any]:
        payload = await self._request_json(
            "PATCH",
            f"/lists/{_segment(task_list_id)}/tasks/{_segment(task_id)}",
            resource=Resource.TASK,
            cancel=cancel,
            json_body=dict(task),
        )
        return self._expect_dict(payload, "task update")

    async def delete_task(self, task_list_id: str, task_id: str, *, cancel: Optional[CancelToken] = None) -> None:
        await self._request_json("DELETE", f"/lists/{_segment(task_list_id)}/tasks/{_segment(task_id)}", resource=Resource.TASK, cancel=cancel)

    async def move_task(
        self,
        task_list_id: str,
        task_id: str,
        *,
        parent: Optional[str] = None,
        previous: Optional[str] = None,
        cancel: Optional[CancelToken] = None,
    ) -> Dict[str, Any]:
        """Reposition a task under ``parent`` and after ``previous`` (both optional)."""

        payload = await self._post_json(
            f"/lists/{_segment(task_list_id)}/tasks/{_segment(task_id)}/move",
            resource=Resource.TASK,
            cancel=cancel,
            params={"parent": parent, "previous": previous},
        )
        return self._expect_dict(payload, "task move")

    async def clear_completed(self, task_list_id: str, *, cancel: Optional[CancelToken] = None) -> None:
        """Hide every completed task in the list."""

        await self._post_json(f"/lists/{_segment(task_list_id)}/clear", resource=Resource.TASK_LIST, cancel=cancel)


@dataclass(slots=True)
class TasksAdapter:
    """Adapter used for connectivity verification."""

    service_id: str = "tasks"
    client: TasksClient = field(default_factory=TasksClient)

    async def verify(self) -> VerificationResult:
        try:
            task_lists = await self.client.list_task_lists()
        except REMOTE_ERRORS as exc:
            return failed_verification("Tasks API", exc)
        return VerificationResult(success=True, message="Tasks API reachable.", details={"task_lists": len(task_lists)})
