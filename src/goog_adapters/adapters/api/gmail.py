"""
Gmail v1 client and verification adapter.

Messages are returned in the API's ``full`` format. Outgoing mail is accepted
as raw RFC 2822 bytes; building the MIME document is left to the caller.

Reference: https://developers.google.com/gmail/api/reference/rest
"""

from __future__ import annotations

import base64
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import quote

from ...core.logging import log_progress
from ...core.retry import CancelToken, RetryCancelledError
from ..base import VerificationResult
from ..errors import APIError, ErrorTable, Resource, error_kind
from .base import REMOTE_ERRORS, BaseAPIClient, failed_verification

DEFAULT_BASE_URL = "https://gmail.googleapis.com/gmail/v1"
DEFAULT_USER_ID = "me"
DEFAULT_PAGE_SIZE = 20
LABEL_INBOX = "INBOX"
MESSAGE_FORMAT = "full"

GMAIL_ERRORS = ErrorTable(service="gmail")


class GmailClient(BaseAPIClient):
    """Gmail client for messages, drafts, labels and threads of one mailbox."""

    error_table = GMAIL_ERRORS

    def __init__(
        self,
        *,
        base_url: str = DEFAULT_BASE_URL,
        user_id: str = DEFAULT_USER_ID,
        page_size: int = DEFAULT_PAGE_SIZE,
        **kwargs: Any,
    ) -> None:
        super().__init__(base_url=base_url, **kwargs)
        self.user_id = user_id
        self.page_size = page_size

    def _path(self, *segments: str) -> str:
        return "/users/" + "/".join(quote(segment, safe="") for segment in (self.user_id, *segments))

    async def list_messages(
        self,
        *,
        query: Optional[str] = None,
        label_ids: Optional[Iterable[str]] = None,
        max_results: Optional[int] = None,
        page_token: Optional[str] = None,
        cancel: Optional[CancelToken] = None,
    ) -> Dict[str, Any]:
        """
        List messages and fetch each one in full.

        ``max_results`` falls back to the client's ``page_size``.

        A message whose fetch fails is kept as the ``id``/``threadId`` stub
        returned by the listing so that one bad item does not fail the page.
        """

        params: Dict[str, Any] = {"q": query, "pageToken": page_token}
        limit = max_results or self.page_size
        if limit and limit > 0:
            params["maxResults"] = limit
        labels = list(label_ids or [])
        if labels:
            params["labelIds"] = labels
        payload = self._expect_dict(
            await self._get_json(self._path("messages"), resource=Resource.MESSAGE, cancel=cancel, params=params),
            "message list",
        )

        messages: List[Dict[str, Any]] = []
        for stub in payload.get("messages") or []:
            message_id = stub.get("id")
            try:
                messages.append(await self.get_message(message_id, cancel=cancel))
            except RetryCancelledError:
                raise
            except REMOTE_ERRORS as exc:
                kind = error_kind(exc)
                log_progress(
                    self.logger,
                    "Falling back to message stub",
                    status="partial",
                    level=logging.WARNING,
                    extra={"resource": Resource.MESSAGE.value, "kind": kind.value if kind else None, "error": str(exc)},
                )
                messages.append({"id": message_id, "threadId": stub.get("threadId")})
        return {
            "messages": messages,
            "nextPageToken": payload.get("nextPageToken"),
            "resultSizeEstimate": payload.get("resultSizeEstimate", 0),
        }

    async def search_messages(self, query: str, *, max_results: Optional[int] = None, page_token: Optional[str] = None, cancel: Optional[CancelToken] = None) -> Dict[str, Any]:
        return await self.list_messages(query=query, max_results=max_results, page_token=page_token, cancel=cancel)

    async def get_message(self, message_id: str, *, cancel: Optional[CancelToken] = None) -> Dict[str, Any]:
        payload = await self._get_json(
            self._path("messages", message_id),
            resource=Resource.MESSAGE,
            cancel=cancel,
            params={"format": MESSAGE_FORMAT},
        )
        return self._expect_dict(payload, "message lookup")

    async def send_message(self, raw: bytes, *, thread_id: Optional[str] = None, cancel: Optional[CancelToken] = None) -> Dict[str, Any]:
        """Send a raw RFC 2822 message, then fetch the stored copy."""

        body: Dict[str, Any] = {"raw": base64.urlsafe_b64encode(raw).decode("ascii")}
        if thread_id:
            body["threadId"] = thread_id
        sent = self._expect_dict(
            await self._post_json(self._path("messages", "send"), resource=Resource.MESSAGE, cancel=cancel, json_body=body),
            "message send",
        )
        message_id = sent.get("id")
        if not isinstance(message_id, str) or not message_id:
            raise APIError("Gmail send response carried no message id.")
        return await self.get_message(message_id, cancel=cancel)

    async def trash(self, message_id: str, *, cancel: Optional[CancelToken] = None) -> None:
        await self._post_json(self._path("messages", message_id, "trash"), resource=Resource.MESSAGE, cancel=cancel)

    async def untrash(self, message_id: str, *, cancel: Optional[CancelToken] = None) -> None:
        await self._post_json(self._path("messages", message_id, "untrash"), resource=Resource.MESSAGE, cancel=cancel)

    async def delete_message(self, message_id: str, *, cancel: Optional[CancelToken] = None) -> None:
        await self._request_json("DELETE", self._path("messages", message_id), resource=Resource.MESSAGE, cancel=cancel)

    async def modify_labels(
        self,
        message_id: str,
        *,
        add: Iterable[str] = (),
        remove: Iterable[str] = (),
        cancel: Optional[CancelToken] = None,
    ) -> Dict[str, Any]:
        payload = await self._post_json(
            self._path("messages", message_id, "modify"),
            resource=Resource.MESSAGE,
            cancel=cancel,
            json_body={"addLabelIds": list(add), "removeLabelIds": list(remove)},
        )
        return self._expect_dict(payload, "label modification")

    async def archive(self, message_id: str, *, cancel: Optional[CancelToken] = None) -> Dict[str, Any]:
        return await self.modify_labels(message_id, remove=[LABEL_INBOX], cancel=cancel)

    async def list_drafts(self, *, max_results: Optional[int] = None, cancel: Optional[CancelToken] = None) -> List[Dict[str, Any]]:
        payload = await self._get_json(self._path("drafts"), resource=Resource.DRAFT, cancel=cancel, params={"maxResults": max_results or self.page_size})
        return list(self._expect_dict(payload, "draft list").get("drafts") or [])

    async def get_draft(self, draft_id: str, *, cancel: Optional[CancelToken] = None) -> Dict[str, Any]:
        payload = await self._get_json(self._path("drafts", draft_id), resource=Resource.DRAFT, cancel=cancel, params={"format": MESSAGE_FORMAT})
        return self._expect_dict(payload, "draft lookup")

    async def delete_draft(self, draft_id: str, *, cancel: Optional[CancelToken] = None) -> None:
        await self._request_json("DELETE", self._path("drafts", draft_id), resource=Resource.DRAFT, cancel=cancel)

    async def list_labels(self, *, cancel: Optional[CancelToken] = None) -> List[Dict[str, Any]]:
        payload = await self._get_json(self._path("labels"), resource=Resource.LABEL, cancel=cancel)
        return list(self._expect_dict(payload, "label list").get("labels") or [])

    async def get_label(self, label_id: str, *, cancel: Optional[CancelToken] = None) -> Dict[str, Any]:
        payload = await self._get_json(self._path("labels", label_id), resource=Resource.LABEL, cancel=cancel)
        return self._expect_dict(payload, "label lookup")

    async def get_thread(self, thread_id: str, *, cancel: Optional[CancelToken] = None) -> Dict[str, Any]:
        payload = await self._get_json(self._path("threads", thread_id), resource=Resource.THREAD, cancel=cancel, params={"format": MESSAGE_FORMAT})
        return self._expect_dict(payload, "thread lookup")


@dataclass(slots=True)
class GmailAdapter:
    """Adapter used for connectivity verification."""

    service_id: str = "gmail"
    client: GmailClient = field(default_factory=GmailClient)

    async def verify(self) -> VerificationResult:
        try:
            labels = await self.client.list_labels()
        except REMOTE_ERRORS as exc:
            return failed_verification("Gmail API", exc)
        return VerificationResult(
            success=True,
            message="Gmail API reachable.",
            details={"labels": len(labels), "inbox": any(label.get("id") == LABEL_INBOX for label in labels)},
        )
