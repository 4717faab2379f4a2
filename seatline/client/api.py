"""Async REST client for the Seatline API."""

import httpx

from seatline.messages.schemas import ReceivedMessage, ReceivedPage, SentMessage, SentPage

PAGE_SIZE = 100


class ApiError(Exception):
    """A non-2xx response from the API."""

    def __init__(self, status_code: int, code: str, message: str):
        self.status_code = status_code
        self.code = code
        self.message = message
        super().__init__(f"{status_code} {code}: {message}")


class SeatlineClient:
    """Thin wrapper over ``httpx.AsyncClient`` that decodes the response envelope.

    Pass ``http`` to share a connection pool or to drive an in-process app
    through ``httpx.ASGITransport``; otherwise a client is created from
    ``base_url`` and owned by this instance.
    """

    def __init__(self, base_url: str = "", http: httpx.AsyncClient | None = None, timeout: float = 10.0):
        self._owns_http = http is None
        self.http = http or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    async def aclose(self) -> None:
        if self._owns_http:
            await self.http.aclose()

    async def __aenter__(self) -> "SeatlineClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> dict:
        resp = await self.http.request(method, path, **kwargs)
        try:
            body = resp.json()
        except ValueError:
            body = {}
        if resp.is_error:
            error = body.get("error", {}) if isinstance(body, dict) else {}
            raise ApiError(resp.status_code, error.get("code", "HTTP_ERROR"), error.get("message", resp.text))
        return body

    async def create_message(
        self,
        from_role_id: str,
        to_role_id: str,
        text: str,
        kind: str = "request",
        in_reply_to: str | None = None,
    ) -> str:
        payload = {"fromRoleId": from_role_id, "toRoleId": to_role_id, "text": text, "kind": kind}
        if in_reply_to:
            payload["inReplyTo"] = in_reply_to
        body = await self._request("POST", "/api/v1/messages", json=payload)
        return body["data"]["id"]

    async def get_role(self, role_id: str) -> dict:
        body = await self._request("GET", f"/api/v1/roles/{role_id}")
        return body["data"]

    async def list_sent(self, role_id: str, cursor: str | None = None, limit: int = PAGE_SIZE) -> SentPage:
        params = {"limit": limit}
        if cursor:
            params["cursor"] = cursor
        body = await self._request("GET", f"/api/v1/roles/{role_id}/messages/sent", params=params)
        return SentPage.model_validate(body)

    async def list_received(self, role_id: str, cursor: str | None = None, limit: int = PAGE_SIZE) -> ReceivedPage:
        params = {"limit": limit}
        if cursor:
            params["cursor"] = cursor
        body = await self._request("GET", f"/api/v1/roles/{role_id}/messages/received", params=params)
        return ReceivedPage.model_validate(body)

    async def fetch_recent(
        self, role_id: str, box: str, limit: int = 200
    ) -> list[SentMessage] | list[ReceivedMessage]:
        """Up to ``limit`` newest messages of one mailbox (``"sent"`` or ``"received"``)."""
        fetch = self.list_sent if box == "sent" else self.list_received
        items: list = []
        cursor = None
        while len(items) < limit:
            page = await fetch(role_id, cursor=cursor, limit=min(PAGE_SIZE, limit - len(items)))
            items.extend(page.data)
            cursor = page.next_cursor
            if not cursor:
                break
        return items[:limit]
