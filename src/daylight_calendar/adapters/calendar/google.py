from __future__ import annotations

import json
from typing import Any
from urllib.error import HTTPError, URLError
from urllib.parse import quote, urlencode
from urllib.request import Request, urlopen

from ...domain.models import CalendarListEntry
from .base import CalendarProviderError

GOOGLE_API_BASE = "https://www.googleapis.com/calendar/v3"
DEFAULT_TIMEOUT_SECONDS = 10
USER_AGENT = "daylight-calendar/0.1"
CALENDAR_LIST_PAGE_SIZE = 50
EVENTS_PAGE_SIZE = 2500


def _error_message(exc: HTTPError) -> str:
    try:
        body = json.loads(exc.read().decode("utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError):
        body = {}

    error = body.get("error") if isinstance(body, dict) else None
    message = error.get("message") if isinstance(error, dict) else None
    if isinstance(message, str) and message.strip():
        return message.strip()
    return f"Google API error ({exc.code})"


def _calendar_path(calendar_id: str) -> str:
    return f"/calendars/{quote(calendar_id, safe='')}/events"


def _calendar_entry(item: dict[str, Any]) -> CalendarListEntry | None:
    calendar_id = item.get("id")
    if not isinstance(calendar_id, str) or not calendar_id:
        return None
    summary = item.get("summary")
    return CalendarListEntry(
        id=calendar_id,
        summary=summary if isinstance(summary, str) and summary else calendar_id,
        primary=bool(item.get("primary")),
        background_color=item.get("backgroundColor"),
        foreground_color=item.get("foregroundColor"),
    )


class GoogleCalendarProvider:
    """Blocking client for the Google Calendar v3 REST API."""

    def __init__(
        self,
        *,
        base_url: str = GOOGLE_API_BASE,
        timeout_seconds: int = DEFAULT_TIMEOUT_SECONDS,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout_seconds = timeout_seconds

    def _request(
        self,
        method: str,
        path: str,
        token: str,
        *,
        params: dict[str, str] | None = None,
        payload: dict[str, Any] | None = None,
    ) -> dict[str, Any] | None:
        if not token:
            raise CalendarProviderError("Not authenticated")

        query = f"?{urlencode(params)}" if params else ""
        headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/json",
            "User-Agent": USER_AGENT,
        }
        data = None
        if payload is not None:
            data = json.dumps(payload).encode("utf-8")
            headers["Content-Type"] = "application/json"

        request = Request(f"{self._base_url}{path}{query}", data=data, headers=headers, method=method)
        try:
            with urlopen(request, timeout=self._timeout_seconds) as response:
                raw_body = response.read()
        except HTTPError as exc:
            raise CalendarProviderError(_error_message(exc)) from exc
        except (URLError, TimeoutError, OSError) as exc:
            raise CalendarProviderError(f"Unable to reach Google Calendar: {exc}") from exc

        if not raw_body:
            return None
        try:
            body = json.loads(raw_body.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise CalendarProviderError("Google Calendar returned a malformed response") from exc
        if not isinstance(body, dict):
            raise CalendarProviderError("Unexpected Google Calendar response shape")
        return body

    def _paged_items(self, path: str, token: str, params: dict[str, str]) -> list[dict[str, Any]]:
        items: list[dict[str, Any]] = []
        page_token: str | None = None
        while True:
            page_params = dict(params)
            if page_token:
                page_params["pageToken"] = page_token
            body = self._request("GET", path, token, params=page_params) or {}
            page_items = body.get("items")
            if isinstance(page_items, list):
                items.extend(item for item in page_items if isinstance(item, dict))
            next_token = body.get("nextPageToken")
            if not isinstance(next_token, str) or not next_token:
                return items
            page_token = next_token

    def list_calendars(self, token: str) -> list[CalendarListEntry]:
        items = self._paged_items(
            "/users/me/calendarList",
            token,
            {"maxResults": str(CALENDAR_LIST_PAGE_SIZE)},
        )
        return [entry for entry in (_calendar_entry(item) for item in items) if entry is not None]

    def list_events(
        self,
        token: str,
        calendar_id: str,
        *,
        time_min: str,
        time_max: str,
        time_zone: str,
    ) -> list[dict[str, Any]]:
        return self._paged_items(
            _calendar_path(calendar_id),
            token,
            {
                "timeMin": time_min,
                "timeMax": time_max,
                "timeZone": time_zone,
                "singleEvents": "true",
                "orderBy": "startTime",
                "showDeleted": "false",
                "maxResults": str(EVENTS_PAGE_SIZE),
            },
        )

    def create_event(self, token: str, calendar_id: str, payload: dict[str, Any]) -> dict[str, Any]:
        body = self._request("POST", _calendar_path(calendar_id), token, payload=payload)
        if body is None:
            raise CalendarProviderError("Google Calendar returned an empty response")
        return body

    def update_event(
        self,
        token: str,
        calendar_id: str,
        event_id: str,
        payload: dict[str, Any],
    ) -> dict[str, Any]:
        path = f"{_calendar_path(calendar_id)}/{quote(event_id, safe='')}"
        body = self._request("PUT", path, token, payload=payload)
        if body is None:
            raise CalendarProviderError("Google Calendar returned an empty response")
        return body

    def delete_event(self, token: str, calendar_id: str, event_id: str) -> None:
        path = f"{_calendar_path(calendar_id)}/{quote(event_id, safe='')}"
        self._request("DELETE", path, token)
