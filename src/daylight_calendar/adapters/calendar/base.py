from __future__ import annotations

from typing import Any, Protocol

from ...domain.models import CalendarListEntry


class CalendarProviderError(RuntimeError):
    """Raised when the events provider rejects or fails a request."""


class CalendarProvider(Protocol):
    def list_calendars(self, token: str) -> list[CalendarListEntry]:
        """Return every calendar visible to the token holder."""

    def list_events(
        self,
        token: str,
        calendar_id: str,
        *,
        time_min: str,
        time_max: str,
        time_zone: str,
    ) -> list[dict[str, Any]]:
        """Return raw, already-expanded event resources within the time window."""

    def create_event(self, token: str, calendar_id: str, payload: dict[str, Any]) -> dict[str, Any]:
        """Create an event and return the stored resource."""

    def update_event(
        self,
        token: str,
        calendar_id: str,
        event_id: str,
        payload: dict[str, Any],
    ) -> dict[str, Any]:
        """Replace an event and return the stored resource."""

    def delete_event(self, token: str, calendar_id: str, event_id: str) -> None:
        """Delete an event."""
