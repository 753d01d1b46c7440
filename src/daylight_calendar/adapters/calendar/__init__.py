from .base import CalendarProvider, CalendarProviderError
from .google import GoogleCalendarProvider
from .memory import InMemoryCalendarProvider

__all__ = [
    "CalendarProvider",
    "CalendarProviderError",
    "GoogleCalendarProvider",
    "InMemoryCalendarProvider",
]
