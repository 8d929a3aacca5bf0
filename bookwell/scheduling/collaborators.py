"""
Interfaces the engine consumes from outside collaborators.

The engine only needs busy intervals and event create/delete from a calendar,
a way to send templated notifications, and a hook to drop cached per-booking
artifacts. Concrete adapters live in ``bookwell.integrations`` and
``bookwell.notifications``.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional


class BusyCalendar(ABC):

    @abstractmethod
    def get_busy_intervals(self, host_id: int, window_start: datetime, window_end: datetime) -> List:
        """Return busy ``Interval``s (UTC) overlapping the window.

        May raise anything; callers computing availability treat failures as
        "no external busy data".
        """

    @abstractmethod
    def create_event(self, host_id: int, booking) -> Optional[str]:
        """Create the calendar event for a booking; return its external id."""

    @abstractmethod
    def delete_event(self, host_id: int, external_id: str) -> None:
        """Delete a previously created event."""


class NotificationDispatcher(ABC):

    @abstractmethod
    def send(self, template: str, recipient: str, data: dict,
             user_id: Optional[int] = None, preference: Optional[str] = None) -> bool:
        """Render ``template`` with ``data`` and deliver it to ``recipient``.

        When ``user_id`` and ``preference`` are given the recipient's
        notification preferences decide whether anything is sent. Returns
        whether a message went out.
        """


class DerivedArtifactStore(ABC):

    @abstractmethod
    def invalidate(self, booking_id: int) -> None:
        """Discard any cached artifact prepared for the booking's old time."""
