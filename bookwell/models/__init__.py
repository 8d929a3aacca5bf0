from .user import User
from .availability_rules import AvailabilityRules
from .event_type import EventType
from .booking import Booking
from .notification_preferences import NotificationPreferences
from .meeting_brief import MeetingBrief
from .calendar_token import CalendarToken
from .outbox_effect import OutboxEffect

__all__ = [
    "User",
    "AvailabilityRules",
    "EventType",
    "Booking",
    "NotificationPreferences",
    "MeetingBrief",
    "CalendarToken",
    "OutboxEffect",
]
