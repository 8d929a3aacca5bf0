import logging
from typing import Optional

from bookwell.models import NotificationPreferences
from bookwell.scheduling.collaborators import NotificationDispatcher

from .email_service import send_email
from .templates import render


log = logging.getLogger(__name__)


class EmailNotificationDispatcher(NotificationDispatcher):

    def send(self, template: str, recipient: str, data: dict,
             user_id: Optional[int] = None, preference: Optional[str] = None) -> bool:
        if user_id is not None and preference:
            if not NotificationPreferences.is_enabled(user_id, preference):
                log.info("User %s opted out of %s, skipping %s", user_id, preference, template)
                return False
        message = render(template, data)
        return send_email(recipient, message.subject, message.text, message.html)
