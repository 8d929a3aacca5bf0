import json
import logging
from datetime import datetime, timezone
from typing import Optional, List

import httplib2
from google.oauth2.credentials import Credentials
from google_auth_httplib2 import AuthorizedHttp
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from bookwell.models import CalendarToken
from bookwell.scheduling.collaborators import BusyCalendar
from bookwell.scheduling.errors import UpstreamUnavailableError
from bookwell.scheduling.timemath import Interval, parse_instant


log = logging.getLogger(__name__)

SCOPES = [
    "https://www.googleapis.com/auth/calendar",
]
DEFAULT_TIMEOUT_SEC = 5


def creds_from_json(creds_json: Optional[str]) -> Optional[Credentials]:
    if not creds_json:
        return None
    data = json.loads(creds_json)
    return Credentials.from_authorized_user_info(data, SCOPES)


def to_rfc3339(dt: datetime) -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat()


def calendar_service(creds: Credentials, timeout: float = DEFAULT_TIMEOUT_SEC):
    http = AuthorizedHttp(creds, http=httplib2.Http(timeout=timeout))
    return build('calendar', 'v3', http=http, cache_discovery=False)


def list_freebusy(creds_json: str, start: datetime, end: datetime, calendar_id: str = 'primary',
                  timeout: float = DEFAULT_TIMEOUT_SEC) -> List[dict]:
    creds = creds_from_json(creds_json)
    if not creds:
        return []
    service = calendar_service(creds, timeout)
    body = {
        "timeMin": to_rfc3339(start),
        "timeMax": to_rfc3339(end),
        "items": [{"id": calendar_id}],
    }
    resp = service.freebusy().query(body=body).execute()
    busy = resp.get('calendars', {}).get(calendar_id, {}).get('busy', [])
    return busy


def create_event_with_meet(
    creds_json: str,
    summary: str,
    start: datetime,
    end: datetime,
    attendees: List[dict],
    description: str = "",
    calendar_id: str = 'primary',
    request_id: Optional[str] = None,
    timeout: float = DEFAULT_TIMEOUT_SEC,
):
    creds = creds_from_json(creds_json)
    if not creds:
        raise RuntimeError("Google not connected")
    service = calendar_service(creds, timeout)
    event = {
        'summary': summary,
        'description': description,
        'start': {'dateTime': to_rfc3339(start)},
        'end': {'dateTime': to_rfc3339(end)},
        'attendees': attendees,
        'conferenceData': {
            'createRequest': {
                'requestId': request_id or f"req-{int(datetime.utcnow().timestamp())}",
                'conferenceSolutionKey': {'type': 'hangoutsMeet'},
            }
        },
    }
    created = service.events().insert(
        calendarId=calendar_id,
        body=event,
        conferenceDataVersion=1,
        sendUpdates='all',
    ).execute()
    meet_link = None
    conf = created.get('conferenceData', {})
    for ep in conf.get('entryPoints', []) or []:
        if ep.get('entryPointType') == 'video':
            meet_link = ep.get('uri')
            break
    return created.get('id'), meet_link


def cancel_event(creds_json: str, event_id: str, calendar_id: str = 'primary',
                 timeout: float = DEFAULT_TIMEOUT_SEC):
    creds = creds_from_json(creds_json)
    if not creds:
        return
    service = calendar_service(creds, timeout)
    try:
        service.events().delete(calendarId=calendar_id, eventId=event_id, sendUpdates='all').execute()
    except HttpError as e:
        # Already gone on Google's side
        if e.resp is not None and e.resp.status in (404, 410):
            return
        raise


class GoogleBusyCalendar(BusyCalendar):
    """Busy time and meeting events from the host's connected Google calendar."""

    def __init__(self, timeout: float = DEFAULT_TIMEOUT_SEC):
        self.timeout = timeout

    def _token(self, host_id) -> Optional[CalendarToken]:
        return CalendarToken.query.filter_by(user_id=host_id).first()

    def get_busy_intervals(self, host_id, window_start, window_end):
        token = self._token(host_id)
        if not token:
            return []
        try:
            busy = list_freebusy(token.credentials_json, window_start, window_end,
                                 calendar_id=token.calendar_id, timeout=self.timeout)
        except Exception as e:
            raise UpstreamUnavailableError(f"Google freebusy failed: {e}") from e
        return [Interval(parse_instant(b['start']), parse_instant(b['end'])) for b in busy]

    def create_event(self, host_id, booking):
        token = self._token(host_id)
        if not token:
            return None
        host = booking.host
        event_type = booking.event_type
        attendees = [{"email": booking.guest_email}]
        if host and host.email:
            attendees.insert(0, {"email": host.email})
        try:
            event_id, meet_link = create_event_with_meet(
                token.credentials_json,
                summary=f"{event_type.name}: {host.name if host else ''} x {booking.guest_name}",
                start=booking.start,
                end=booking.end,
                attendees=attendees,
                description=booking.notes or "",
                calendar_id=token.calendar_id,
                request_id=f"booking-{booking.id}-{int(booking.start.timestamp())}",
                timeout=self.timeout,
            )
        except Exception as e:
            raise UpstreamUnavailableError(f"Google event insert failed: {e}") from e
        log.info("Created calendar event %s for booking %s (meet: %s)", event_id, booking.id, meet_link)
        return event_id

    def delete_event(self, host_id, external_id):
        token = self._token(host_id)
        if not token or not external_id:
            return
        try:
            cancel_event(token.credentials_json, external_id,
                         calendar_id=token.calendar_id, timeout=self.timeout)
        except Exception as e:
            raise UpstreamUnavailableError(f"Google event delete failed: {e}") from e
