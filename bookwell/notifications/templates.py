"""
Email templates.

Each builder takes the notification data dict and returns an
``EmailTemplate``. Every value interpolated into HTML goes through
``markupsafe.escape``.
"""

from collections import namedtuple

from markupsafe import escape


EmailTemplate = namedtuple("EmailTemplate", ["subject", "html", "text"])

NOTICE_WARNING = "This change was made inside the host's minimum notice period."


def _layout(title: str, body: str) -> str:
    return (
        "<!DOCTYPE html>\n"
        "<html><head><meta charset=\"utf-8\">"
        f"<title>{escape(title)}</title></head>"
        "<body style=\"font-family: sans-serif; color: #222;\">"
        f"<h2>{escape(title)}</h2>{body}"
        "</body></html>"
    )


def _details_html(data: dict) -> str:
    rows = [
        ("What", data.get("event_name")),
        ("When", data.get("start_label")),
        ("Timezone", data.get("timezone")),
        ("Duration", f"{data.get('duration')} minutes" if data.get("duration") else None),
    ]
    items = "".join(
        f"<li><strong>{escape(label)}:</strong> {escape(value)}</li>"
        for label, value in rows if value
    )
    return f"<ul>{items}</ul>"


def _details_text(data: dict) -> str:
    lines = [
        f"What: {data.get('event_name')}",
        f"When: {data.get('start_label')} ({data.get('timezone')})",
    ]
    if data.get("duration"):
        lines.append(f"Duration: {data['duration']} minutes")
    return "\n".join(lines)


def _manage_links(data: dict):
    html, text = "", ""
    if data.get("reschedule_url"):
        html += f"<p><a href=\"{escape(data['reschedule_url'])}\">Reschedule</a></p>"
        text += f"Reschedule: {data['reschedule_url']}\n"
    if data.get("cancel_url"):
        html += f"<p><a href=\"{escape(data['cancel_url'])}\">Cancel</a></p>"
        text += f"Cancel: {data['cancel_url']}\n"
    return html, text


def booking_confirmation(data: dict) -> EmailTemplate:
    subject = f"Confirmed: {data.get('event_name')} with {data.get('host_name')}"
    links_html, links_text = _manage_links(data)
    html = _layout(
        "Your meeting is booked",
        f"<p>Hi {escape(data.get('guest_name'))},</p>"
        f"<p>You're scheduled with {escape(data.get('host_name'))}.</p>"
        + _details_html(data) + links_html,
    )
    text = (
        f"Hi {data.get('guest_name')},\n\n"
        f"You're scheduled with {data.get('host_name')}.\n\n"
        f"{_details_text(data)}\n\n{links_text}"
    )
    return EmailTemplate(subject, html, text)


def host_new_booking(data: dict) -> EmailTemplate:
    subject = f"New booking: {data.get('guest_name')} ({data.get('event_name')})"
    extra = [
        ("Guest", f"{data.get('guest_name')} <{data.get('guest_email')}>"),
        ("Phone", data.get("guest_phone")),
        ("Company", data.get("guest_company")),
        ("Notes", data.get("notes")),
    ]
    extra_html = "".join(
        f"<p><strong>{escape(label)}:</strong> {escape(value)}</p>" for label, value in extra if value
    )
    extra_text = "\n".join(f"{label}: {value}" for label, value in extra if value)
    html = _layout("New booking", _details_html(data) + extra_html)
    text = f"New booking\n\n{_details_text(data)}\n{extra_text}\n"
    return EmailTemplate(subject, html, text)


def _cancellation(data: dict, greeting_name: str, intro: str) -> EmailTemplate:
    subject = f"Cancelled: {data.get('event_name')} on {data.get('start_label')}"
    body_html = f"<p>Hi {escape(greeting_name)},</p><p>{escape(intro)}</p>" + _details_html(data)
    body_text = f"Hi {greeting_name},\n\n{intro}\n\n{_details_text(data)}\n"
    if data.get("reason"):
        body_html += f"<p><strong>Reason:</strong> {escape(data['reason'])}</p>"
        body_text += f"\nReason: {data['reason']}\n"
    if data.get("within_notice_period"):
        body_html += f"<p><em>{escape(NOTICE_WARNING)}</em></p>"
        body_text += f"\n{NOTICE_WARNING}\n"
    return EmailTemplate(subject, _layout("Meeting cancelled", body_html), body_text)


def cancellation_booker(data: dict) -> EmailTemplate:
    if data.get("cancelled_by") == "host":
        intro = f"{data.get('host_name')} cancelled your meeting."
    else:
        intro = "Your meeting has been cancelled."
    return _cancellation(data, data.get("guest_name"), intro)


def cancellation_host(data: dict) -> EmailTemplate:
    intro = f"Your meeting with {data.get('guest_name')} has been cancelled."
    return _cancellation(data, data.get("host_name"), intro)


def _reschedule(data: dict, greeting_name: str, intro: str, links: bool) -> EmailTemplate:
    subject = f"Rescheduled: {data.get('event_name')} is now {data.get('start_label')}"
    body_html = f"<p>Hi {escape(greeting_name)},</p><p>{escape(intro)}</p>"
    body_text = f"Hi {greeting_name},\n\n{intro}\n\n"
    if data.get("old_start_label"):
        body_html += f"<p><s>{escape(data['old_start_label'])}</s></p>"
        body_text += f"Previously: {data['old_start_label']}\n"
    body_html += _details_html(data)
    body_text += _details_text(data) + "\n"
    if data.get("within_notice_period"):
        body_html += f"<p><em>{escape(NOTICE_WARNING)}</em></p>"
        body_text += f"\n{NOTICE_WARNING}\n"
    if links:
        links_html, links_text = _manage_links(data)
        body_html += links_html
        body_text += "\n" + links_text
    return EmailTemplate(subject, _layout("Meeting rescheduled", body_html), body_text)


def reschedule_booker(data: dict) -> EmailTemplate:
    if data.get("initiated_by") == "host":
        intro = f"{data.get('host_name')} moved your meeting to a new time."
    else:
        intro = "Your meeting has been moved to a new time."
    return _reschedule(data, data.get("guest_name"), intro, links=True)


def reschedule_host(data: dict) -> EmailTemplate:
    intro = f"Your meeting with {data.get('guest_name')} has been moved."
    return _reschedule(data, data.get("host_name"), intro, links=False)


def daily_digest(data: dict) -> EmailTemplate:
    bookings = data.get("bookings") or []
    subject = f"Your schedule: {len(bookings)} meeting(s) in the next 24 hours"
    if bookings:
        items = "".join(
            f"<li>{escape(b['start_label'])}: {escape(b['event_name'])} with {escape(b['guest_name'])}</li>"
            for b in bookings
        )
        body_html = f"<ul>{items}</ul>"
        body_text = "\n".join(
            f"- {b['start_label']}: {b['event_name']} with {b['guest_name']}" for b in bookings
        )
    else:
        body_html = "<p>No meetings scheduled.</p>"
        body_text = "No meetings scheduled."
    html = _layout(f"Good morning, {data.get('host_name')}", body_html)
    text = f"Good morning, {data.get('host_name')}\n\n{body_text}\n"
    return EmailTemplate(subject, html, text)


TEMPLATES = {
    "booking_confirmation": booking_confirmation,
    "host_new_booking": host_new_booking,
    "cancellation_booker": cancellation_booker,
    "cancellation_host": cancellation_host,
    "reschedule_booker": reschedule_booker,
    "reschedule_host": reschedule_host,
    "daily_digest": daily_digest,
}


def render(template: str, data: dict) -> EmailTemplate:
    try:
        builder = TEMPLATES[template]
    except KeyError:
        raise ValueError(f"Unknown email template: {template}") from None
    return builder(data)
