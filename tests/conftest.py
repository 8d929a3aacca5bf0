import json
from datetime import datetime, timezone

import pytest

from bookwell import create_app, db
from bookwell.models import AvailabilityRules, EventType, User
from bookwell.scheduling.collaborators import BusyCalendar, NotificationDispatcher
from bookwell.scheduling.ledger import BookingDraft


# Monday
NOW = datetime(2026, 2, 9, 12, 0, tzinfo=timezone.utc)


class FakeBusyCalendar(BusyCalendar):

    def __init__(self):
        self.busy = []
        self.fail = False
        self.created = []
        self.deleted = []
        self._next_id = 0

    def get_busy_intervals(self, host_id, window_start, window_end):
        if self.fail:
            raise RuntimeError("calendar down")
        return list(self.busy)

    def create_event(self, host_id, booking):
        if self.fail:
            raise RuntimeError("calendar down")
        self._next_id += 1
        event_id = f"evt-{self._next_id}"
        self.created.append((host_id, booking.id, event_id))
        return event_id

    def delete_event(self, host_id, external_id):
        if self.fail:
            raise RuntimeError("calendar down")
        self.deleted.append((host_id, external_id))


class RecordingDispatcher(NotificationDispatcher):

    def __init__(self):
        self.sent = []

    def send(self, template, recipient, data, user_id=None, preference=None):
        from bookwell.models import NotificationPreferences

        if user_id is not None and preference and not NotificationPreferences.is_enabled(user_id, preference):
            return False
        self.sent.append((template, recipient, data))
        return True

    def templates(self):
        return [t for t, _, _ in self.sent]


class Clock:

    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def busy_calendar():
    return FakeBusyCalendar()


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


@pytest.fixture
def clock():
    return Clock(NOW)


@pytest.fixture
def app(tmp_path, busy_calendar, dispatcher, clock):
    app = create_app({
        "TESTING": True,
        "SECRET_KEY": "test",
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path / 'test.db'}",
        "SCHEDULER_ENABLED": False,
        "BUSY_CALENDAR": busy_calendar,
        "NOTIFICATION_DISPATCHER": dispatcher,
        "CLOCK": clock,
        "LEDGER_LOCK_TIMEOUT_SEC": 5,
    })
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def service(app):
    return app.extensions["scheduling"]


@pytest.fixture
def ledger(app):
    return app.extensions["ledger"]


@pytest.fixture
def outbox(app):
    return app.extensions["outbox"]


def make_host(email="host@example.com", name="Hannah Host", password="password123"):
    user = User(email=email, name=name)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    return user


def set_rules(host, tz="UTC", weekly_hours=None, min_notice=60, max_advance=30,
              buffer_before=0, buffer_after=0):
    rules = AvailabilityRules(
        user_id=host.id,
        timezone=tz,
        weekly_hours=json.dumps(weekly_hours) if weekly_hours is not None else None,
        min_notice_min=min_notice,
        max_advance_days=max_advance,
        default_buffer_before=buffer_before,
        default_buffer_after=buffer_after,
    )
    db.session.add(rules)
    db.session.commit()
    return rules


def make_event_type(host, name="Intro Call", duration=30, buffer_before=None, buffer_after=None,
                    is_active=True):
    et = EventType(
        user_id=host.id,
        name=name,
        slug=EventType.generate_slug(name),
        duration_min=duration,
        buffer_before=buffer_before,
        buffer_after=buffer_after,
        is_active=is_active,
    )
    db.session.add(et)
    db.session.commit()
    return et


def draft(event_type, start, name="Gus Guest", email="gus@example.com", tz="UTC"):
    return BookingDraft(event_type=event_type, guest_name=name, guest_email=email, start=start, timezone=tz)


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


@pytest.fixture
def host(app):
    return make_host()


@pytest.fixture
def rules(host):
    return set_rules(host)


@pytest.fixture
def event_type(host, rules):
    return make_event_type(host)


@pytest.fixture
def login(client, host):
    resp = client.post("/auth/login", json={"email": "host@example.com", "password": "password123"})
    assert resp.status_code == 200
    return client
