import logging
from datetime import timedelta

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from bookwell.models import AvailabilityRules, Booking, NotificationPreferences, User
from bookwell.models.booking import CONFIRMED
from bookwell.scheduling.timemath import to_naive_utc, utcnow
from bookwell.side_effects import format_when


log = logging.getLogger(__name__)

scheduler = BackgroundScheduler(timezone="UTC")


def start_scheduler_once(app) -> None:
    if scheduler.running:
        return

    def drain_job():
        with app.app_context():
            delivered = app.extensions["outbox"].drain()
            if delivered:
                log.info("Outbox drained: %s effect(s) delivered", delivered)

    def digest_job():
        with app.app_context():
            send_daily_digests(app.extensions["notifications"])

    scheduler.add_job(
        func=drain_job,
        trigger=IntervalTrigger(seconds=app.config["OUTBOX_INTERVAL_SEC"]),
        id="outbox-drain",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )
    scheduler.add_job(
        func=digest_job,
        trigger=CronTrigger(hour=app.config["DIGEST_HOUR_UTC"], minute=0),
        id="daily-digest",
        replace_existing=True,
        misfire_grace_time=3600,
    )
    scheduler.start()
    log.info("Background scheduler started")


def upcoming_for_host(host_id: int, now, hours: int = 24) -> list:
    return (
        Booking.query.filter(
            Booking.host_id == host_id,
            Booking.status == CONFIRMED,
            Booking.start_utc >= to_naive_utc(now),
            Booking.start_utc < to_naive_utc(now + timedelta(hours=hours)),
        )
        .order_by(Booking.start_utc.asc())
        .all()
    )


def send_daily_digests(dispatcher, now=None) -> int:
    """Email every opted-in host their next 24 hours. Returns hosts emailed."""
    now = now or utcnow()
    sent = 0
    for host in User.query.order_by(User.id.asc()).all():
        if not NotificationPreferences.is_enabled(host.id, "daily_digest"):
            continue
        bookings = upcoming_for_host(host.id, now)
        if not bookings:
            continue
        tz_name = AvailabilityRules.for_host(host.id).timezone
        data = {
            "host_name": host.name,
            "timezone": tz_name,
            "bookings": [
                {
                    "start_label": format_when(b.start, tz_name),
                    "event_name": b.event_type.name,
                    "guest_name": b.guest_name,
                }
                for b in bookings
            ],
        }
        try:
            if dispatcher.send("daily_digest", host.email, data, user_id=host.id, preference="daily_digest"):
                sent += 1
        except Exception as e:
            log.warning("Daily digest for host %s failed: %s", host.id, e)
    return sent
