import logging
import os

import click
from dotenv import load_dotenv
from flask import Flask, jsonify
from flask_login import LoginManager
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
login_manager = LoginManager()

LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"


def env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def create_app(test_config=None):
    # Load .env if present to simplify local setup
    load_dotenv()
    app = Flask(__name__)

    # Basic config (override via env in production)
    app.config["SECRET_KEY"] = os.getenv("SECRET_KEY", "dev-secret-change-me")
    app.config["SQLALCHEMY_DATABASE_URI"] = os.getenv(
        "DATABASE_URL", f"sqlite:///{os.path.join(app.root_path, 'bookwell.db')}"
    )
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False
    app.config["BASE_URL"] = os.getenv("BASE_URL", "http://localhost:5000")
    app.config["LOG_LEVEL"] = os.getenv("LOG_LEVEL", "INFO")
    app.config["SLOT_QUANTUM_MINUTES"] = env_int("SLOT_QUANTUM_MINUTES", 30)
    app.config["MAX_BOOKING_WINDOW_DAYS"] = env_int("MAX_BOOKING_WINDOW_DAYS", 365)
    app.config["CANCELLATION_REASON_MAX_LENGTH"] = env_int("CANCELLATION_REASON_MAX_LENGTH", 1000)
    app.config["BUSY_FETCH_TIMEOUT_SEC"] = env_int("BUSY_FETCH_TIMEOUT_SEC", 5)
    app.config["LEDGER_LOCK_TIMEOUT_SEC"] = env_int("LEDGER_LOCK_TIMEOUT_SEC", 10)
    app.config["OUTBOX_INTERVAL_SEC"] = env_int("OUTBOX_INTERVAL_SEC", 30)
    app.config["OUTBOX_MAX_ATTEMPTS"] = env_int("OUTBOX_MAX_ATTEMPTS", 5)
    app.config["DIGEST_HOUR_UTC"] = env_int("DIGEST_HOUR_UTC", 7)
    app.config["SCHEDULER_ENABLED"] = env_flag("SCHEDULER_ENABLED", True)

    if test_config:
        app.config.update(test_config)

    logging.basicConfig(level=app.config["LOG_LEVEL"], format=LOG_FORMAT)

    # Init extensions
    db.init_app(app)
    login_manager.init_app(app)

    # Models import for SQLAlchemy configuration
    from . import models  # noqa: F401

    _init_scheduling(app)

    from .scheduling.errors import SchedulingError

    @app.errorhandler(SchedulingError)
    def handle_scheduling_error(e):
        return jsonify({"error": e.message}), e.status_code

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({"error": "Authentication required"}), 401

    # Blueprints
    from .auth.routes import auth_bp
    from .host.routes import host_bp
    from .public.routes import public_bp
    app.register_blueprint(auth_bp)
    app.register_blueprint(host_bp)
    app.register_blueprint(public_bp)

    # Create tables if not exist
    with app.app_context():
        db.create_all()

    _register_cli(app)

    if app.config["SCHEDULER_ENABLED"]:
        from .tasks import start_scheduler_once
        start_scheduler_once(app)

    return app


def _init_scheduling(app):
    """Build the engine once per app and hang it off ``app.extensions``."""
    from .briefs import BriefStore
    from .integrations.google_service import GoogleBusyCalendar
    from .notifications.dispatcher import EmailNotificationDispatcher
    from .scheduling.availability import AvailabilityResolver
    from .scheduling.ledger import BookingLedger
    from .scheduling.outbox import Outbox
    from .scheduling.service import SchedulingService
    from .scheduling.timemath import utcnow
    from .side_effects import SideEffects

    busy_calendar = app.config.get("BUSY_CALENDAR") or GoogleBusyCalendar(
        timeout=app.config["BUSY_FETCH_TIMEOUT_SEC"]
    )
    dispatcher = app.config.get("NOTIFICATION_DISPATCHER") or EmailNotificationDispatcher()
    clock = app.config.get("CLOCK") or utcnow

    ledger = BookingLedger(
        lock_timeout=app.config["LEDGER_LOCK_TIMEOUT_SEC"],
        artifact_store=BriefStore(),
        reason_max_length=app.config["CANCELLATION_REASON_MAX_LENGTH"],
    )
    resolver = AvailabilityResolver(ledger, busy_calendar, quantum_minutes=app.config["SLOT_QUANTUM_MINUTES"])
    outbox = Outbox(max_attempts=app.config["OUTBOX_MAX_ATTEMPTS"])
    SideEffects(busy_calendar, dispatcher, base_url=app.config["BASE_URL"]).register(outbox)

    app.extensions["ledger"] = ledger
    app.extensions["outbox"] = outbox
    app.extensions["notifications"] = dispatcher
    app.extensions["busy_calendar"] = busy_calendar
    app.extensions["scheduling"] = SchedulingService(
        ledger, resolver, outbox=outbox, clock=clock,
        max_window_days=app.config["MAX_BOOKING_WINDOW_DAYS"],
    )


def _register_cli(app):
    # CLI helpers
    @app.cli.command("create-user")
    @click.option("--email", prompt=True)
    @click.option("--name", prompt=True)
    @click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True)
    def create_user(email, name, password):
        """Create a host account."""
        from .models import User

        if User.query.filter_by(email=email.lower().strip()).first():
            click.echo("User already exists")
            return
        user = User(email=email.lower().strip(), name=name.strip())
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        click.echo(f"Created user: {user.email}")

    @app.cli.command("drain-outbox")
    @click.option("--limit", default=100, show_default=True)
    def drain_outbox(limit):
        """Deliver pending calendar syncs and emails now."""
        delivered = app.extensions["outbox"].drain(limit=limit)
        click.echo(f"Delivered {delivered} effect(s)")

    @app.cli.command("send-digest")
    def send_digest():
        """Send today's daily digest to every opted-in host."""
        from .tasks import send_daily_digests

        sent = send_daily_digests(app.extensions["notifications"])
        click.echo(f"Sent {sent} digest(s)")
