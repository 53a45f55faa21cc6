"""Flask application providing the booking calendar UI."""

from __future__ import annotations

import calendar
import datetime as dt
import logging
import os
import threading
import time
import uuid
from collections import OrderedDict
from typing import Any

from flask import (
    Flask,
    Response,
    abort,
    flash,
    jsonify,
    redirect,
    render_template,
    request,
    session,
    url_for,
)

from tucing.bookings.dashboard import TABS, AuthContext, BookingIntent, Dashboard, format_currency
from tucing.bookings.models import AuthorizationError, ServiceType, ValidationError, parse_date
from tucing.bookings.selection import (
    DoubleClick,
    RangeSelected,
    SelectionEvent,
    SelectionStateMachine,
)
from tucing.bookings.store import BookingStore, build_store
from tucing.bookings.timers import ManualScheduler
from tucing.config import config

PUBLIC_ENDPOINTS = {"login", "static"}


class SelectionSessions:
    """One selection machine per browser session, driven by client clocks.

    At most ``limit`` machines are kept; the least recently used one is
    dropped first. ``lock`` serializes gestures across request threads.
    """

    def __init__(self, window: float, limit: int = 1024) -> None:
        self.window = window
        self.limit = limit
        self.lock = threading.RLock()
        self._sessions: OrderedDict[str, tuple[SelectionStateMachine, list[SelectionEvent]]] = (
            OrderedDict()
        )
        self._offsets: dict[str, float] = {}

    def get(self, key: str) -> tuple[SelectionStateMachine, list[SelectionEvent]]:
        with self.lock:
            if key in self._sessions:
                self._sessions.move_to_end(key)
                return self._sessions[key]
            outbox: list[SelectionEvent] = []
            machine = SelectionStateMachine(
                ManualScheduler(), on_event=outbox.append, window=self.window
            )
            self._sessions[key] = (machine, outbox)
            while len(self._sessions) > self.limit:
                dropped, _ = self._sessions.popitem(last=False)
                self._offsets.pop(dropped, None)
            return machine, outbox

    def clock(self, key: str, at: Any = None) -> float:
        """Session time of an event, in seconds.

        ``at`` is the browser's clock. Events without it use server time
        shifted by the offset of the last event that had one, so a session
        only ever sees a single timeline.
        """

        with self.lock:
            if isinstance(at, (int, float)) and not isinstance(at, bool):
                self._offsets[key] = float(at) - time.time()
                return float(at)
            return time.time() + self._offsets.get(key, 0.0)

    def discard(self, key: str) -> None:
        with self.lock:
            self._sessions.pop(key, None)
            self._offsets.pop(key, None)

    def __len__(self) -> int:
        return len(self._sessions)


def configure_logging(app: Flask) -> None:
    """Configure application logging."""

    if not app.debug and not app.testing:
        log_file = os.path.abspath(app.config["LOG_FILE"])
        package_logger = logging.getLogger("tucing")
        if any(
            isinstance(handler, logging.FileHandler) and handler.baseFilename == log_file
            for handler in package_logger.handlers
        ):
            return
        os.makedirs(os.path.dirname(log_file), exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]")
        )
        file_handler.setLevel(logging.INFO)
        app.logger.addHandler(file_handler)
        package_logger.addHandler(file_handler)
        package_logger.setLevel(logging.INFO)
        app.logger.setLevel(logging.INFO)
        app.logger.info("Tucing calendar startup")
    else:
        app.logger.setLevel(logging.DEBUG)


def create_app(config_name: str | None = None, overrides: dict[str, Any] | None = None) -> Flask:
    """Create and configure the Flask application."""

    if config_name is None:
        config_name = os.environ.get("FLASK_ENV", "development")

    app = Flask(
        __name__,
        template_folder="templates",
        static_folder="static",
    )
    app.config.from_object(config[config_name])
    if overrides:
        app.config.update(overrides)
    configure_logging(app)

    store = build_store(app.config)
    selections = SelectionSessions(
        app.config["DOUBLE_CLICK_WINDOW_MS"] / 1000, app.config["SELECTION_SESSION_LIMIT"]
    )
    app.extensions["booking_store"] = store
    app.extensions["selection_sessions"] = selections

    def current_auth() -> AuthContext:
        return AuthContext(authenticated=bool(session.get("authenticated")))

    def current_dashboard() -> Dashboard:
        return Dashboard(store, current_auth(), max_per_day=app.config["MAX_BOOKINGS_PER_DAY"])

    def current_selection() -> tuple[SelectionStateMachine, list[SelectionEvent]]:
        if "selection_id" not in session:
            session["selection_id"] = uuid.uuid4().hex
        return selections.get(session["selection_id"])

    def flash_store_warning(target: BookingStore) -> None:
        warning = target.take_warning()
        if warning:
            flash(warning, "warning")

    @app.before_request
    def require_login() -> None:
        if request.endpoint not in PUBLIC_ENDPOINTS:
            current_auth().require()

    @app.errorhandler(AuthorizationError)
    def handle_unauthorized(exc: AuthorizationError) -> Any:
        if request.path.startswith("/api/"):
            return jsonify(error=str(exc)), 401
        return redirect(url_for("login"))

    @app.context_processor
    def inject_navigation() -> dict[str, Any]:
        return {
            "app_name": app.config["APP_NAME"],
            "current_year": dt.date.today().year,
            "format_currency": lambda amount: format_currency(
                amount, app.config["CURRENCY_LABEL"]
            ),
            "ServiceType": ServiceType,
        }

    @app.route("/login", methods=["GET", "POST"])
    def login() -> Any:
        if session.get("authenticated"):
            return redirect(url_for("dashboard"))
        if request.method == "POST":
            auth = AuthContext.login(
                request.form.get("password", ""), app.config["ACCESS_PASSWORD"]
            )
            if auth.authenticated:
                session["authenticated"] = True
                return redirect(url_for("dashboard"))
            flash("Incorrect password. Please try again.", "error")
            return render_template("login.html"), 401
        return render_template("login.html")

    @app.post("/logout")
    def logout() -> Any:
        if "selection_id" in session:
            selections.discard(session["selection_id"])
        session.clear()
        return redirect(url_for("login"))

    @app.get("/")
    def dashboard() -> Any:
        board = current_dashboard()
        # pick up rows written by other clients of the remote store
        store.load()
        machine, _ = current_selection()
        tab = request.args.get("tab", "all")
        weeks = board.calendar(machine.year, machine.month)
        flash_store_warning(store)
        return render_template(
            "dashboard.html",
            weeks=weeks,
            month_name=calendar.month_name[machine.month],
            selection=machine.snapshot(),
            click_window_ms=app.config["DOUBLE_CLICK_WINDOW_MS"],
            bookings=board.table(tab),
            tab=tab if tab in TABS else "all",
            tabs=TABS,
        )

    @app.post("/calendar/navigate")
    def navigate() -> Any:
        machine, outbox = current_selection()
        delta = request.form.get("delta", type=int) or 0
        if delta not in (-1, 1):
            abort(400)
        with selections.lock:
            machine.navigate(delta)
            outbox.clear()
        return redirect(url_for("dashboard"))

    @app.post("/api/calendar/events")
    def calendar_event() -> Any:
        board = current_dashboard()
        machine, outbox = current_selection()
        payload = request.get_json(silent=True) or {}
        kind = payload.get("type")
        with selections.lock:
            now = selections.clock(session["selection_id"], payload.get("at"))
            machine.scheduler.advance_to(now)
            try:
                if kind == "click":
                    machine.click(int(payload["day"]))
                elif kind == "hover":
                    machine.hover(int(payload["day"]))
                elif kind == "leave":
                    machine.leave()
                elif kind != "tick":
                    raise ValueError(f"Unknown calendar event {kind!r}")
            except (KeyError, TypeError, ValueError) as exc:
                return jsonify(error=str(exc)), 400
            fired = list(outbox)
            outbox.clear()
            state = machine.snapshot()

        events = []
        for event in fired:
            intent = board.handle_event(event)
            events.append(
                {
                    "type": "range" if isinstance(event, RangeSelected) else "double_click",
                    "start_date": intent.start_date.isoformat() if intent.start_date else None,
                    "end_date": intent.end_date.isoformat() if intent.end_date else None,
                    "service_type": intent.service_type.value if intent.service_type else None,
                    "form_url": url_for("new_booking", **intent.query_args()),
                }
            )
        return jsonify(events=events, state=state)

    def intent_from_args() -> BookingIntent:
        try:
            start_date = parse_date(request.args["start_date"]) if request.args.get("start_date") else None
            end_date = parse_date(request.args["end_date"]) if request.args.get("end_date") else None
            service_type = (
                ServiceType(request.args["service_type"]) if request.args.get("service_type") else None
            )
        except ValueError:
            abort(400)
        if start_date is None:
            return BookingIntent.for_date(dt.date.today())
        if service_type is ServiceType.BOARDING and end_date is not None:
            return BookingIntent.from_event(RangeSelected(start_date, end_date))
        if service_type is ServiceType.GROOMING:
            return BookingIntent.from_event(DoubleClick(start_date))
        return BookingIntent.for_date(start_date)

    @app.get("/bookings/new")
    def new_booking() -> Any:
        intent = intent_from_args()
        return render_template(
            "booking_form.html", values=intent.defaults(), errors={}, booking=None
        )

    @app.post("/bookings")
    def create_booking() -> Any:
        board = current_dashboard()
        try:
            booking = board.save(request.form, BookingIntent())
        except ValidationError as exc:
            flash(str(exc), "error")
            return (
                render_template(
                    "booking_form.html", values=request.form, errors=exc.errors, booking=None
                ),
                400,
            )
        flash_store_warning(store)
        flash(f"Booking for {booking.cat_name} created", "success")
        return redirect(url_for("dashboard"))

    @app.route("/bookings/<booking_id>/edit", methods=["GET", "POST"])
    def edit_booking(booking_id: str) -> Any:
        board = current_dashboard()
        existing = board.get(booking_id)
        if existing is None:
            abort(404)
        intent = BookingIntent.for_edit(existing)
        if request.method == "POST":
            try:
                booking = board.save(request.form, intent)
            except ValidationError as exc:
                flash(str(exc), "error")
                values = {**request.form, "service_type": existing.service_type.value}
                return (
                    render_template(
                        "booking_form.html", values=values, errors=exc.errors, booking=existing
                    ),
                    400,
                )
            flash_store_warning(store)
            flash(f"Booking for {booking.cat_name} updated", "success")
            return redirect(url_for("dashboard"))
        return render_template(
            "booking_form.html", values=intent.defaults(), errors={}, booking=existing
        )

    @app.post("/bookings/<booking_id>/delete")
    def delete_booking(booking_id: str) -> Any:
        current_dashboard().delete(booking_id)
        flash_store_warning(store)
        return redirect(request.referrer or url_for("dashboard"))

    @app.get("/bookings/export")
    def export_bookings() -> Any:
        return Response(
            store.export_bookings(),
            mimetype="application/json",
            headers={"Content-Disposition": "attachment; filename=tucing-bookings.json"},
        )

    @app.post("/bookings/import")
    def import_bookings() -> Any:
        upload = request.files.get("file")
        payload = upload.read().decode("utf-8", errors="replace") if upload else request.form.get("payload", "")
        if store.import_bookings(payload):
            flash("Bookings imported", "success")
        else:
            flash("Could not read that bookings file", "error")
        return redirect(url_for("dashboard"))

    return app


__all__ = ["SelectionSessions", "configure_logging", "create_app"]
