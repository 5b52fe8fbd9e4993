import os

from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException

from tenderhub.config import Config
from tenderhub.db import close_db, init_db
from tenderhub.db_migrations import register_db_cli
from tenderhub.observability import (
    configure_json_logging,
    ensure_request_id,
    mark_request_start,
    metrics_snapshot,
    observe_response,
    prometheus_metrics_text,
)
from tenderhub.security import apply_security_headers, enforce_rate_limit


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class() if isinstance(config_class, type) else config_class)
    configure_json_logging(app)

    _ensure_database_dir(app)
    _register_error_handlers(app)
    _register_auth(app)
    _register_security(app)
    _register_engine(app)
    _register_blueprints(app)
    _register_health(app)
    register_db_cli(app)
    _register_cli(app)
    _maybe_init_schema(app)

    _register_scheduler(app)
    app.teardown_appcontext(close_db)
    return app


def _ensure_database_dir(app: Flask) -> None:
    database_dir = app.config.get("DATABASE_DIR")
    if database_dir:
        os.makedirs(database_dir, exist_ok=True)


def _maybe_init_schema(app: Flask) -> None:
    auto_init = bool(app.config.get("DB_AUTO_INIT", False))
    if app.testing:
        # Tests build their own throw-away schema without running migrations.
        auto_init = True
    if not auto_init:
        return

    flask_env = (os.environ.get("FLASK_ENV", "development") or "development").strip().lower()
    if not app.testing and flask_env != "development":
        app.logger.warning("DB_AUTO_INIT ignored outside development.")
        return

    with app.app_context():
        init_db()


def _register_engine(app: Flask) -> None:
    from tenderhub.core import EventBus
    from tenderhub.notifications.dispatcher import NotificationDispatcher
    from tenderhub.notifications.push import build_push_transport
    from tenderhub.tenders.notifier import TenderNotifier
    from tenderhub.tenders.workflow import TenderWorkflow

    bus = EventBus()
    app.extensions["event_bus"] = bus

    dispatcher = NotificationDispatcher(
        app,
        mode=str(app.config.get("NOTIFICATION_DISPATCH_MODE") or "inline").strip().lower(),
        max_workers=int(app.config.get("NOTIFICATION_MAX_WORKERS", 4) or 4),
        push=build_push_transport(app.config),
    )
    app.extensions["notification_dispatcher"] = dispatcher

    workflow = TenderWorkflow.from_app(app)
    app.extensions["tender_workflow"] = workflow
    TenderNotifier(dispatcher, workflow.lifecycle).register(bus)


def _register_blueprints(app: Flask) -> None:
    from tenderhub.routes.notification_routes import notifications_bp
    from tenderhub.routes.tender_routes import tenders_bp

    app.register_blueprint(tenders_bp)
    app.register_blueprint(notifications_bp)


def _register_auth(app: Flask) -> None:
    from tenderhub.auth import register_auth

    register_auth(app)


def _register_cli(app: Flask) -> None:
    from tenderhub.tenders.cli import register_tender_cli

    register_tender_cli(app)


def _register_scheduler(app: Flask) -> None:
    from tenderhub.tenders.deadlines import start_deadline_sweeper

    start_deadline_sweeper(app)


def _register_security(app: Flask) -> None:
    @app.before_request
    def _rate_limit_guard():
        return enforce_rate_limit()


def _register_error_handlers(app: Flask) -> None:
    from tenderhub.errors import AppError, SystemError

    @app.before_request
    def _ensure_request_id() -> None:
        ensure_request_id()
        mark_request_start()

    @app.after_request
    def _append_request_id(response):
        response.headers["X-Request-Id"] = ensure_request_id()
        response = observe_response(response)
        return apply_security_headers(response)

    def _log_error(error: AppError, request_id: str) -> None:
        log_method = app.logger.error if error.critical else app.logger.warning
        log_method(
            "application_error",
            extra={
                "request_id": request_id,
                "error_code": error.code,
                "error_kind": error.kind,
                "http_status": error.http_status,
                "message_key": error.message_key,
                "details": error.details,
                "request_path": request.path,
                "http_method": request.method,
            },
            exc_info=error.critical,
        )

    @app.errorhandler(AppError)
    def _handle_app_error(exc: AppError):
        request_id = ensure_request_id()
        _log_error(exc, request_id)
        return jsonify(exc.to_response_payload(request_id)), exc.http_status

    @app.errorhandler(Exception)
    def _handle_unexpected(exc: Exception):
        if isinstance(exc, HTTPException):
            return exc

        request_id = ensure_request_id()
        mapped = SystemError(
            code="unexpected_error",
            message_key="unexpected_error",
            http_status=500,
            critical=True,
            details=str(exc),
        )
        app.logger.exception(
            "unexpected_exception",
            extra={
                "request_id": request_id,
                "error_code": mapped.code,
                "request_path": request.path,
                "http_method": request.method,
            },
        )
        return jsonify(mapped.to_response_payload(request_id)), mapped.http_status


def _register_health(app: Flask) -> None:
    @app.route("/health")
    def health():
        from tenderhub.db import get_db

        db_path = app.config.get("DB_PATH") or "unknown"
        backend = "postgres" if str(db_path).startswith("postgres") else "sqlite"
        payload = {
            "status": "ok",
            "db": backend,
            "env": os.environ.get("FLASK_ENV", "development"),
            "notifications": {
                "dispatch_mode": app.extensions["notification_dispatcher"].mode,
                "push_enabled": app.extensions["notification_dispatcher"].push is not None,
            },
            "metrics": metrics_snapshot(),
        }
        try:
            get_db().execute("SELECT 1").fetchone()
        except Exception:  # noqa: BLE001
            app.logger.exception("health_db_check_failed")
            payload["status"] = "degraded"
        return payload, 200

    @app.route("/metrics")
    def metrics():
        return prometheus_metrics_text(), 200, {"Content-Type": "text/plain; version=0.0.4; charset=utf-8"}
