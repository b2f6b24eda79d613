import os

from flask import Flask, g, jsonify, request
from werkzeug.exceptions import HTTPException

from erp_obras.config import Config
from erp_obras.db import close_db, get_db, init_db
from erp_obras.db_migrations import register_db_cli
from erp_obras.observability import (
    configure_json_logging,
    ensure_request_id,
    mark_request_start,
    metrics_snapshot,
    observe_response,
)
from erp_obras.workspace import DEFAULT_WORKSPACE_ID, workspace_from_request


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)
    configure_json_logging(app)

    _ensure_database_dir(app)
    _register_request_hooks(app)
    _register_error_handlers(app)
    _register_blueprints(app)
    _register_health(app)
    register_db_cli(app)
    _maybe_init_schema(app)

    app.teardown_appcontext(close_db)
    return app


def _ensure_database_dir(app: Flask) -> None:
    database_dir = app.config.get("DATABASE_DIR")
    if database_dir:
        os.makedirs(database_dir, exist_ok=True)


def _maybe_init_schema(app: Flask) -> None:
    auto_init = bool(app.config.get("DB_AUTO_INIT", False))
    if app.testing:
        auto_init = True
    if not auto_init:
        return

    flask_env = (os.environ.get("FLASK_ENV", "development") or "development").strip().lower()
    if not app.testing and flask_env != "development":
        app.logger.warning("DB_AUTO_INIT ignorado fora de development.")
        return

    with app.app_context():
        init_db()
        if app.config.get("SEED_DEMO_DATA"):
            from erp_obras.seed import seed_demo_data

            db = get_db()
            if seed_demo_data(db, workspace_id=DEFAULT_WORKSPACE_ID):
                db.commit()


def _register_blueprints(app: Flask) -> None:
    from erp_obras.routes.finance_routes import finance_bp
    from erp_obras.routes.home_routes import home_bp
    from erp_obras.routes.order_routes import order_bp
    from erp_obras.routes.registry_routes import registry_bp

    app.register_blueprint(home_bp)
    app.register_blueprint(order_bp)
    app.register_blueprint(finance_bp)
    app.register_blueprint(registry_bp)


def _register_request_hooks(app: Flask) -> None:
    @app.before_request
    def _start_request() -> None:
        ensure_request_id()
        g.workspace_id = workspace_from_request(request)
        mark_request_start()

    @app.after_request
    def _finish_request(response):
        response.headers["X-Request-Id"] = ensure_request_id()
        response.headers["X-Workspace-Id"] = getattr(g, "workspace_id", DEFAULT_WORKSPACE_ID)
        return observe_response(response)


def _register_error_handlers(app: Flask) -> None:
    from erp_obras.errors import AppError, SystemError

    def _log_error(error: AppError, request_id: str) -> None:
        log_method = app.logger.error if error.critical else app.logger.warning
        log_method(
            "application_error",
            extra={
                "request_id": request_id,
                "error_code": error.code,
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
        mapped = SystemError(code="unexpected_error", details=str(exc))
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
        db_path = app.config.get("DB_PATH") or "unknown"
        backend = "postgres" if str(db_path).startswith("postgres") else "sqlite"
        payload = {
            "status": "ok",
            "db": backend,
            "ai_mode": app.config.get("AI_MODE", "mock"),
            "metrics": metrics_snapshot(),
        }
        try:
            get_db().execute("SELECT 1").fetchone()
        except Exception:
            app.logger.warning("health_db_unavailable", exc_info=True)
            payload["status"] = "degraded"
        return payload, 200
