# backend/officine/__init__.py
from flask import Flask, request, jsonify
from werkzeug.exceptions import HTTPException

from .config import Config
from .extensions import db, migrate


def _register_error_handlers(app: Flask) -> None:
    """Domain exceptions raised by services -> JSON error responses."""
    from .validation import ConflictError, ValidationError
    from .services.auth_service import AuthenticationError
    from .services.document_service import DocumentSequenceError
    from .services.policy_service import PermissionDeniedError
    from .services.societe_service import JoinCodeGenerationError, SocieteNotFoundError
    from .services.tenant_service import SocieteRequiredError, TenantAccessError

    def _error(status: int, message: str, **extra):
        db.session.rollback()
        return jsonify({"error": message, **extra}), status

    @app.errorhandler(ValidationError)
    def handle_validation_error(e):
        extra = {}
        if getattr(e, "details", None):
            extra["details"] = e.details
        return _error(400, str(e), **extra)

    @app.errorhandler(ConflictError)
    def handle_conflict(e):
        return _error(409, str(e))

    @app.errorhandler(AuthenticationError)
    def handle_authentication_error(e):
        return _error(401, str(e))

    @app.errorhandler(PermissionDeniedError)
    def handle_permission_denied(e):
        extra = {"required_permission": e.permission} if e.permission else {}
        return _error(403, str(e), **extra)

    @app.errorhandler(SocieteRequiredError)
    def handle_societe_required(e):
        return _error(409, str(e), next=e.next_path)

    @app.errorhandler(TenantAccessError)
    @app.errorhandler(SocieteNotFoundError)
    def handle_not_found(e):
        # foreign records look missing
        return _error(404, str(e) or "Not found")

    @app.errorhandler(JoinCodeGenerationError)
    def handle_join_code_exhausted(e):
        app.logger.error("Join code generation failed: %s", e)
        return _error(503, str(e))

    @app.errorhandler(DocumentSequenceError)
    def handle_sequence_error(e):
        app.logger.error("Document numbering failed: %s", e)
        return _error(503, str(e))

    @app.errorhandler(HTTPException)
    def handle_http_exception(e):
        return jsonify({"error": e.name, "message": e.description}), e.code

    @app.errorhandler(Exception)
    def handle_unexpected(e):
        app.logger.exception("Unhandled error on %s %s", request.method, request.path)
        return _error(500, "Internal server error")


def create_app(config: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config:
        app.config.update(config)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.societe import societe_bp
    from .routes.invitations import invitations_bp
    from .routes.users import users_bp
    from .routes.purchases import purchases_bp
    from .routes.sales import sales_bp
    from .routes.stock import stock_bp
    from .routes.documents import documents_bp
    from .routes.payments import payments_bp
    from .routes.settings import settings_bp
    from .routes.dashboard import dashboard_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(societe_bp)
    app.register_blueprint(invitations_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(purchases_bp)
    app.register_blueprint(sales_bp)
    app.register_blueprint(stock_bp)
    app.register_blueprint(documents_bp)
    app.register_blueprint(payments_bp)
    app.register_blueprint(settings_bp)
    app.register_blueprint(dashboard_bp)

    _register_error_handlers(app)

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        allowed_origins = set(app.config.get("CORS_ALLOWED_ORIGINS", ()))
        if origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
