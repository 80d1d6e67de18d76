# backend/app/__init__.py
from flask import Flask

from .config import Config, ProposalSettings
from .extensions import db, migrate


def create_app(test_config: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if test_config:
        app.config.update(test_config)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Collaborators are built once from config and handed to services explicitly
    from .services.notification_service import NotificationDispatcher
    from .services.payment_gateway import StripeGateway

    settings = ProposalSettings.from_config(app.config)
    app.extensions["proposal_settings"] = settings
    app.extensions["proposal_notifier"] = NotificationDispatcher(settings)
    app.extensions["payment_gateway"] = StripeGateway(settings)

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.proposals import proposals_bp
    from .routes.payments import payments_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(proposals_bp)
    app.register_blueprint(payments_bp)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
