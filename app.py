import logging

import click
from flask import Flask, jsonify
from flask_migrate import Migrate
from sqlalchemy import inspect
from werkzeug.exceptions import HTTPException

from config import Config
from models import db
from models.enums import Roles
from models.user import User, Role
from routes import ALL_BLUEPRINTS
from services import init_services
from utils.auth_context import load_current_user
from utils.errors import DomainError
from utils.seed import seed_roles

logger = logging.getLogger(__name__)


def configure_logging(level_name: str):
    logging.basicConfig(
        level=getattr(logging, str(level_name).upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    # httpx logs every request line at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def create_app(config_object=Config, zoom_client=None):
    app = Flask(__name__)
    app.config.from_object(config_object)
    configure_logging(app.config.get("LOG_LEVEL", "INFO"))

    # Register routes
    for bp in ALL_BLUEPRINTS:
        app.register_blueprint(bp)

    # Database init
    db.init_app(app)

    # Migrations
    Migrate(app, db)

    with app.app_context():
        if app.config.get("AUTO_CREATE_TABLES"):
            db.create_all()
        # Seed default roles at startup (safe & idempotent)
        if inspect(db.engine).has_table("roles"):
            seed_roles()
        else:
            logger.warning("roles table missing; run `flask db upgrade` before serving requests")

    init_services(app, zoom_client=zoom_client)

    @app.before_request
    def _load_user():
        load_current_user()

    @app.errorhandler(DomainError)
    def _domain_error(exc):
        db.session.rollback()
        if exc.status_code >= 500:
            logger.error("%s: %s", type(exc).__name__, exc.message)
        return jsonify(success=False, message=exc.message, error=type(exc).__name__), exc.status_code

    @app.errorhandler(HTTPException)
    def _http_error(exc):
        return jsonify(success=False, message=exc.description, error=exc.name), exc.code

    @app.errorhandler(Exception)
    def _unhandled(exc):
        db.session.rollback()
        logger.exception("Unhandled error")
        return jsonify(success=False, message="Internal server error", error=type(exc).__name__), 500

    @app.after_request
    def add_security_headers(resp):
        resp.headers["X-Content-Type-Options"] = "nosniff"
        resp.headers["X-Frame-Options"] = "DENY"
        resp.headers["Referrer-Policy"] = "no-referrer"
        resp.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none';"
        return resp

    register_cli(app)

    return app

#-------------------------

def register_cli(app):
    @app.cli.command("make-super-admin")
    @click.argument("email")
    def make_super_admin(email):
        """Promote a user to SUPER_ADMIN by email (bootstrap)."""
        user = User.query.filter_by(email=email.strip().lower()).first()
        if not user:
            click.echo("User not found")
            return

        role = Role.query.filter_by(name=Roles.SUPER_ADMIN).first()
        if not role:
            role = Role(name=Roles.SUPER_ADMIN)
            db.session.add(role)
            db.session.commit()

        if role not in user.roles:
            user.roles.append(role)
            db.session.commit()

        click.echo(f"{user.email} promoted to {Roles.SUPER_ADMIN}")

#-------------------------


if __name__ == "__main__":
    app = create_app()
    # Run locally
    app.run(host="127.0.0.1", port=5002)
