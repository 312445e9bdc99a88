# backend/wpos/__init__.py
import logging
import time

from flask import Flask, g, request
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

from .config import Config
from .errors import DomainError
from .extensions import db, migrate
from .responses import error


def create_app(overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if overrides:
        app.config.update(overrides)

    app.logger.setLevel(getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.outlets import outlets_bp
    from .routes.users import users_bp
    from .routes.customers import customers_bp, customer_vehicles_bp
    from .routes.products import products_bp, serials_bp, master_data_bp
    from .routes.catalog import services_bp, service_categories_bp
    from .routes.service_jobs import service_jobs_bp, service_details_bp, history_bp
    from .routes.vehicles import vehicles_bp, reconditioning_bp, reconditioning_details_bp
    from .routes.sales import vehicle_sales_bp, installments_bp, installment_payments_bp
    from .routes.cash_flows import cash_flows_bp
    from .routes.transactions import transactions_bp, transaction_details_bp, payments_bp

    for bp in (
        system_bp,
        outlets_bp,
        users_bp,
        customers_bp,
        customer_vehicles_bp,
        products_bp,
        serials_bp,
        master_data_bp,
        services_bp,
        service_categories_bp,
        service_jobs_bp,
        service_details_bp,
        history_bp,
        vehicles_bp,
        reconditioning_bp,
        reconditioning_details_bp,
        vehicle_sales_bp,
        installments_bp,
        installment_payments_bp,
        cash_flows_bp,
        transactions_bp,
        transaction_details_bp,
        payments_bp,
    ):
        app.register_blueprint(bp)

    @app.before_request
    def start_deadline():
        g.deadline = time.monotonic() + app.config["REQUEST_TIMEOUT_SECONDS"]

    @app.errorhandler(DomainError)
    def handle_domain_error(exc: DomainError):
        db.session.rollback()
        if exc.http_status >= 500:
            app.logger.error("%s %s failed: %s", request.method, request.path, exc.message)
        return error(exc.message, status=exc.http_status, kind=exc.kind, details=exc.details)

    @app.errorhandler(SQLAlchemyError)
    def handle_storage_error(exc: SQLAlchemyError):
        db.session.rollback()
        app.logger.exception("storage error on %s %s", request.method, request.path)
        return error("storage operation failed", status=500, kind="downstream")

    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException):
        kind = "not-found" if exc.code == 404 else "invalid-input" if exc.code < 500 else "downstream"
        return error(exc.description or exc.name, status=exc.code, kind=kind)

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        allowed_origins = {
            "http://localhost:5173",
            "http://127.0.0.1:5173",
            "http://localhost:4173",
            "http://127.0.0.1:4173",
        }
        if origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
