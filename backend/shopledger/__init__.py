# backend/shopledger/__init__.py
import logging

from flask import Flask, request

from .config import Config
from .extensions import db, migrate



def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    # Overrides (tests, embedding) must land before the extensions read config
    if config_overrides:
        app.config.update(config_overrides)

    app.logger.setLevel(getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.products import products_bp
    from .routes.categories import categories_bp
    from .routes.inventory import inventory_bp
    from .routes.procurement import purchase_orders_bp, grns_bp
    from .routes.stock_adjustments import stock_adjustments_bp
    from .routes.transfers import transfers_bp
    from .routes.sales import sales_bp
    from .routes.customers import customers_bp
    from .routes.stores import stores_bp, suppliers_bp
    from .routes.payment_methods import payment_methods_bp
    from .routes.tax_rates import tax_rates_bp
    from .routes.accounting import accounting_bp
    from .routes.payroll import payroll_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(categories_bp)
    app.register_blueprint(inventory_bp)
    app.register_blueprint(purchase_orders_bp)
    app.register_blueprint(grns_bp)
    app.register_blueprint(stock_adjustments_bp)
    app.register_blueprint(transfers_bp)
    app.register_blueprint(sales_bp)
    app.register_blueprint(customers_bp)
    app.register_blueprint(stores_bp)
    app.register_blueprint(suppliers_bp)
    app.register_blueprint(payment_methods_bp)
    app.register_blueprint(tax_rates_bp)
    app.register_blueprint(accounting_bp)
    app.register_blueprint(payroll_bp)

    allowed_origins = set(app.config.get("CORS_ALLOWED_ORIGINS") or [])

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Content-Type, X-User-Id, X-User-Name"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app
