"""Flask application factory."""
import logging
from decimal import Decimal

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from pos_engine.database import init_db


def _init_engine(app):
    """Wire the engine components and collaborators for this app."""
    from pos_engine.models.events import EventBus
    from pos_engine.services.catalog_service import InMemoryCatalog, InMemoryCustomerStore
    from pos_engine.services.session_service import SessionRegistry
    from pos_engine.services.settlement_service import SettlementService, TransactionNumberGenerator

    events = EventBus()

    catalog_file = app.config.get('CATALOG_FILE')
    catalog = InMemoryCatalog.from_json_file(catalog_file) if catalog_file else InMemoryCatalog()
    catalog.subscribe_to(events)

    customers = InMemoryCustomerStore()
    customers.subscribe_to(events)

    settlement = SettlementService(
        events=events,
        number_generator=TransactionNumberGenerator(prefix=app.config.get('TRANSACTION_NUMBER_PREFIX', 'TXN')),
        epsilon_cents=int(app.config.get('PAYMENT_EPSILON_CENTS', 1)),
        points_per_unit=Decimal(str(app.config.get('LOYALTY_POINTS_PER_UNIT', '1'))),
    )

    SessionRegistry(app)
    app.extensions['pos'] = {
        'events': events,
        'catalog': catalog,
        'customers': customers,
        'settlement': settlement,
    }


def create_app(config_object='config.Config'):
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)

    log_level = app.config.get('LOG_LEVEL', 'INFO')
    app.logger.setLevel(log_level)
    logging.getLogger('pos_engine').setLevel(log_level)

    # Initialize database
    init_db(app)

    _init_engine(app)

    # Error Handlers
    from pos_engine.exceptions import PosError

    @app.errorhandler(PosError)
    def handle_pos_error(error):
        """Handle engine exceptions."""
        if error.status_code >= 500:
            app.logger.error(f"PosError [{error.status_code}]: {error.message}")
        else:
            app.logger.info(f"PosError [{error.status_code}] {error.code}: {error.message}")
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def http_error(error):
        return jsonify({'status': 'error', 'message': error.description, 'code': error.name.upper().replace(' ', '_')}), error.code

    @app.errorhandler(404)
    def not_found_error(error):
        return jsonify({'status': 'error', 'message': 'Not Found', 'code': 'NOT_FOUND'}), 404

    @app.errorhandler(500)
    @app.errorhandler(Exception)
    def internal_error(error):
        if isinstance(error, HTTPException) and error.code != 500:
            return http_error(error)
        app.logger.exception(f"Unhandled Exception: {error}")
        return jsonify({'status': 'error', 'message': 'Internal Server Error', 'code': 'INTERNAL_ERROR'}), 500

    # Register blueprints
    from pos_engine.blueprints.pos import pos_bp

    app.register_blueprint(pos_bp)

    # Register CLI commands
    from pos_engine.cli_commands import init_cli_commands
    init_cli_commands(app)

    return app
