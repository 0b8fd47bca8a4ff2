import logging
import os

import click
from flask import Flask, jsonify

from splitvault.extensions import db, login_manager
from config import Config


def create_app(config_class=Config, asset_port=None):
    app = Flask(__name__)
    app.config.from_object(config_class)

    logging.basicConfig(level=logging.INFO)

    # Initialize extensions
    db.init_app(app)
    login_manager.init_app(app)

    from splitvault.services.asset_service import init_asset_port
    init_asset_port(app, asset_port)

    # User loader for Flask-Login
    from splitvault.models import User

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({'error': 'Unauthorized', 'message': 'Login required'}), 401

    # Ledger errors become JSON responses
    from splitvault.services.errors import LedgerError

    @app.errorhandler(LedgerError)
    def handle_ledger_error(error):
        return jsonify({'error': error.kind, 'message': str(error)}), error.status_code

    # Register blueprints
    from splitvault.routes.auth import auth_bp
    from splitvault.routes.groups import groups_bp
    from splitvault.routes.expenses import expenses_bp
    from splitvault.routes.wallet import wallet_bp
    from splitvault.routes.admin import admin_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(groups_bp)
    app.register_blueprint(expenses_bp)
    app.register_blueprint(wallet_bp)
    app.register_blueprint(admin_bp)

    register_commands(app)

    uri = app.config['SQLALCHEMY_DATABASE_URI']
    if uri.startswith('sqlite:///'):
        os.makedirs(os.path.dirname(uri[len('sqlite:///'):]) or '.', exist_ok=True)

    with app.app_context():
        db.create_all()
        app.logger.info("Database tables ready")

    return app


def register_commands(app):

    @app.cli.command('init-db')
    def init_db():
        """Create all tables."""
        db.create_all()
        click.echo("Database tables created")

    @app.cli.command('mint')
    @click.argument('address')
    @click.argument('amount', type=int)
    def mint(address, amount):
        """Credit ADDRESS with AMOUNT units of the asset (development only)."""
        from splitvault.services.asset_service import call_port
        call_port('mint', address, amount)
        db.session.commit()
        click.echo(f"Minted {amount} to {address}")
