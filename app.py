import logging
import os

import click
from flask import Flask, current_app, jsonify, request
from flask_cors import CORS
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException
from werkzeug.middleware.proxy_fix import ProxyFix

from auth_routes import auth_bp
from bidding_service import ProjectBiddingService
from chat_routes import chat_bp
from chat_service import ChatService
from config import Config
from errors import ApiError, Forbidden, StorageError
from models import db
from project_routes import projects_bp
from rate_limit import RateLimiter
from repository import ProjectRepository
from security_logger import SecurityLogger
from user_routes import users_bp
from user_service import UserService
from yandex_auth import YandexOAuth


def create_app(config_object=None, **overrides):
    """Build the API application with every dependency wired explicitly"""
    app = Flask(__name__)
    app.config.from_object(config_object or Config)
    app.config.update(overrides)

    if app.config.get('TRUSTED_PROXIES'):
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=app.config['TRUSTED_PROXIES'])

    configure_logging(app)

    db.init_app(app)
    CORS(app,
         resources={r'/api/*': {'origins': app.config['ALLOWED_ORIGINS']}},
         supports_credentials=True,
         max_age=3600)

    RateLimiter(app)
    security_logger = SecurityLogger(app)
    YandexOAuth(app)

    app.extensions['bidding_service'] = ProjectBiddingService(ProjectRepository(db))
    app.extensions['user_service'] = UserService(db, security_logger=security_logger)
    app.extensions['chat_service'] = ChatService(db)

    app.register_blueprint(projects_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(chat_bp)

    register_hooks(app)
    register_error_handlers(app)
    register_commands(app)

    @app.route('/api/health', methods=['GET'])
    def health():
        try:
            db.session.execute(text('SELECT 1'))
            database = 'connected'
        except SQLAlchemyError as e:
            db.session.rollback()
            app.logger.error(f"Health check database error: {str(e)}")
            return jsonify({'status': 'degraded', 'database': 'unavailable'}), 503
        return jsonify({'status': 'ok', 'database': database})

    return app


def configure_logging(app):
    level = getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format='%(asctime)s %(levelname)s [%(name)s] %(message)s',
    )
    app.logger.setLevel(level)


def register_hooks(app):

    # Security headers middleware
    @app.after_request
    def set_security_headers(response):
        response.headers['X-Content-Type-Options'] = 'nosniff'
        response.headers['X-Frame-Options'] = 'DENY'
        response.headers['X-XSS-Protection'] = '1; mode=block'
        response.headers['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'
        response.headers['Content-Security-Policy'] = "default-src 'none'; frame-ancestors 'none'"
        response.headers['Referrer-Policy'] = 'no-referrer'
        return response

    @app.after_request
    def log_request(response):
        app.logger.info(f"{request.method} {request.path} -> {response.status_code}")
        return response


def register_error_handlers(app):

    @app.errorhandler(ApiError)
    def handle_api_error(e):
        if isinstance(e, Forbidden):
            current_app.extensions['security_logger'].log_authorization(
                'permission_denied', resource_type=request.blueprint, message=e.message,
            )
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(SQLAlchemyError)
    def handle_storage_error(e):
        db.session.rollback()
        app.logger.error(f"Database error on {request.method} {request.path}: {str(e)}")
        error = StorageError()
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(e):
        kind = 'not_found' if e.code == 404 else 'http_error'
        return jsonify({'success': False, 'error': {'kind': kind, 'message': e.description}}), e.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(e):
        db.session.rollback()
        app.logger.exception(f"Unhandled error on {request.method} {request.path}: {str(e)}")
        return jsonify({
            'success': False,
            'error': {'kind': 'internal_error', 'message': 'Internal server error'},
        }), 500


def register_commands(app):

    @app.cli.command('init-db')
    def init_db_command():
        """Create all database tables."""
        db.create_all()
        click.echo('Database tables created.')


if __name__ == '__main__':
    app = create_app()
    with app.app_context():
        db.create_all()
    port = int(os.environ.get('PORT', 5000))
    app.run(host='0.0.0.0', port=port, debug=os.environ.get('FLASK_DEBUG', 'False') == 'True')
