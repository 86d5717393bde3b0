# Creates the Flask app (App Factory)
from flask import Flask, jsonify
from flask_cors import CORS
from flask_jwt_extended import JWTManager
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_socketio import SocketIO
from flask_sqlalchemy import SQLAlchemy
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException
import logging
from .config import Config

# Extensions, bound to an app in create_app
db = SQLAlchemy()
jwt = JWTManager()
socketio = SocketIO()
limiter = Limiter(key_func=get_remote_address)

# Sent on every response
SECURITY_HEADERS = {
    'X-Frame-Options': 'DENY',
    'X-Content-Type-Options': 'nosniff',
    'X-XSS-Protection': '1; mode=block',
    'Referrer-Policy': 'strict-origin-when-cross-origin',
    'Permissions-Policy': 'camera=(), microphone=(), geolocation=()',
}

# Application Factory Function
def create_app(config_object=None):
    app = Flask(__name__, static_folder=None)
    app.config.from_object(config_object or Config)

    # Logging configuration
    if not logging.getLogger().handlers:
        logging.basicConfig(level=app.config['LOG_LEVEL'],
                            format='%(asctime)s %(levelname)s %(name)s - %(message)s')
    app.logger.setLevel(app.config['LOG_LEVEL'])

    # Extensions
    db.init_app(app)
    jwt.init_app(app)
    limiter.init_app(app)
    CORS(app, resources={r"/api/*": {"origins": app.config['CORS_ORIGINS']}},
         supports_credentials=True)
    # Socket handlers must be declared before init_app so every app picks them up
    from . import realtime  # noqa: F401
    socketio.init_app(app, cors_allowed_origins=app.config['CORS_ORIGINS'])

    from .auth import init_auth
    from .registry import ConnectionRegistry
    from .stores import CredentialStore, MessageStore
    init_auth(jwt)
    app.extensions['duochat.registry'] = ConnectionRegistry()
    app.extensions['duochat.credentials'] = lambda: CredentialStore(db.session)
    app.extensions['duochat.messages'] = lambda: MessageStore(db.session)

    # Import and register the blueprint from routes.py
    from .routes import api as api_blueprint
    app.register_blueprint(api_blueprint, url_prefix='/api')

    register_error_handlers(app)

    @app.after_request
    def set_security_headers(response):
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        if app.config['APP_ENV'] == 'production':
            response.headers.setdefault('Strict-Transport-Security', 'max-age=31536000; includeSubDomains')
        return response

    app.logger.debug('Application created and configured')
    return app


def register_error_handlers(app):
    from .errors import DuochatError, StoreFailure
    from .schemas import field_errors

    @app.errorhandler(DuochatError)
    def handle_duochat_error(error):
        if isinstance(error, StoreFailure):
            app.logger.error(f'Store failure: {error.detail}')
        else:
            app.logger.debug(f'{error.__class__.__name__}: {error.message}')
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(ValidationError)
    def handle_validation_error(error):
        errors = field_errors(error)
        app.logger.debug(f'Request validation failed: {errors}')
        return jsonify({'message': 'Validation failed', 'errors': errors}), 400

    @app.errorhandler(SQLAlchemyError)
    def handle_store_error(error):
        db.session.rollback()
        app.logger.exception('Database error')
        return jsonify({'message': 'Internal server error'}), 500

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return jsonify({'message': error.description}), error.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error):
        app.logger.exception('Unhandled error')
        return jsonify({'message': 'Internal server error'}), 500
