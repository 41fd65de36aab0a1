import os
from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_jwt_extended import JWTManager
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_cors import CORS
from flask_migrate import Migrate
from config import config

# Initialize extensions
db = SQLAlchemy()
jwt = JWTManager()
limiter = Limiter(key_func=get_remote_address)
migrate = Migrate()


def create_app(config_name=None):
    """Application factory pattern."""
    if config_name is None:
        config_name = os.environ.get('FLASK_ENV', 'development')

    app = Flask(__name__)
    app.config.from_object(config[config_name])
    app.logger.setLevel(app.config.get('LOG_LEVEL', 'INFO'))

    # Initialize extensions with app
    db.init_app(app)
    jwt.init_app(app)
    limiter.init_app(app)
    migrate.init_app(app, db)

    # Initialize CORS
    CORS(app, origins=app.config['CORS_ORIGINS'])

    # Models must be imported before the spatial DDL hooks are attached
    from civiclens import models  # noqa: F401

    # Register blueprints
    from civiclens.routes.location import location_bp
    from civiclens.routes.issues import issues_bp
    from civiclens.routes.categories import categories_bp

    app.register_blueprint(location_bp, url_prefix='/api/location')
    app.register_blueprint(issues_bp, url_prefix='/api/issues')
    app.register_blueprint(categories_bp, url_prefix='/api/categories')

    # Register error handlers
    from civiclens.utils.error_handlers import register_error_handlers
    register_error_handlers(app)

    @app.route('/health')
    def health_check():
        """Health check endpoint."""
        return {'status': 'healthy', 'message': 'CivicLens Backend is running!'}, 200

    @app.route('/')
    def index():
        """Root endpoint."""
        return {
            'message': 'Welcome to CivicLens Backend API',
            'version': '1.0.0'
        }, 200

    return app
