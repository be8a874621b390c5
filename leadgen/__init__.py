"""
Flask application factory.

Creates and configures the Flask app, registers all blueprints.
"""
from flask import Flask, jsonify


def create_app():
    """Create and configure the Flask application."""
    from leadgen.logging_config import configure_logging
    from leadgen.database import init_db

    app = Flask(__name__)

    configure_logging(app)

    # Register blueprints
    from leadgen.routes.health import bp as health_bp
    from leadgen.routes.generate import bp as generate_bp
    from leadgen.routes.icp import bp as icp_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(generate_bp)
    app.register_blueprint(icp_bp)

    @app.errorhandler(404)
    def not_found(e):
        return jsonify({'status': 'error', 'message': 'Not found'}), 404

    @app.errorhandler(500)
    def server_error(e):
        app.logger.error("Unhandled error: %s", e)
        return jsonify({'status': 'error', 'message': 'Internal server error'}), 500

    # No migrations: create missing tables on start
    init_db()

    return app
