# Main Flask app
import logging
import os
from flask import Flask, jsonify
from flask_cors import CORS
from flask_jwt_extended import JWTManager
from sqlalchemy.exc import SQLAlchemyError
from config import config
from models import db, User
from notify import socketio
from routes import bcrypt, main_bp, auth_bp, posts_bp, users_bp, notifications_bp, messages_bp

logger = logging.getLogger(__name__)

jwt = JWTManager()


@jwt.user_lookup_loader
def load_user(_jwt_header, jwt_data):
    return db.session.get(User, int(jwt_data['sub']))


@jwt.user_lookup_error_loader
def user_lookup_error(_jwt_header, _jwt_data):
    return jsonify({"message": "User not found"}), 401


@jwt.unauthorized_loader
def missing_token(reason):
    return jsonify({"message": "No token, authorization denied"}), 401


@jwt.invalid_token_loader
def invalid_token(reason):
    return jsonify({"message": "Token is not valid"}), 401


@jwt.expired_token_loader
def expired_token(_jwt_header, _jwt_data):
    return jsonify({"message": "Token has expired"}), 401


def configure_logging(app):
    logging.basicConfig(
        level=app.config['LOG_LEVEL'],
        format='%(asctime)s - %(levelname)s - %(name)s - %(message)s',
    )


def register_error_handlers(app):
    @app.errorhandler(404)
    def not_found(_error):
        return jsonify({"message": "Route not found"}), 404

    @app.errorhandler(405)
    def method_not_allowed(_error):
        return jsonify({"message": "Method not allowed"}), 405

    @app.errorhandler(500)
    def internal_error(error):
        logger.error("Unhandled error: %s", getattr(error, 'original_exception', error))
        return jsonify({"message": "Something went wrong!"}), 500


def create_app(config_name='default'):
    app = Flask(__name__)
    app.config.from_object(config[config_name])
    configure_logging(app)

    # Initialize extensions
    db.init_app(app)
    bcrypt.init_app(app)
    jwt.init_app(app)
    CORS(app, resources={r"/api/*": {"origins": app.config['CLIENT_ORIGIN']}})
    socketio_options = {'cors_allowed_origins': app.config['CLIENT_ORIGIN']}
    if app.config['SOCKETIO_MESSAGE_QUEUE']:
        socketio_options['message_queue'] = app.config['SOCKETIO_MESSAGE_QUEUE']
    socketio.init_app(app, **socketio_options)

    # Register blueprints
    app.register_blueprint(main_bp, url_prefix='/api')
    app.register_blueprint(auth_bp, url_prefix='/api/auth')
    app.register_blueprint(posts_bp, url_prefix='/api/posts')
    app.register_blueprint(users_bp, url_prefix='/api/users')
    app.register_blueprint(notifications_bp, url_prefix='/api/notifications')
    app.register_blueprint(messages_bp, url_prefix='/api/messages')
    register_error_handlers(app)

    with app.app_context():
        try:
            db.create_all()
        except SQLAlchemyError as e:
            # the API keeps answering 503 until the database comes back
            logger.warning("Server starting without database connection: %s", e)

    return app


if __name__ == '__main__':
    app = create_app(os.getenv('FLASK_CONFIG', 'default'))
    logger.info("Server running on port %s", app.config['PORT'])
    socketio.run(app, host='0.0.0.0', port=app.config['PORT'], debug=app.config['DEBUG'])
