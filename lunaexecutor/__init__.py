# lunaexecutor/__init__.py
import logging
import os
from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_socketio import SocketIO
from flask_login import LoginManager

db = SQLAlchemy()
# one connection's events are handled in order: parse, persist, broadcast
socketio = SocketIO(async_handlers=False)
login_manager = LoginManager()

logger = logging.getLogger(__name__)


def create_app(config_object=None):
    app = Flask(__name__)

    from .config import Config
    app.config.from_object(config_object or Config)

    from .logging_config import setup_logging
    if not app.testing:
        setup_logging(app.config['LOG_LEVEL'], app.config.get('LOG_DIR'))

    # Ensure instance folder exists for the default SQLite database
    os.makedirs(app.instance_path, exist_ok=True)

    # socket handlers must be declared before init_app so every new server picks them up
    from .blueprints.main import main_bp
    from .blueprints.auth import auth_bp
    from .blueprints.chat import chat_bp
    from .blueprints.products import products_bp

    db.init_app(app)
    socketio.init_app(
        app,
        async_mode=app.config.get('SOCKETIO_ASYNC_MODE'),
        cors_allowed_origins=app.config.get('CORS_ALLOWED_ORIGINS'),
    )
    login_manager.init_app(app)

    from .models import User
    from .repository import Repository
    from .relay import ChatRelay

    repository = Repository(db)
    app.extensions['repository'] = repository
    app.extensions['chat_relay'] = ChatRelay(
        socketio,
        repository,
        max_length=app.config['CHAT_MAX_MESSAGE_LENGTH'],
    )

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    @login_manager.unauthorized_handler
    def unauthorized():
        return '', 401

    app.register_blueprint(main_bp)
    app.register_blueprint(auth_bp, url_prefix='/auth')
    app.register_blueprint(chat_bp)
    app.register_blueprint(products_bp, url_prefix='/products')

    from .cli import register_commands
    register_commands(app)

    with app.app_context():
        db.create_all()

    logger.info("LunaExecutor app created (db=%s)", app.config['SQLALCHEMY_DATABASE_URI'])
    return app
