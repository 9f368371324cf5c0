import logging

from flask import Flask, jsonify
from flask_socketio import SocketIO
from flask_wtf.csrf import CSRFProtect
from google.api_core.exceptions import GoogleAPICallError
from werkzeug.exceptions import HTTPException
from config import Config

socketio = SocketIO()
csrf = CSRFProtect()

logger = logging.getLogger(__name__)


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)
    # Checked in before_request so bearer-token clients can skip it
    app.config['WTF_CSRF_CHECK_DEFAULT'] = False

    logging.basicConfig(
        level=app.config.get('LOG_LEVEL', 'INFO'),
        format='%(asctime)s [%(levelname)s] %(name)s - %(message)s',
    )

    csrf.init_app(app)

    # Initialize Firebase
    from bawmnet.firebase_init import init_firebase, StorageNotConfigured
    init_firebase(app.config)

    # CORS origins
    allowed_origins = []
    cors_origins = app.config.get('CORS_ALLOWED_ORIGINS', '')
    if cors_origins:
        for origin in cors_origins.split(','):
            origin = origin.strip()
            if origin:
                allowed_origins.append(origin)

    # Handlers queued before init_app are bound to every app instance
    from bawmnet import events  # noqa: F401

    socketio.init_app(
        app,
        cors_allowed_origins=allowed_origins if allowed_origins else None,
        async_mode=app.config.get('SOCKETIO_ASYNC_MODE', 'eventlet')
    )

    from bawmnet.decorators import load_current_user, bearer_token

    @app.before_request
    def before_request():
        if app.config.get('WTF_CSRF_ENABLED', True) and not bearer_token():
            csrf.protect()
        load_current_user()

    @app.errorhandler(HTTPException)
    def handle_http_error(exc):
        if exc.response is not None:
            return exc.response
        return jsonify(error=exc.description, status=exc.code), exc.code

    @app.errorhandler(GoogleAPICallError)
    def handle_backend_error(exc):
        logger.exception('Backend call failed: %s', exc)
        return jsonify(error='backend unavailable', status=503), 503

    @app.errorhandler(StorageNotConfigured)
    def handle_storage_missing(exc):
        logger.error('Upload refused: %s', exc)
        return jsonify(error=str(exc), status=503), 503

    # Register blueprints
    from bawmnet.routes import (
        main, auth, profiles, posts, feed, pages, entities, quizzes,
        marketplace, messages, notifications, lyrics, books, videos, about, admin
    )
    app.register_blueprint(main.bp)
    app.register_blueprint(auth.bp)
    app.register_blueprint(profiles.bp)
    app.register_blueprint(posts.bp)
    app.register_blueprint(feed.bp)
    app.register_blueprint(pages.bp)
    for bp in entities.blueprints:
        app.register_blueprint(bp)
    app.register_blueprint(quizzes.bp)
    app.register_blueprint(marketplace.bp)
    app.register_blueprint(messages.bp)
    app.register_blueprint(notifications.bp)
    app.register_blueprint(lyrics.bp)
    app.register_blueprint(books.bp)
    app.register_blueprint(videos.bp)
    app.register_blueprint(about.bp)
    app.register_blueprint(admin.bp)

    return app
