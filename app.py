import atexit
import logging
import os

from flask import Flask, jsonify
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from config import Config
from extensions import db, bcrypt, login_manager
from models.user import User
from routes import register_blueprints
from services.review_scheduler import ReviewScheduler

logger = logging.getLogger(__name__)


def ensure_sqlite_dir(database_uri):
    if database_uri.startswith("sqlite:///"):
        path = os.path.abspath(database_uri[len("sqlite:///"):])
        os.makedirs(os.path.dirname(path), exist_ok=True)


def start_review_scheduler(app):
    session_factory = sessionmaker(bind=db.engine, expire_on_commit=False)
    scheduler = ReviewScheduler(
        session_factory,
        daily_cap=app.config["DAILY_REVIEW_CAP"],
        check_interval=app.config["REVIEW_CHECK_INTERVAL_SECONDS"],
    )
    scheduler.start()
    atexit.register(scheduler.stop)
    app.extensions["review_scheduler"] = scheduler
    return scheduler


def create_app(config_object=Config):
    app = Flask(__name__)
    app.config.from_object(config_object)
    logging.basicConfig(
        level=app.config.get("LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    ensure_sqlite_dir(app.config["SQLALCHEMY_DATABASE_URI"])

    db.init_app(app)
    bcrypt.init_app(app)
    login_manager.init_app(app)

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({"error": "Login required"}), 401

    @app.errorhandler(SQLAlchemyError)
    def storage_error(err):
        db.session.rollback()
        logger.exception("Storage error: %s", err)
        return jsonify({"error": "Storage temporarily unavailable, try again"}), 503

    @app.after_request
    def add_no_cache_headers(response):
        response.headers["Cache-Control"] = "no-cache, no-store, must-revalidate"
        response.headers["Pragma"] = "no-cache"
        response.headers["Expires"] = "0"
        return response

    register_blueprints(app)

    with app.app_context():
        db.create_all()
        if app.config.get("SCHEDULER_ENABLED"):
            start_review_scheduler(app)

    return app


if __name__ == '__main__':
    app = create_app()
    app.run(debug=True, use_reloader=False, host='0.0.0.0', port=5002)
