from .auth import auth_bp
from .reviews import reviews_bp
from .splendor import splendor_bp
from .stats import stats_bp
from .topics import topics_bp


def register_blueprints(app):
    app.register_blueprint(auth_bp)
    app.register_blueprint(topics_bp)
    app.register_blueprint(reviews_bp)
    app.register_blueprint(splendor_bp)
    app.register_blueprint(stats_bp)
