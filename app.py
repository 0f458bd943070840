# FILE: app.py
from dotenv import load_dotenv
from flask import Flask, jsonify
from flask_limiter import RateLimitExceeded

from config import Config
from models import db
from routes.host_routes import host_bp
from routes.live_routes import live_bp
from routes.main_routes import main_bp
from services.errors import LiveReviewError, RateLimited
from services.rate_limit_service import limiter
from services.realtime import change_feed
from services.target_service import ensure_singletons

load_dotenv()


def register_error_handlers(app: Flask):
    @app.errorhandler(LiveReviewError)
    def handle_live_review_error(error: LiveReviewError):
        if error.status_code >= 500:
            app.logger.warning("%s: %s", type(error).__name__, error.message)
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(RateLimitExceeded)
    def handle_rate_limited(error: RateLimitExceeded):
        app.logger.warning("Rate limit exceeded: %s", error.description)
        body = RateLimited(f"Rate limit exceeded. Maximum {error.description}.").to_dict()
        return jsonify(body), RateLimited.status_code

    @app.errorhandler(413)
    def handle_too_large(_error):
        return jsonify({"error": "File is too large. Maximum size is 10MB.", "kind": "ValidationError"}), 413


def create_app(config_object=Config) -> Flask:
    app = Flask(__name__)
    app.config.from_object(config_object)

    db.init_app(app)
    change_feed.init_app(app)
    limiter.init_app(app)
    app.register_blueprint(main_bp)
    app.register_blueprint(host_bp)
    app.register_blueprint(live_bp)
    register_error_handlers(app)

    with app.app_context():
        db.create_all()
        ensure_singletons()

    return app


app = create_app()

if __name__ == "__main__":
    app.run(debug=True, threaded=True)
