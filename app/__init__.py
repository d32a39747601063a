from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from flask import Flask, jsonify, redirect, request, url_for
from flask_login import LoginManager

from config.settings import get_settings
from models import get_user_by_id, init_db

_ENV_LOADED = False


def _ensure_env_loaded() -> None:
    global _ENV_LOADED
    if _ENV_LOADED:
        return

    base_dir = Path(__file__).resolve().parent.parent
    env_path = base_dir / ".env"
    if env_path.exists():
        load_dotenv(env_path)
    else:
        load_dotenv()

    _ENV_LOADED = True


login_manager = LoginManager()
login_manager.login_view = "core.login"
login_manager.login_message = "Vui lòng đăng nhập để tiếp tục."
login_manager.login_message_category = "info"
login_manager.session_protection = "basic"


@login_manager.user_loader
def load_user(user_id: str) -> Optional[object]:
    try:
        return get_user_by_id(int(user_id))
    except (TypeError, ValueError):
        return None


@login_manager.unauthorized_handler
def unauthorized():
    if request.path.startswith("/api/"):
        return jsonify({"error": "Authentication required."}), 401
    return redirect(url_for("core.login"))


def _configure_logging(level_name: str) -> None:
    level = getattr(logging, level_name, logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def _register_template_filters(app: Flask) -> None:
    from app.messages import ROLE_LABELS
    from app.services.stats import score_tier
    from app.utils import formatting

    app.jinja_env.filters["clock"] = formatting.format_clock
    app.jinja_env.filters["minutes"] = formatting.format_minutes
    app.jinja_env.filters["hours"] = formatting.format_hours
    app.jinja_env.filters["duration"] = formatting.format_duration
    app.jinja_env.filters["vn_date"] = formatting.format_date
    app.jinja_env.filters["vn_datetime"] = formatting.format_datetime
    app.jinja_env.filters["score"] = formatting.format_score
    app.jinja_env.filters["score_tier"] = score_tier
    app.jinja_env.globals["ROLE_LABELS"] = ROLE_LABELS


def create_app() -> Flask:
    _ensure_env_loaded()
    settings = get_settings()
    _configure_logging(settings.LOG_LEVEL)

    base_dir = os.path.dirname(os.path.dirname(__file__))
    template_dir = os.path.join(base_dir, "templates")
    static_dir = os.path.join(base_dir, "static")
    app = Flask(__name__, template_folder=template_dir, static_folder=static_dir)
    app.config["SECRET_KEY"] = settings.SECRET_KEY

    app.config["SESSION_COOKIE_SECURE"] = settings.SESSION_COOKIE_SECURE
    app.config["SESSION_COOKIE_HTTPONLY"] = True
    app.config["SESSION_COOKIE_SAMESITE"] = "Lax"
    app.config["PERMANENT_SESSION_LIFETIME"] = 86400 * 31  # 31 days
    # Request bodies may carry a full video upload.
    app.config["MAX_CONTENT_LENGTH"] = (settings.MAX_VIDEO_UPLOAD_MB + 10) * 1024 * 1024

    login_manager.init_app(app)
    init_db()
    _register_template_filters(app)

    from .routes import bp as core_bp

    app.register_blueprint(core_bp)

    @app.errorhandler(404)
    def not_found(_error):
        if request.path.startswith("/api/"):
            return jsonify({"error": "Not found."}), 404
        return redirect(url_for("core.login"))

    logging.getLogger(__name__).info("Academy application created")
    return app
