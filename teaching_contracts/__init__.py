import logging
import os
from dotenv import load_dotenv
from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_login import LoginManager
from flask_migrate import Migrate
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from .config import Config

load_dotenv()

db = SQLAlchemy()
login_manager = LoginManager()
migrate = Migrate()
limiter = Limiter(key_func=get_remote_address)


def create_app(config_object=Config, clock=None):
    app = Flask(__name__)
    app.config.from_object(config_object)

    logging.basicConfig(level=app.config.get("LOG_LEVEL", "INFO"))

    db.init_app(app)
    login_manager.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)

    from .clock import SystemClock
    app.extensions["clock"] = clock or SystemClock()

    os.makedirs(app.config["UPLOAD_FOLDER"], exist_ok=True)

    from .errors import register_error_handlers
    register_error_handlers(app)

    from .services.formatting import to_khmer_digits
    app.add_template_filter(to_khmer_digits, "khmer_digits")

    from .routes.teaching_contracts import teaching_contracts_bp
    app.register_blueprint(teaching_contracts_bp, url_prefix="/teaching-contracts")

    from .models.user import User
    from .models import teaching_contract, catalog, candidate  # noqa: F401

    @login_manager.user_loader
    def load_user(user_id):
        return db.session.get(User, int(user_id))

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({"message": "Authentication required", "code": "UNAUTHORIZED"}), 401

    return app
