# -*- coding: utf-8 -*-
"""
ExpenseHub access service: Flask application factory
"""

import os
import logging
from flask import Flask, jsonify, request, session, g
from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate
from flask_login import LoginManager
from flask_wtf import CSRFProtect
from flask_babel import Babel
from flask_jwt_extended import JWTManager
from logging.handlers import RotatingFileHandler

# ───────── Extensions ───────── #
db = SQLAlchemy()
migrate = Migrate()
login_manager = LoginManager()
csrf = CSRFProtect()
jwt = JWTManager()
babel = Babel()

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def _configure_logging(app):
    level = app.config.get("LOG_LEVEL", "INFO")
    formatter = logging.Formatter(LOG_FORMAT)
    # app.logger is the "expensehub" logger, parent of every engine module logger
    logger = app.logger

    log_dir = app.config.get("LOG_DIR")
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        handler = RotatingFileHandler(
            os.path.join(log_dir, "expensehub.log"), maxBytes=10240, backupCount=10)
        handler.setLevel(level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    if not any(isinstance(h, logging.StreamHandler) and not isinstance(h, RotatingFileHandler)
               for h in logger.handlers):
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)
    logger.setLevel(level)
    logger.propagate = False

    if app.config.get("SQLALCHEMY_ECHO", False) or level == "DEBUG":
        sql_logger = logging.getLogger("sqlalchemy.engine")
        sql_logger.setLevel(logging.INFO)
        if not any(isinstance(h, logging.StreamHandler) for h in sql_logger.handlers):
            sql_console = logging.StreamHandler()
            sql_console.setFormatter(logging.Formatter("%(asctime)s [SQL] %(message)s"))
            sql_logger.addHandler(sql_console)


def create_app(config_object=None):
    from expensehub.config import Config

    app = Flask(__name__)
    app.config.from_object(config_object or Config)
    app.config.setdefault("SECRET_KEY", os.urandom(24))
    app.config.setdefault("LANGUAGES", ["en"])
    app.config.setdefault("BABEL_DEFAULT_LOCALE", "en")

    # ───────── Init extensions ───────── #
    db.init_app(app)
    migrate.init_app(app, db)
    csrf.init_app(app)
    login_manager.init_app(app)
    jwt.init_app(app)

    # ───────── Flask-Login ───────── #
    from expensehub.models import Profile

    @login_manager.user_loader
    def load_user(uid):
        try:
            return db.session.get(Profile, int(uid))
        except (TypeError, ValueError):
            return None

    # ───────── Babel ───────── #
    def get_locale():
        lang = request.args.get("lang")
        if lang in app.config["LANGUAGES"]:
            session["lang"] = lang
            g.locale = lang
            return lang
        stored = session.get("lang")
        if stored in app.config["LANGUAGES"]:
            g.locale = stored
            return stored
        best = request.accept_languages.best_match(app.config["LANGUAGES"])
        g.locale = best or app.config["BABEL_DEFAULT_LOCALE"]
        return g.locale

    babel.init_app(app, locale_selector=get_locale)

    # ───────── Access engine ───────── #
    from expensehub.access.service import AccessService

    app.extensions["access"] = AccessService.from_app(app, db.session)

    # ───────── Blueprints ───────── #
    from expensehub.api.routes import api_bp
    from expensehub.manage.routes import manage_bp

    app.register_blueprint(api_bp, url_prefix="/api/v1")
    app.register_blueprint(manage_bp, url_prefix="/manage")

    # ───────── Logging ───────── #
    _configure_logging(app)

    from expensehub.seeds import register_cli, seed_access_catalog_with_retry

    register_cli(app)
    if app.config.get("SEED_ACCESS_CATALOG"):
        with app.app_context():
            seed_access_catalog_with_retry(app)

    app.logger.info("ExpenseHub access service started")

    @app.route("/health")
    def health():
        return jsonify({"status": "ok"})

    return app
