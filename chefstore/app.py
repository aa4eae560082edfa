import os
from typing import Optional

from flask import Flask, send_from_directory
from flask_cors import CORS
from flask_jwt_extended import JWTManager
from flask_pymongo import PyMongo
from werkzeug.middleware.proxy_fix import ProxyFix

from .admins import AdminService
from .api.admin import create_admin_blueprint
from .api.orders import create_orders_blueprint
from .api.users import create_users_blueprint
from .auth import admin_realm, user_realm
from .config import Settings
from .mailer import Mailer
from .orders import OrderService
from .payments import PaystackVerifier
from .store import AdminStore, OrderStore, UserStore
from .tokens import TokenService
from .uploads import ImageStorage
from .users import UserService


def create_app(settings: Optional[Settings] = None, db=None) -> Flask:
    """Create and configure the Flask application.

    ``db`` lets callers hand in an already-open database (tests use mongomock);
    otherwise Flask-PyMongo connects using ``settings.mongo_uri``.
    """
    settings = settings or Settings.from_env()
    app = Flask(__name__)
    app.logger.setLevel(settings.log_level)

    # Honor proxy headers so upload URLs keep the public origin.
    if settings.trusted_proxy_hops:
        app.wsgi_app = ProxyFix(
            app.wsgi_app,
            x_for=settings.trusted_proxy_hops,
            x_proto=settings.trusted_proxy_hops,
            x_host=settings.trusted_proxy_hops,
            x_port=settings.trusted_proxy_hops,
        )

    # --- Configuration ---
    app.config["JWT_SECRET_KEY"] = settings.jwt_secret_key
    app.config["JWT_ACCESS_TOKEN_EXPIRES"] = settings.session_token_ttl
    app.config["MONGO_URI"] = settings.mongo_uri
    app.config["MAX_CONTENT_LENGTH"] = settings.max_upload_mb * 1024 * 1024
    upload_folder = settings.upload_folder or os.path.join(app.root_path, "uploads")

    # --- Initialize extensions ---
    CORS(app, supports_credentials=True, origins=list(settings.cors_origins) or "*")
    JWTManager(app)
    if db is None:
        db = PyMongo(app).db
        if db is None:
            raise RuntimeError("MONGO_URI must name a database, e.g. mongodb://host/chefstore")

    logger = app.logger
    user_store = UserStore(db, logger)
    admin_store = AdminStore(db, logger)
    order_store = OrderStore(db, logger)
    for store in (user_store, admin_store, order_store):
        store.ensure_indexes()

    tokens = TokenService(settings)
    mailer = Mailer(settings, logger)
    images = ImageStorage(upload_folder, logger)
    payments = PaystackVerifier(settings, logger)

    users = UserService(settings, user_store, tokens, mailer, images, logger)
    orders = OrderService(order_store, user_store, payments, mailer, logger)
    admins = AdminService(settings, admin_store, tokens, logger)

    users_realm = user_realm(user_store)
    admins_realm = admin_realm(admin_store)

    app.register_blueprint(create_users_blueprint(users, users_realm))
    app.register_blueprint(create_orders_blueprint(orders, users_realm, admins_realm))
    app.register_blueprint(create_admin_blueprint(admins, orders, admins_realm))

    @app.route("/uploads/<path:filename>")
    def serve_uploaded_file(filename: str):
        return send_from_directory(upload_folder, filename)

    @app.route("/health")
    def health():
        return {"status": "ok"}, 200

    return app
