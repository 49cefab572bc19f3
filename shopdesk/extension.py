"""
ShopDesk Flask extension.

    app = Flask(__name__)
    shopdesk = ShopDesk(app, {'features': {'dashboard': True}})
"""

import logging
import os

from flask import jsonify
from flask_cors import CORS

from .core.config import Config
from .core.context import BackendContext
from .core.database import db
from .core.documents import DocumentStore
from .core.errors import DependencyUnavailable, ShopDeskError
from .core.logging_service import LoggingService
from .core.storage import create_blob_store

logger = logging.getLogger(__name__)

DEFAULT_FEATURES = {
    'auth': True,
    'orders': True,
    'products': True,
    'dashboard': True,
}


class ShopDesk:
    def __init__(self, app=None, config=None):
        self._config = dict(config or {})
        self._registered = []
        self.context = None
        self.gate = None
        if app is not None:
            self.init_app(app)

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def _apply_defaults(self, app):
        for key, value in Config.as_dict().items():
            app.config.setdefault(key, value)

        if not app.config.get('SQLALCHEMY_DATABASE_URI'):
            app.config['SQLALCHEMY_DATABASE_URI'] = 'sqlite:///' + os.path.join(
                app.config['DB_DIR'], 'shopdesk.db'
            )
        if not app.config.get('UPLOAD_FOLDER'):
            app.config['UPLOAD_FOLDER'] = app.static_folder

        if app.config['SQLALCHEMY_DATABASE_URI'].startswith('sqlite'):
            engine_options = app.config.setdefault('SQLALCHEMY_ENGINE_OPTIONS', {})
            connect_args = engine_options.setdefault('connect_args', {})
            connect_args.setdefault('timeout', app.config['REMOTE_TIMEOUT_SECONDS'])
            connect_args.setdefault('check_same_thread', False)

        for key, value in self._config.get('settings', {}).items():
            app.config[key] = value

    def _setup_database_dir(self, app):
        uri = app.config['SQLALCHEMY_DATABASE_URI']
        if uri.startswith('sqlite:///') and uri != 'sqlite:///:memory:':
            directory = os.path.dirname(uri[len('sqlite:///'):])
            if directory:
                os.makedirs(directory, exist_ok=True)

    def features(self):
        features = dict(DEFAULT_FEATURES)
        features.update(self._config.get('features', {}))
        return features

    def _build_context(self, app):
        from .modules.auth.gate import SessionGate
        from .modules.auth.identity import LocalIdentityProvider

        store = DocumentStore(db)
        try:
            blobs = create_blob_store(app.config)
        except DependencyUnavailable as e:
            LoggingService.warning('storage', f"Blob storage unavailable: {e}")
            blobs = None

        identity = LocalIdentityProvider(db)
        settings = {key: app.config.get(key) for key in Config.as_dict()}
        self.context = BackendContext(store=store, blobs=blobs, identity=identity, settings=settings)
        self.gate = SessionGate(
            identity,
            store=store,
            role_source=app.config['ADMIN_ROLE_SOURCE'],
            force_sign_out_non_admin=app.config['FORCE_SIGN_OUT_NON_ADMIN'],
            roles_collection=app.config['ROLES_COLLECTION'],
        )

    def _register_blueprints(self, app):
        from .modules.auth import auth_bp
        from .modules.dashboard import dashboard_bp
        from .modules.orders import orders_bp
        from .modules.products import products_bp

        blueprints = {
            'auth': auth_bp,
            'orders': orders_bp,
            'products': products_bp,
            'dashboard': dashboard_bp,
        }
        for name, enabled in self.features().items():
            if enabled and name in blueprints:
                app.register_blueprint(blueprints[name])
                self._registered.append(name)

    def _register_error_handlers(self, app):
        @app.errorhandler(ShopDeskError)
        def handle_shopdesk_error(error):
            if error.status_code >= 500:
                LoggingService.error('api', error.message,
                                     {'type': type(error).__name__, 'cause': str(error.cause)})
            return jsonify(error.to_dict()), error.status_code

    def init_app(self, app):
        self._apply_defaults(app)
        self._setup_database_dir(app)

        db.init_app(app)
        with app.app_context():
            db.create_all()
            self._build_context(app)

        self._register_blueprints(app)
        self._register_error_handlers(app)

        origins = [o.strip() for o in (app.config.get('CORS_ORIGINS') or '').split(',') if o.strip()]
        if origins:
            CORS(app, resources={r"/admin/*": {"origins": origins}}, supports_credentials=True)

        from .cli import shopdesk_cli
        app.cli.add_command(shopdesk_cli)

        @app.context_processor
        def inject_shopdesk():
            return {'shopdesk_features': self.features()}

        app.extensions['shopdesk'] = self
        logger.info(f"ShopDesk initialised with modules: {', '.join(self._registered)}")

    def get_registered_modules(self):
        return list(self._registered)
