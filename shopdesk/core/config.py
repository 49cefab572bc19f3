import os
from dotenv import load_dotenv

load_dotenv(override=True)


def _env_bool(key, default):
    value = os.getenv(key)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    """
    Base configuration for ShopDesk.
    Host apps can override any of these through app.config before calling
    ShopDesk(app); anything left unset is filled in from here.
    """
    # Flask settings
    SECRET_KEY = os.getenv('FLASK_SECRET_KEY')

    # Get DB_DIR from environment, or use a default if not set
    DB_DIR = os.getenv('DB_DIR', os.path.join(os.getcwd(), 'databases'))

    # Falls back to sqlite:///<DB_DIR>/shopdesk.db
    SQLALCHEMY_DATABASE_URI = os.getenv('DATABASE_URL')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Blob storage: 'local' (static folder) or 'spaces' (DigitalOcean Spaces / S3)
    STORAGE_BACKEND = os.getenv('STORAGE_BACKEND', 'local')
    # Defaults to the host app's static folder
    UPLOAD_FOLDER = os.getenv('UPLOAD_FOLDER')
    UPLOAD_URL_PREFIX = os.getenv('UPLOAD_URL_PREFIX', '/static')
    SPACES_REGION = os.getenv('SPACES_REGION', 'ams3')
    SPACES_NAME = os.getenv('SPACES_NAME')
    SPACES_ACCESS_KEY = os.getenv('SPACES_ACCESS_KEY')
    SPACES_SECRET_KEY = os.getenv('SPACES_SECRET_KEY')
    SPACES_FOLDER = os.getenv('SPACES_FOLDER', 'uploads')

    # Applied to the SQLite busy timeout and the object storage client
    REMOTE_TIMEOUT_SECONDS = float(os.getenv('REMOTE_TIMEOUT_SECONDS', '5'))

    # Session gate
    # 'claims' reads the admin custom claim on the account,
    # 'roles' reads the roles/{uid} document
    ADMIN_ROLE_SOURCE = os.getenv('ADMIN_ROLE_SOURCE', 'claims')
    FORCE_SIGN_OUT_NON_ADMIN = _env_bool('FORCE_SIGN_OUT_NON_ADMIN', True)

    # Orders
    ENFORCE_ORDER_LIFECYCLE = _env_bool('ENFORCE_ORDER_LIFECYCLE', True)
    MIRROR_USER_ORDERS = _env_bool('MIRROR_USER_ORDERS', True)
    ORDER_STATUS_FIELD = os.getenv('ORDER_STATUS_FIELD', 'status')

    # Dashboard
    LOW_STOCK_THRESHOLD = int(os.getenv('LOW_STOCK_THRESHOLD', '10'))

    # Logging
    LOG_TO_DATABASE = _env_bool('LOG_TO_DATABASE', True)

    # Comma separated origins allowed to call the admin API
    CORS_ORIGINS = os.getenv('CORS_ORIGINS', 'http://localhost:5173')

    # Collection names
    PRODUCTS_COLLECTION = os.getenv('PRODUCTS_COLLECTION', 'productos')
    ORDERS_COLLECTION = 'orders'
    USER_ORDERS_COLLECTION = 'users/{user_id}/orders'
    ROLES_COLLECTION = 'roles'
    PRODUCT_IMAGES_FOLDER = 'product_images'

    @classmethod
    def as_dict(cls):
        return {key: getattr(cls, key) for key in dir(cls) if key.isupper()}
