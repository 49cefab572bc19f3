"""
Product Form Controller
=======================

Create, update and delete products, keeping image blobs in step with the
documents that point at them:

- a new image is uploaded before the document write that references it
- a replaced image is deleted only after the new write succeeded
- on delete the document goes first; a blob that will not delete is logged
"""

import logging
import time

from werkzeug.utils import secure_filename

from ...core.errors import NotFoundError, ShopDeskError, ValidationError
from ...core.logging_service import LoggingService
from ...core.normalize import sort_newest_first, utc_now_iso
from ...core.storage import ALLOWED_IMAGE_EXTENSIONS, guess_content_type
from ..auth.gate import require_admin
from .models import normalize_product, stored_fields, validate_product_fields

logger = logging.getLogger(__name__)


class ImageUpload:
    """An image file received from the product form"""

    def __init__(self, filename, data, content_type=None):
        self.filename = filename or ''
        self.data = data
        self.content_type = content_type or guess_content_type(self.filename)

    @classmethod
    def from_file_storage(cls, file_storage):
        """From a werkzeug FileStorage; None when no file was chosen"""
        if file_storage is None or not file_storage.filename:
            return None
        return cls(file_storage.filename, file_storage.read(), file_storage.mimetype)

    @property
    def extension(self):
        return self.filename.rsplit('.', 1)[-1].lower() if '.' in self.filename else ''


class ProductFormController:
    def __init__(self, store, blobs, collection='productos', image_folder='product_images'):
        self.store = store
        self.blobs = blobs
        self.collection = collection
        self.image_folder = image_folder

    @classmethod
    def from_context(cls, context):
        return cls(
            context.store,
            context.blobs,
            collection=context.setting('PRODUCTS_COLLECTION', 'productos'),
            image_folder=context.setting('PRODUCT_IMAGES_FOLDER', 'product_images'),
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_products(self):
        documents = self.store.query(self.collection)
        return sort_newest_first([normalize_product(d.id, d.data) for d in documents])

    def get_product(self, product_id):
        document = self.store.get(self.collection, product_id)
        if document is None:
            raise NotFoundError(f"Product {product_id} not found")
        return normalize_product(document.id, document.data)

    # ------------------------------------------------------------------
    # Images
    # ------------------------------------------------------------------

    @staticmethod
    def _check_image(image):
        if image is None:
            return
        if image.extension not in ALLOWED_IMAGE_EXTENSIONS:
            raise ValidationError(
                "Image must be one of: " + ", ".join(sorted(ALLOWED_IMAGE_EXTENSIONS)),
                fields={'image': 'unsupported file type'},
            )
        if not image.data:
            raise ValidationError("Image file is empty", fields={'image': 'empty'})

    def image_key(self, image):
        stem = secure_filename(image.filename.rsplit('.', 1)[0]) or 'image'
        return f"{self.image_folder}/{stem}_{int(time.time() * 1000)}.{image.extension}"

    def _upload(self, image):
        key = self.image_key(image)
        LoggingService.info('products', "Uploading product image", {'key': key})
        url = self.blobs.upload(image.data, key, image.content_type)
        LoggingService.info('products', "Product image uploaded", {'url': url})
        return url

    def _discard_blob(self, url, reason):
        """Best-effort blob removal; failures are logged, never raised"""
        if not url:
            return False
        try:
            removed = self.blobs.delete(url)
        except Exception as e:
            LoggingService.warning('products', f"Could not delete image after {reason}",
                                   {'url': url, 'error': str(e)})
            return False
        LoggingService.info('products', f"Deleted image after {reason}", {'url': url, 'removed': removed})
        return removed

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create(self, fields, image=None, actor=None):
        require_admin(actor)
        clean = validate_product_fields(fields)
        self._check_image(image)

        image_url = self._upload(image) if image is not None else None
        now = utc_now_iso()
        data = dict(clean, image_url=image_url, created_at=now, updated_at=now)

        try:
            document = self.store.add(self.collection, data)
        except ShopDeskError:
            self._discard_blob(image_url, "failed product create")
            raise

        LoggingService.log_user_action('products', f"created product {document.id}",
                                       user_id=actor.uid, details={'name': clean['name']})
        return normalize_product(document.id, document.data)

    def update(self, product_id, fields, image=None, actor=None):
        require_admin(actor)
        clean = validate_product_fields(fields)
        self._check_image(image)

        current = self.store.get(self.collection, product_id)
        if current is None:
            raise NotFoundError(f"Product {product_id} not found")
        old_url = normalize_product(current.id, current.data)['image_url']

        new_url = self._upload(image) if image is not None else None
        changes = dict(clean, updated_at=utc_now_iso())
        if new_url:
            changes['image_url'] = new_url
        # Older documents keep their own keys
        data = stored_fields(current.data, changes)

        try:
            document = self.store.update(self.collection, product_id, data)
        except ShopDeskError:
            self._discard_blob(new_url, "failed product update")
            raise

        if new_url and old_url and old_url != new_url:
            self._discard_blob(old_url, "image replacement")

        LoggingService.log_user_action('products', f"updated product {product_id}",
                                       user_id=actor.uid, details={'image_replaced': bool(new_url)})
        return normalize_product(document.id, document.data)

    def delete(self, product_id, actor=None):
        """Remove the document, then its image. Returns the deleted product."""
        require_admin(actor)
        existing = self.get_product(product_id)

        self.store.delete(self.collection, product_id)
        self._discard_blob(existing['image_url'], "product delete")

        LoggingService.log_user_action('products', f"deleted product {product_id}", user_id=actor.uid)
        return existing
