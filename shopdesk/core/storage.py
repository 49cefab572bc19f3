"""
Storage Utility
===============

Blob storage for product images with cloud (DigitalOcean Spaces) / local
branching. Both backends share one interface:

    url = blobs.upload(file_bytes, "product_images/mug_1700000000000.jpg")
    blobs.delete(url)
"""

import os
import logging
from urllib.parse import urlparse

from .errors import DependencyUnavailable, RemoteOperationFailure
from .logging_service import LoggingService

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_EXTENSIONS = {'png', 'jpg', 'jpeg', 'gif', 'webp'}

CONTENT_TYPES = {
    'jpg': 'image/jpeg', 'jpeg': 'image/jpeg',
    'png': 'image/png', 'gif': 'image/gif', 'webp': 'image/webp',
}


def guess_content_type(filename):
    """Guess content type from extension"""
    ext = filename.rsplit('.', 1)[-1].lower() if '.' in filename else ''
    return CONTENT_TYPES.get(ext, 'application/octet-stream')


class BlobStore:
    """Interface shared by the storage backends"""

    def upload(self, file_bytes, key, content_type=None):
        """Store bytes under key and return the public URL"""
        raise NotImplementedError

    def delete(self, file_url):
        """Delete by URL. Returns True if something was removed."""
        raise NotImplementedError

    def owns(self, file_url):
        """Whether a URL points into this store"""
        raise NotImplementedError


class LocalBlobStore(BlobStore):
    """Saves to a local static folder"""

    def __init__(self, folder, url_prefix='/static'):
        self.folder = folder
        self.url_prefix = '/' + url_prefix.strip('/')

    def _path_for(self, key):
        full_path = os.path.abspath(os.path.join(self.folder, key))
        if not full_path.startswith(os.path.abspath(self.folder) + os.sep):
            raise RemoteOperationFailure(f"Refusing to touch a path outside the upload folder: {key}")
        return full_path

    def upload(self, file_bytes, key, content_type=None):
        filepath = self._path_for(key)
        try:
            os.makedirs(os.path.dirname(filepath), exist_ok=True)
            with open(filepath, 'wb') as f:
                f.write(file_bytes)
        except OSError as e:
            raise RemoteOperationFailure(f"Failed to save {key}", cause=e) from e
        return f"{self.url_prefix}/{key}"

    def owns(self, file_url):
        return bool(file_url) and file_url.startswith(self.url_prefix + '/')

    def delete(self, file_url):
        # file_url looks like /static/product_images/filename.jpg
        if not self.owns(file_url):
            return False
        full_path = self._path_for(file_url[len(self.url_prefix) + 1:])
        if not os.path.isfile(full_path):
            return False
        try:
            os.unlink(full_path)
        except OSError as e:
            raise RemoteOperationFailure(f"Failed to delete {file_url}", cause=e) from e
        return True


class SpacesBlobStore(BlobStore):
    """Uploads to DigitalOcean Spaces (S3 compatible) via boto3"""

    def __init__(self, region, space_name, access_key, secret_key, prefix='uploads', timeout=5.0):
        if not (space_name and access_key and secret_key):
            raise DependencyUnavailable("Spaces storage is not configured")
        self.region = region
        self.space_name = space_name
        self.access_key = access_key
        self.secret_key = secret_key
        self.prefix = prefix.strip('/')
        self.timeout = timeout
        self._client = None

    @property
    def base_url(self):
        return f"https://{self.space_name}.{self.region}.digitaloceanspaces.com"

    def client(self):
        if self._client is None:
            import boto3
            from botocore.config import Config as BotoConfig
            self._client = boto3.client(
                's3',
                region_name=self.region,
                endpoint_url=f"https://{self.region}.digitaloceanspaces.com",
                aws_access_key_id=self.access_key,
                aws_secret_access_key=self.secret_key,
                config=BotoConfig(
                    connect_timeout=self.timeout,
                    read_timeout=self.timeout,
                    retries={'max_attempts': 2},
                ),
            )
        return self._client

    def upload(self, file_bytes, key, content_type=None):
        from botocore.exceptions import BotoCoreError, ClientError

        object_key = f"{self.prefix}/{key}"
        try:
            self.client().put_object(
                Bucket=self.space_name,
                Key=object_key,
                Body=file_bytes,
                ACL='public-read',
                ContentType=content_type or guess_content_type(key),
            )
        except (BotoCoreError, ClientError) as e:
            raise RemoteOperationFailure(f"Failed to upload {key}", cause=e) from e
        return f"{self.base_url}/{object_key}"

    def owns(self, file_url):
        return bool(file_url) and file_url.startswith(self.base_url + '/')

    def delete(self, file_url):
        from botocore.exceptions import BotoCoreError, ClientError

        if not self.owns(file_url):
            return False
        # Object key is the path without leading slash
        object_key = urlparse(file_url).path.lstrip('/')
        try:
            self.client().delete_object(Bucket=self.space_name, Key=object_key)
        except (BotoCoreError, ClientError) as e:
            raise RemoteOperationFailure(f"Failed to delete {file_url}", cause=e) from e
        return True


def create_blob_store(config):
    """Build the configured backend from an app.config mapping"""
    backend = (config.get('STORAGE_BACKEND') or 'local').lower()
    if backend == 'spaces':
        LoggingService.info('storage', "Using Spaces blob storage", {'space': config.get('SPACES_NAME')})
        return SpacesBlobStore(
            region=config.get('SPACES_REGION', 'ams3'),
            space_name=config.get('SPACES_NAME'),
            access_key=config.get('SPACES_ACCESS_KEY'),
            secret_key=config.get('SPACES_SECRET_KEY'),
            prefix=config.get('SPACES_FOLDER', 'uploads'),
            timeout=config.get('REMOTE_TIMEOUT_SECONDS', 5.0),
        )
    if backend == 'local':
        return LocalBlobStore(config['UPLOAD_FOLDER'], config.get('UPLOAD_URL_PREFIX', '/static'))
    raise DependencyUnavailable(f"Unknown STORAGE_BACKEND '{backend}'")
