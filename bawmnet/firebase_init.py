"""Firebase Admin SDK wiring.

One Firebase app per process. Firestore, the Storage bucket and the auth
module are reached through the getters below so they can be swapped out
in tests.
"""
import os
import logging

import firebase_admin
from firebase_admin import credentials, firestore, storage, auth

logger = logging.getLogger(__name__)

DEFAULT_CREDENTIALS_PATH = './firebase-service-account.json'

_app = None
_db = None
_bucket = None


class StorageNotConfigured(RuntimeError):
    """An upload was attempted without FIREBASE_STORAGE_BUCKET."""


def _setting(app_config, name, default=''):
    value = app_config.get(name) if app_config else None
    return value or os.environ.get(name, default)


def _credentials(path):
    if os.path.exists(path):
        logger.info('Using service account key %s', path)
        return credentials.Certificate(path)
    logger.info('No key at %s, falling back to application default credentials', path)
    return credentials.ApplicationDefault()


def init_firebase(app_config=None):
    """Initialize the Admin SDK once; later calls are no-ops."""
    global _app, _db, _bucket

    if _app is not None:
        return

    cred = _credentials(_setting(app_config, 'GOOGLE_APPLICATION_CREDENTIALS', DEFAULT_CREDENTIALS_PATH))

    options = {}
    bucket_name = _setting(app_config, 'FIREBASE_STORAGE_BUCKET')
    if bucket_name:
        options['storageBucket'] = bucket_name
    project_id = _setting(app_config, 'FIREBASE_PROJECT_ID')
    if project_id:
        options['projectId'] = project_id

    _app = firebase_admin.initialize_app(cred, options=options or None)
    _db = firestore.client(app=_app)

    if bucket_name:
        _bucket = storage.bucket(app=_app)
    else:
        logger.warning('FIREBASE_STORAGE_BUCKET is not set; uploads are disabled')


def get_db():
    if _db is None:
        init_firebase()
    return _db


def get_bucket():
    if _bucket is None:
        init_firebase()
    if _bucket is None:
        raise StorageNotConfigured('File uploads are not configured')
    return _bucket


def get_auth():
    return auth
