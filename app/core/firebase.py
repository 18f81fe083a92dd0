import base64
import json
import logging

import firebase_admin
from firebase_admin import credentials, firestore_async, storage

from app.core.config import FIREBASE_SERVICE_ACCOUNT_BASE64, FIREBASE_STORAGE_BUCKET

logger = logging.getLogger(__name__)


# -----------------------
# Firebase app (initialised once per process, lazily)
# -----------------------
def get_firebase_app() -> firebase_admin.App:
    try:
        return firebase_admin.get_app()
    except ValueError:
        pass

    if not FIREBASE_SERVICE_ACCOUNT_BASE64:
        raise RuntimeError("FIREBASE_SERVICE_ACCOUNT_BASE64 is missing")

    service_account = json.loads(base64.b64decode(FIREBASE_SERVICE_ACCOUNT_BASE64).decode("utf-8"))
    options = {"storageBucket": FIREBASE_STORAGE_BUCKET} if FIREBASE_STORAGE_BUCKET else None
    app = firebase_admin.initialize_app(credentials.Certificate(service_account), options)
    logger.info("Firebase app initialised for project %s", service_account.get("project_id"))
    return app


# -----------------------
# FastAPI dependencies
# -----------------------
def get_firestore():
    """Async Firestore client bound to the default Firebase app."""
    return firestore_async.client(app=get_firebase_app())


def get_bucket():
    if not FIREBASE_STORAGE_BUCKET:
        raise RuntimeError("FIREBASE_STORAGE_BUCKET is missing")
    return storage.bucket(FIREBASE_STORAGE_BUCKET, app=get_firebase_app())
