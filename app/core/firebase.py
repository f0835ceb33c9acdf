import logging

import firebase_admin
from app.config import Settings
from firebase_admin import credentials

logger = logging.getLogger(__name__)


def initialize_firebase(settings: Settings) -> bool:
  """Initializes the Firebase Admin SDK used for FCM push delivery."""
  if firebase_admin._apps:
    return True

  if not settings.firebase_project_id:
    logger.warning("Firebase Project ID not set. Firebase Admin SDK not initialized.")
    return False

  try:
    if settings.firebase_service_account_json_path:
      cred = credentials.Certificate(settings.firebase_service_account_json_path)
      firebase_admin.initialize_app(cred, {"projectId": settings.firebase_project_id})
    else:
      # Use default credentials (e.g. Google Application Default Credentials)
      firebase_admin.initialize_app(options={"projectId": settings.firebase_project_id})
    logger.info("Firebase Admin SDK initialized successfully.")
  except (ValueError, OSError) as exc:
    logger.error("Failed to initialize Firebase Admin SDK: %s", exc)
    return False
  return True
