import os
import logging
import firebase_admin
from firebase_admin import credentials
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)


def initialize_firebase():
    # 이미 초기화된 경우 건너뜀
    if firebase_admin._apps:
        return firebase_admin.get_app()

    credentials_path = os.getenv("FIREBASE_CREDENTIALS_PATH")
    if credentials_path:
        cred = credentials.Certificate(credentials_path)
    else:
        cred = credentials.ApplicationDefault()

    options = {}
    project_id = os.getenv("FIREBASE_PROJECT_ID")
    if project_id:
        options["projectId"] = project_id

    app = firebase_admin.initialize_app(cred, options)
    logger.info(f"Firebase Admin initialized (project: {project_id or 'default'})")
    return app
