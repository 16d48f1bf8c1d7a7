# report_service/database.py

import os
from dotenv import load_dotenv
from firebase_admin import firestore_async

# 현재 파일의 디렉토리 경로를 얻습니다.
current_dir = os.path.dirname(os.path.abspath(__file__))
# 프로젝트 루트 디렉토리 경로를 얻습니다 (현재 디렉토리의 상위 디렉토리).
project_root = os.path.dirname(current_dir)
# .env 파일의 경로를 지정합니다.
dotenv_path = os.path.join(project_root, '.env')

# .env 파일을 로드합니다.
load_dotenv(dotenv_path)

# 환경 변수를 가져옵니다.
FIREBASE_CREDENTIALS_PATH = os.getenv("FIREBASE_CREDENTIALS_PATH")
FIREBASE_PROJECT_ID = os.getenv("FIREBASE_PROJECT_ID")
REPORT_CACHE_TTL_MINUTES = int(os.getenv("REPORT_CACHE_TTL_MINUTES", "5"))
REPORT_FETCH_LIMIT = int(os.getenv("REPORT_FETCH_LIMIT", "10"))

# Firestore 컬렉션
WEEKLY_REPORTS_COLLECTION = "weeklyReports"
USERS_COLLECTION = "users"
WEB_NOTIFICATIONS_COLLECTION = "webNotifications"
SYSTEM_STATUS_COLLECTION = "systemStatus"


async def get_db():
    yield firestore_async.client()
