import os
import logging
import pytest
import pytest_asyncio
from datetime import datetime, timedelta, timezone
from httpx import AsyncClient, ASGITransport
from unittest.mock import AsyncMock, MagicMock

os.environ.setdefault("FIREBASE_PROJECT_ID", "test-project")

from backend.report_service.main import app as report_app
from backend.report_service.database import get_db
from backend.report_service import schemas, utils, crud

# Set up logging
logging.basicConfig(level=logging.DEBUG)
logger = logging.getLogger(__name__)

# 2024-06-02 is a Sunday
BASE_WEEK_START = datetime(2024, 6, 2, tzinfo=timezone.utc)


@pytest.fixture
def report_factory():
    """Builds WeeklyReport objects; ``weeks_ago`` shifts the week back from BASE_WEEK_START."""
    def make_report(weeks_ago=0, exercise=None, diet=None, exercise_days=None, diet_days=None,
                    total=None, report_id=None, week_start=None, user_uuid="user1"):
        exercise = exercise or {}
        diet = diet or {}
        start = week_start or BASE_WEEK_START - timedelta(weeks=weeks_ago)
        exercise_total = sum(exercise.values())
        diet_total = sum(diet.values())
        return schemas.WeeklyReport(
            id=report_id or f"report_{start.strftime('%Y%m%d')}",
            user_uuid=user_uuid,
            week_start_date=start,
            week_end_date=crud.get_week_end(start),
            generated_at=start + timedelta(days=7),
            stats=schemas.WeeklyStats(
                total_certifications=total if total is not None else exercise_total + diet_total,
                exercise_days=exercise_days if exercise_days is not None else min(exercise_total, 7),
                diet_days=diet_days if diet_days is not None else min(diet_total, 7),
                exercise_categories=exercise,
                diet_categories=diet,
            ),
            status=schemas.ReportStatus.completed,
        )
    return make_report


@pytest.fixture
def firestore_doc():
    def make_doc(doc_id, data, exists=True):
        doc = MagicMock()
        doc.id = doc_id
        doc.exists = exists
        doc.to_dict.return_value = data
        doc.reference = MagicMock(name=f"ref_{doc_id}")
        return doc
    return make_doc


@pytest.fixture
def make_query():
    """A chainable Firestore query mock whose ``get`` resolves to ``docs``."""
    def build(docs=None, error=None):
        query = MagicMock()
        query.where.return_value = query
        query.order_by.return_value = query
        query.limit.return_value = query
        if error is not None:
            query.get = AsyncMock(side_effect=error)
        else:
            query.get = AsyncMock(return_value=docs or [])
        return query
    return build


@pytest.fixture
def mock_db():
    db = MagicMock()
    batch = MagicMock()
    batch.commit = AsyncMock()
    db.batch.return_value = batch
    return db


@pytest.fixture(autouse=True)
def clear_report_caches():
    crud.clear_cache()
    crud.offline_reports.clear()
    crud.offline_current_reports.clear()
    yield
    crud.clear_cache()


@pytest.fixture
def mock_current_user():
    return {"uid": "user1", "email": "test@example.com"}


@pytest.fixture
def mock_auth_token():
    return "test_token"


@pytest_asyncio.fixture
async def report_client(mock_db, mock_current_user, mock_auth_token):
    async def override_get_db():
        yield mock_db

    async def mock_get_current_user():
        return mock_current_user

    report_app.dependency_overrides[get_db] = override_get_db
    report_app.dependency_overrides[utils.get_current_user] = mock_get_current_user
    headers = {"Authorization": f"Bearer {mock_auth_token}"}

    async with AsyncClient(transport=ASGITransport(app=report_app), base_url="http://test", headers=headers) as client:
        yield client

    report_app.dependency_overrides.clear()
