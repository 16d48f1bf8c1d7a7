import pytest
from datetime import datetime, timedelta, timezone
from google.api_core import exceptions as google_exceptions
from backend.report_service import crud, schemas
from backend.report_service.errors import NetworkError, is_network_error

WEEK_START = datetime(2024, 6, 2, tzinfo=timezone.utc)


def _report_data(week_start=WEEK_START, **overrides):
    data = {
        "userUuid": "user1",
        "weekStartDate": week_start,
        "weekEndDate": crud.get_week_end(week_start),
        "generatedAt": week_start + timedelta(days=7),
        "stats": {
            "totalCertifications": 9,
            "exerciseDays": 4,
            "dietDays": 5,
            "exerciseCategories": {"근력 운동": 4},
            "dietCategories": {"집밥/도시락": 5},
            "consistencyScore": 0.7,
        },
        "analysis": {"exerciseInsights": "좋아요", "strengthAreas": ["꾸준함"]},
        "recommendations": ["스트레칭 추가"],
        "status": "completed",
    }
    data.update(overrides)
    return data


@pytest.mark.parametrize("date,expected", [
    (datetime(2024, 6, 5, 13, 45, tzinfo=timezone.utc), WEEK_START),
    (datetime(2024, 6, 2, 8, 0, tzinfo=timezone.utc), WEEK_START),
    (datetime(2024, 6, 8, 23, 59, tzinfo=timezone.utc), WEEK_START),
    (datetime(2024, 6, 9, 0, 0, tzinfo=timezone.utc), WEEK_START + timedelta(weeks=1)),
])
def test_get_week_start(date, expected):
    assert crud.get_week_start(date) == expected


def test_get_week_end():
    assert crud.get_week_end(WEEK_START) == datetime(2024, 6, 8, 23, 59, 59, tzinfo=timezone.utc)


def test_cache_key_uses_milliseconds():
    naive = datetime(2024, 6, 2)
    assert crud.cache_key("user1", WEEK_START) == f"user1_{int(WEEK_START.timestamp() * 1000)}"
    assert crud.cache_key("user1", naive) == crud.cache_key("user1", WEEK_START)


def test_report_from_firestore(firestore_doc):
    report = crud.report_from_firestore(firestore_doc("r1", _report_data()))

    assert report.id == "r1"
    assert report.user_uuid == "user1"
    assert report.stats.exercise_categories == {"근력 운동": 4}
    assert report.stats.consistency_score == 0.7
    assert report.analysis.exercise_insights == "좋아요"
    assert report.analysis.strength_areas == ["꾸준함"]
    assert report.status == schemas.ReportStatus.completed
    assert report.has_sufficient_data


def test_report_from_firestore_defaults(firestore_doc):
    report = crud.report_from_firestore(firestore_doc("r2", {"userUuid": "user1", "status": "unknown"}))
    assert report.status == schemas.ReportStatus.pending
    assert report.stats.total_certifications == 0
    assert report.recommendations == []


def test_is_network_error():
    assert is_network_error(google_exceptions.ServiceUnavailable("down"))
    assert is_network_error(ConnectionError())
    assert is_network_error(RuntimeError("Network unreachable"))
    assert not is_network_error(ValueError("bad value"))


@pytest.mark.asyncio
async def test_fetch_user_reports(mock_db, make_query, firestore_doc):
    docs = [
        firestore_doc("r2", _report_data(WEEK_START)),
        firestore_doc("r1", _report_data(WEEK_START - timedelta(weeks=1))),
    ]
    query = make_query(docs)
    mock_db.collection.return_value = query

    reports = await crud.fetch_user_reports(mock_db, "user1", limit=5)

    assert [r.id for r in reports] == ["r2", "r1"]
    mock_db.collection.assert_called_once_with("weeklyReports")
    query.limit.assert_called_with(5)
    assert crud.offline_reports["user1"] == reports
    assert crud.cache_key("user1", WEEK_START) in crud.report_cache


@pytest.mark.asyncio
async def test_fetch_user_reports_falls_back_to_cache_on_network_error(mock_db, make_query, report_factory):
    cached = [report_factory(), report_factory(weeks_ago=1)]
    crud.offline_reports["user1"] = cached
    mock_db.collection.return_value = make_query(error=google_exceptions.ServiceUnavailable("down"))

    reports = await crud.fetch_user_reports(mock_db, "user1", limit=1)

    assert reports == cached[:1]


@pytest.mark.asyncio
async def test_fetch_user_reports_raises_network_error_without_cache(mock_db, make_query):
    mock_db.collection.return_value = make_query(error=ConnectionError("refused"))

    with pytest.raises(NetworkError):
        await crud.fetch_user_reports(mock_db, "user1")


@pytest.mark.asyncio
async def test_fetch_user_reports_propagates_other_errors(mock_db, make_query):
    mock_db.collection.return_value = make_query(error=ValueError("bad query"))

    with pytest.raises(ValueError):
        await crud.fetch_user_reports(mock_db, "user1")


@pytest.mark.asyncio
async def test_fetch_current_week_report_uses_cache(mock_db, make_query, firestore_doc):
    query = make_query([firestore_doc("current", _report_data())])
    mock_db.collection.return_value = query
    now = datetime(2024, 6, 5, tzinfo=timezone.utc)

    first = await crud.fetch_current_week_report(mock_db, "user1", now=now)
    second = await crud.fetch_current_week_report(mock_db, "user1", now=now)

    assert first.id == "current"
    assert second is first
    query.get.assert_awaited_once()


@pytest.mark.asyncio
async def test_fetch_current_week_report_in_local_week(mock_db, make_query, firestore_doc):
    local_week_start = datetime(2024, 6, 9, tzinfo=timezone(timedelta(hours=9)))
    mock_db.collection.return_value = make_query([firestore_doc("kst", _report_data(local_week_start))])
    # Saturday evening in UTC is already Sunday morning at UTC+9
    now = datetime(2024, 6, 8, 20, 0, tzinfo=timezone.utc)

    report = await crud.fetch_current_week_report(mock_db, "user1", now=now, utc_offset_minutes=540)

    assert report.id == "kst"
    assert crud.cache_key("user1", datetime(2024, 6, 8, 15, 0, tzinfo=timezone.utc)) in crud.report_cache
    assert crud.cache_key("user1", WEEK_START) not in crud.report_cache

@pytest.mark.asyncio
async def test_fetch_current_week_report_missing(mock_db, make_query):
    mock_db.collection.return_value = make_query([])
    now = datetime(2024, 6, 5, tzinfo=timezone.utc)

    assert await crud.fetch_current_week_report(mock_db, "user1", now=now) is None
    assert crud.offline_current_reports["user1"] is None


@pytest.mark.asyncio
async def test_fetch_current_week_report_offline(mock_db, make_query, report_factory):
    cached = report_factory()
    crud.offline_current_reports["user1"] = cached
    mock_db.collection.return_value = make_query(error=TimeoutError())

    report = await crud.fetch_current_week_report(mock_db, "user1", now=datetime(2024, 6, 5, tzinfo=timezone.utc))

    assert report is cached


@pytest.mark.asyncio
async def test_fetch_report_by_week(mock_db, make_query, firestore_doc):
    mock_db.collection.return_value = make_query([firestore_doc("r1", _report_data())])

    report = await crud.fetch_report_by_week(mock_db, "user1", WEEK_START)

    assert report.id == "r1"
    assert crud.report_cache[crud.cache_key("user1", WEEK_START)] is report


@pytest.mark.asyncio
async def test_fetch_report_by_week_not_found(mock_db, make_query):
    mock_db.collection.return_value = make_query([])
    assert await crud.fetch_report_by_week(mock_db, "user1", WEEK_START) is None


@pytest.mark.asyncio
async def test_fetch_report_by_week_offline(mock_db, make_query, report_factory):
    crud.offline_reports["user1"] = [report_factory(), report_factory(weeks_ago=1)]
    mock_db.collection.return_value = make_query(error=ConnectionError())

    report = await crud.fetch_report_by_week(mock_db, "user1", WEEK_START - timedelta(weeks=1))
    assert report.week_start_date == WEEK_START - timedelta(weeks=1)

    with pytest.raises(NetworkError):
        await crud.fetch_report_by_week(mock_db, "user1", WEEK_START - timedelta(weeks=5))


@pytest.mark.asyncio
async def test_has_any_reports_and_count(mock_db, make_query, firestore_doc):
    mock_db.collection.return_value = make_query([firestore_doc("r1", _report_data())])
    assert await crud.has_any_reports(mock_db, "user1")
    assert await crud.get_reports_count(mock_db, "user1") == 1


@pytest.mark.asyncio
async def test_count_falls_back_to_offline_reports(mock_db, make_query, report_factory):
    mock_db.collection.return_value = make_query(error=ConnectionError())
    assert not await crud.has_any_reports(mock_db, "user1")
    assert await crud.get_reports_count(mock_db, "user1") == 0

    crud.offline_reports["user1"] = [report_factory(), report_factory(weeks_ago=1)]
    assert await crud.has_any_reports(mock_db, "user1")
    assert await crud.get_reports_count(mock_db, "user1") == 2


@pytest.mark.asyncio
async def test_available_weeks_and_earliest_date(mock_db, make_query, firestore_doc):
    older = WEEK_START - timedelta(weeks=1)
    mock_db.collection.return_value = make_query([
        firestore_doc("r2", _report_data(WEEK_START)),
        firestore_doc("r1", _report_data(older)),
    ])
    assert await crud.get_available_weeks(mock_db, "user1") == [WEEK_START, older]

    mock_db.collection.return_value = make_query([firestore_doc("r1", _report_data(older))])
    assert await crud.get_earliest_report_date(mock_db, "user1") == older

    mock_db.collection.return_value = make_query([])
    assert await crud.get_earliest_report_date(mock_db, "user1") is None


@pytest.mark.asyncio
async def test_available_weeks_offline(mock_db, make_query, report_factory):
    crud.offline_reports["user1"] = [report_factory(weeks_ago=1), report_factory()]
    mock_db.collection.return_value = make_query(error=ConnectionError())

    weeks = await crud.get_available_weeks(mock_db, "user1")

    assert weeks == [WEEK_START, WEEK_START - timedelta(weeks=1)]
    assert await crud.get_earliest_report_date(mock_db, "user1") == WEEK_START - timedelta(weeks=1)


def test_clear_cache(report_factory):
    crud._update_cache(report_factory())
    crud.clear_expired_cache()
    assert len(crud.report_cache) == 1
    crud.clear_cache()
    assert len(crud.report_cache) == 0
