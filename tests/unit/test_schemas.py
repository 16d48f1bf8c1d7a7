import pytest
from datetime import datetime, timedelta, timezone
from backend.report_service.schemas import (
    WeeklyReport, WeeklyReportResponse, WeeklyStats, DietCategory, ExerciseCategory, category_type_of, CategoryType,
)


def _report(week_start, **stats):
    return WeeklyReport(
        id="r1",
        user_uuid="user1",
        week_start_date=week_start,
        week_end_date=week_start + timedelta(days=6, hours=23, minutes=59, seconds=59),
        generated_at=week_start + timedelta(days=7),
        stats=WeeklyStats(**stats),
    )


@pytest.mark.parametrize("week_start,expected", [
    # mid-year Sunday
    (datetime(2024, 6, 2, tzinfo=timezone.utc), "2024-W22"),
    # week starting on Jan 1
    (datetime(2023, 1, 1, tzinfo=timezone.utc), "2023-W1"),
    # week crossing into the next year keeps the starting year
    (datetime(2023, 12, 31, tzinfo=timezone.utc), "2023-W53"),
    (datetime(2024, 12, 29, tzinfo=timezone.utc), "2024-W52"),
])
def test_week_identifier(week_start, expected):
    assert _report(week_start).week_identifier == expected


def test_has_sufficient_data():
    start = datetime(2024, 6, 2, tzinfo=timezone.utc)
    assert _report(start, exercise_days=2, diet_days=1).has_sufficient_data
    assert not _report(start, exercise_days=1, diet_days=1).has_sufficient_data


def test_report_response_carries_derived_fields():
    report = _report(datetime(2024, 6, 2, tzinfo=timezone.utc), exercise_days=3)
    response = WeeklyReportResponse.from_report(report)
    assert response.week_identifier == "2024-W22"
    assert response.has_sufficient_data


def test_category_display_names():
    assert ExerciseCategory.strength.display_name == "근력 운동"
    assert DietCategory.home_made.display_name == "집밥/도시락"
    assert category_type_of("스트레칭/요가") == CategoryType.exercise
    assert category_type_of("영양제/보충제") == CategoryType.diet
