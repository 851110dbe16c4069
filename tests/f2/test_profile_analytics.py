"""Tests for the profile screen and the admin analytics."""

from datetime import date, datetime, timezone

import pytest

from examadmin.core import analytics, exam_attempts, profile
from examadmin.core.auth import sign_in
from examadmin.errors import AuthenticationError, NotFoundError, ValidationError


@pytest.fixture
def completed_attempt(student, scheduled, english_questions, auth_for):
    auth = auth_for(student)
    exam_id = exam_attempts.start_exam(auth, scheduled.id)["exam"]["id"]
    exam_attempts.submit_answer(auth, exam_id, english_questions["capital"].id, "english", 1)
    exam_attempts.submit_answer(auth, exam_id, english_questions["river"].id, "english", True)
    return exam_attempts.complete_exam(auth, exam_id)


class TestStreakDays:
    """Tests for consecutive activity days."""

    def test_consecutive_days(self):
        completed = [
            "2026-03-10T08:00:00+00:00",
            "2026-03-09T18:30:00+00:00",
            "2026-03-09T07:00:00+00:00",
            "2026-03-08T12:00:00+00:00",
            "2026-03-05T12:00:00+00:00",
        ]

        assert profile.calculate_streak_days(completed, today=date(2026, 3, 10)) == 3

    def test_yesterday_keeps_streak(self):
        completed = ["2026-03-09T08:00:00+00:00"]

        assert profile.calculate_streak_days(completed, today=date(2026, 3, 10)) == 1

    def test_broken_streak(self):
        completed = ["2026-03-07T08:00:00+00:00", "2026-03-06T08:00:00+00:00"]

        assert profile.calculate_streak_days(completed, today=date(2026, 3, 10)) == 0

    def test_no_activity(self):
        assert profile.calculate_streak_days([], today=date(2026, 3, 10)) == 0
        assert profile.calculate_streak_days(["not a date"], today=date(2026, 3, 10)) == 0


class TestProfile:
    """Tests for reading and editing the own profile."""

    def test_profile_without_activity(self, student, catalog):
        data = profile.get_profile(student.id)

        assert data["email"] == "student@example.com"
        assert "password_hash" not in data
        assert data["class_level_id"] == catalog["class_level"].id
        assert data["class_level_details"]["slug"] == "class-5"
        assert data["total_exams_taken"] == 0
        assert data["average_score"] == 0
        assert data["streak_days"] == 0
        assert data["last_activity_at"] is None

    def test_profile_with_activity(self, student, completed_attempt):
        data = profile.get_profile(student.id)

        assert data["total_exams_taken"] == 1
        assert data["average_score"] == 30
        assert data["streak_days"] == 1
        assert data["last_activity_at"] == completed_attempt["completed_at"]
        assert data["total_time_spent_seconds"] >= 0

    def test_missing_profile(self, db):
        with pytest.raises(NotFoundError):
            profile.get_profile("missing")

    def test_update(self, student):
        data = profile.update_profile(student.id, name="Asha", preferred_language="mr")

        assert data["name"] == "Asha"
        assert data["preferred_language"] == "mr"

    def test_update_nothing(self, student):
        with pytest.raises(ValidationError, match="No fields to update"):
            profile.update_profile(student.id)

    def test_change_password(self, student):
        profile.change_password(student.id, "new-secret-1")

        assert sign_in("student@example.com", "new-secret-1")["user"]["id"] == student.id
        with pytest.raises(AuthenticationError):
            sign_in("student@example.com", "secret123")

    def test_weak_password(self, student):
        with pytest.raises(ValidationError, match="at least 6 characters"):
            profile.change_password(student.id, "abc")


class TestAnalytics:
    """Tests for the admin dashboard numbers."""

    def test_dashboard_stats(self, admin, completed_attempt, english_questions):
        stats = analytics.get_dashboard_stats()

        assert stats["total_users"] == 3
        assert stats["active_students"] == 1
        assert stats["total_exams"] == 1
        assert stats["completed_exams"] == 1
        assert stats["average_score"] == 30
        assert stats["pass_rate"] == 0
        assert stats["completion_rate"] == 100
        assert stats["total_questions"] == 4
        english = next(s for s in stats["questions_by_subject"] if s["slug"] == "english")
        assert english["count"] == 4
        by_difficulty = {d["difficulty"]: d["count"] for d in stats["questions_by_difficulty"]}
        assert by_difficulty == {"easy": 1, "medium": 2, "hard": 1}

    def test_empty_dashboard(self, db):
        stats = analytics.get_dashboard_stats()

        assert stats["total_users"] == 0
        assert stats["pass_rate"] == 0
        assert stats["completion_rate"] == 0

    def test_kpi_metrics(self, student, completed_attempt):
        kpi = analytics.get_kpi_metrics()

        assert kpi["new_exams"] == 1
        assert kpi["monthly_exam_growth"] == 100.0
        assert kpi["previous_period"] == {"new_users": 0, "new_exams": 0}
        assert kpi["avg_exams_per_student"] == 1.0
        assert kpi["student_retention_rate"] == 100.0

    def test_growth(self):
        assert analytics._growth(5, 0) == 100.0
        assert analytics._growth(0, 0) == 0.0
        assert analytics._growth(15, 10) == 50.0

    def test_recent_activity(self, completed_attempt):
        activity = analytics.get_recent_activity(limit=5)

        assert activity[0]["id"] == completed_attempt["id"]
        assert activity[0]["profile"]["email"] == "student@example.com"

    def test_class_level_analytics(self, completed_attempt):
        levels = analytics.get_class_level_analytics()

        assert levels == [
            {
                "class_level": "Class 5",
                "slug": "class-5",
                "total_students": 1,
                "total_exams": 1,
                "average_score": 30,
                "pass_rate": 0,
            }
        ]

    def test_subject_analytics(self, completed_attempt):
        subjects = analytics.get_subject_analytics()

        assert subjects[0]["slug"] == "english"
        assert subjects[0]["total_questions"] == 4
        assert subjects[0]["total_exams"] == 1

    def test_month_buckets(self):
        now = datetime(2026, 2, 15, tzinfo=timezone.utc)

        assert analytics._month_buckets(now, 3) == ["2025-12", "2026-01", "2026-02"]

    def test_monthly_trends(self, completed_attempt):
        now = datetime.now(timezone.utc)

        trends = analytics.get_monthly_trends(months=6, now=now)

        assert len(trends) == 6
        assert trends[-1]["period"] == now.strftime("%Y-%m")
        assert trends[-1]["enrollments"] == 1
        assert trends[-1]["exams"] == 1
        assert trends[-1]["completions"] == 1
        assert trends[0]["exams"] == 0
