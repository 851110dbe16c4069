"""Tests for school and user repositories."""

import pytest

from examadmin.core.security import verify_password
from examadmin.db.schools_repository import (
    create_school,
    delete_school,
    find_duplicate_school,
    get_school,
    get_school_with_student_count,
    list_schools,
    school_name_exists,
    search_schools,
    suggest_schools,
    update_school,
)
from examadmin.db.users_repository import (
    create_user,
    delete_user,
    get_user,
    get_user_by_email,
    get_user_detail,
    list_users,
    update_user,
)
from examadmin.errors import ConflictError, ValidationError


class TestSchools:
    """Tests for the schools repository."""

    def test_create_defaults(self, db):
        school = create_school("  Model School ", location_city="Pune")

        assert school.name == "Model School"
        assert school.name_search == "model school"
        assert school.location_country == "India"
        assert school.is_user_added is False

    def test_list_pagination_and_stats(self, db):
        for i in range(5):
            create_school(f"School {i}", is_verified=i < 2)

        page = list_schools(page=2, page_size=2)

        assert [s["name"] for s in page["items"]] == ["School 2", "School 3"]
        assert page["pagination"]["total_pages"] == 3
        assert page["pagination"]["has_next_page"] is True
        assert page["pagination"]["has_previous_page"] is True
        assert page["stats"]["total_verified"] == 2
        assert page["stats"]["total_unverified"] == 3

    def test_list_filters(self, db):
        create_school("Alpha", location_city="Pune", location_state="Maharashtra", is_verified=True)
        create_school("Beta", location_city="Nagpur", location_state="Maharashtra")

        verified = list_schools(is_verified=True)
        by_city = list_schools(city="nag")
        by_search = list_schools(search="pune")

        assert [s["name"] for s in verified["items"]] == ["Alpha"]
        assert verified["stats"]["total_overall"] == 2
        assert [s["name"] for s in by_city["items"]] == ["Beta"]
        assert [s["name"] for s in by_search["items"]] == ["Alpha"]

    def test_search_prefers_verified(self, db):
        create_school("Zilla Parishad School A")
        create_school("Zilla Parishad School B", is_verified=True)

        names = [s.name for s in search_schools("zilla")]

        assert names == ["Zilla Parishad School B", "Zilla Parishad School A"]
        assert search_schools("   ") == []

    def test_suggest(self, db):
        create_school("Model School", location_city="Pune", location_state="Maharashtra")

        suggestions = suggest_schools("model")

        assert suggestions[0]["location"] == "Pune, Maharashtra"
        assert set(suggestions[0]) == {"id", "name", "location", "is_verified"}

    def test_duplicates(self, db):
        school = create_school("Model School", location_city="Pune")

        assert find_duplicate_school("model  school", "PUNE").id == school.id
        assert find_duplicate_school("Model School", "Mumbai") is None
        assert find_duplicate_school("Model School") is None
        assert school_name_exists("MODEL SCHOOL")
        assert not school_name_exists("Model School", exclude_id=school.id)

    def test_update_keeps_search_name(self, db):
        school = create_school("Old Name")

        updated = update_school(school.id, name=" New   Name ", is_verified=True)

        assert updated.name_search == "new name"
        assert updated.is_verified is True

    def test_delete_with_students(self, db, make_user):
        school = create_school("Model School")
        make_user("student", school_id=school.id)

        with pytest.raises(ConflictError, match="1 associated students"):
            delete_school(school.id)
        assert get_school_with_student_count(school.id)["student_count"] == 1

    def test_delete(self, db):
        school = create_school("Model School")

        assert delete_school(school.id) is True
        assert get_school(school.id) is None
        assert delete_school(school.id) is False


class TestUsers:
    """Tests for the users repository."""

    def test_create_normalizes_email(self, db):
        user = create_user(email=" Asha@Example.com ", password="secret123")

        assert user.email == "asha@example.com"
        assert user.role == "student"
        assert "password_hash" not in user.to_dict()
        assert verify_password("secret123", user.password_hash)

    def test_create_validation(self, db):
        with pytest.raises(ValidationError, match="Invalid role"):
            create_user(email="a@example.com", role="janitor")
        with pytest.raises(ValidationError, match="Email or phone is required"):
            create_user(name="Nobody")

    def test_create_conflicts(self, db):
        create_user(email="a@example.com", phone="9876543210")

        with pytest.raises(ConflictError):
            create_user(email="A@example.com")
        with pytest.raises(ConflictError):
            create_user(email="b@example.com", phone="9876543210")

    def test_update_password_and_conflict(self, db):
        user = create_user(email="a@example.com", password="secret123")
        create_user(email="b@example.com")

        updated = update_user(user.id, password="newpass1", name="Asha")

        assert updated.name == "Asha"
        assert verify_password("newpass1", get_user_by_email("a@example.com").password_hash)
        with pytest.raises(ConflictError):
            update_user(user.id, email="b@example.com")

    def test_clear_school(self, db):
        school = create_school(name="Model School")
        user = create_user(email="a@example.com")
        update_user(user.id, school_id=school.id)

        updated = update_user(user.id, school_id=None)

        assert updated.school_id is None
        assert get_user(user.id).school_id is None

    def test_role_cannot_be_cleared(self, db):
        user = create_user(email="a@example.com")

        with pytest.raises(ValidationError, match="role cannot be empty"):
            update_user(user.id, role=None)
        assert get_user(user.id).role == "student"

    def test_list_filters(self, db, catalog, make_user):
        make_user("student", name="Ravi Patil", class_level="class-5")
        make_user("student", name="Sita", class_level="Class 5")
        make_user("student", name="Old", class_level="class-8", is_active=False)
        make_user("teacher", name="Teacher")

        students = list_users(role="student")
        by_level = list_users(class_level_id=catalog["class_level"].id)
        by_slug = list_users(class_level_slug="CLASS-8")
        inactive = list_users(is_active=False)
        searched = list_users(search="patil")

        assert students["total"] == 3
        assert {u["name"] for u in by_level["items"]} == {"Ravi Patil", "Sita"}
        assert [u["name"] for u in by_slug["items"]] == ["Old"]
        assert [u["name"] for u in inactive["items"]] == ["Old"]
        assert [u["name"] for u in searched["items"]] == ["Ravi Patil"]

    def test_list_pagination(self, db, make_user):
        for _ in range(3):
            make_user()

        page = list_users(page=2, page_size=2)

        assert page["total"] == 3
        assert page["total_pages"] == 2
        assert len(page["items"]) == 1
        assert page["items"][0]["school"] is None

    def test_soft_and_hard_delete(self, db, make_user):
        user = make_user()

        assert delete_user(user.id) is True
        assert get_user(user.id).is_active is False
        assert delete_user(user.id, hard=True) is True
        assert get_user(user.id) is None
        assert delete_user(user.id) is False

    def test_detail(self, db, make_user):
        school = create_school("Model School")
        user = make_user(school_id=school.id)

        detail = get_user_detail(user.id)

        assert detail["school"] == {"id": school.id, "name": "Model School"}
        assert "exam_stats" in detail
        assert get_user_detail("missing") is None
