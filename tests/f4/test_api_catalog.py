"""Tests for class level, subject and chapter endpoints."""

from examadmin.db.subjects_repository import create_subject


class TestClassLevels:
    """Tests for /api/v1/class-levels."""

    def test_list(self, client, catalog, as_student):
        response = client.get("/api/v1/class-levels", headers=as_student)

        assert response.status_code == 200
        levels = response.json()
        assert [level["slug"] for level in levels] == ["class-5"]
        assert [s["slug"] for s in levels[0]["subjects"]] == ["english"]
        assert levels[0]["exam_count"] == 0

    def test_create(self, client, db, as_admin):
        response = client.post(
            "/api/v1/class-levels", json={"name_en": "Class 8"}, headers=as_admin
        )

        assert response.status_code == 201
        data = response.json()
        assert data["slug"] == "class-8"
        assert data["name_mr"] == "Class 8"
        assert data["is_active"] is True

    def test_create_duplicate_slug(self, client, catalog, as_admin):
        response = client.post(
            "/api/v1/class-levels",
            json={"name_en": "Fifth", "slug": "class-5"},
            headers=as_admin,
        )

        assert response.status_code == 409

    def test_teacher_cannot_create(self, client, db, as_teacher):
        response = client.post(
            "/api/v1/class-levels", json={"name_en": "Class 8"}, headers=as_teacher
        )

        assert response.status_code == 403

    def test_get_by_slug_with_stats(self, client, catalog, student, as_student):
        response = client.get("/api/v1/class-levels/class-5", headers=as_student)

        assert response.status_code == 200
        data = response.json()
        assert data["id"] == catalog["class_level"].id
        assert data["stats"]["student_count"] == 1
        assert data["stats"]["scheduled_exam_count"] == 0

    def test_missing(self, client, db, as_student):
        response = client.get("/api/v1/class-levels/class-99", headers=as_student)

        assert response.status_code == 404
        assert response.json()["detail"] == "Class level 'class-99' not found"

    def test_update_and_delete(self, client, catalog, as_admin):
        level_id = catalog["class_level"].id

        patched = client.patch(
            f"/api/v1/class-levels/{level_id}",
            json={"description_en": "Fifth standard"},
            headers=as_admin,
        )
        deleted = client.delete(f"/api/v1/class-levels/{level_id}", headers=as_admin)

        assert patched.status_code == 200
        assert patched.json()["description_en"] == "Fifth standard"
        assert patched.json()["name_en"] == "Class 5"
        assert deleted.status_code == 204
        assert client.get("/api/v1/class-levels", headers=as_admin).json() == []

    def test_subject_mappings(self, client, catalog, as_admin):
        maths = create_subject(name_en="Maths", slug="maths")

        added = client.post(
            "/api/v1/class-levels/class-5/subjects",
            json={"subject_id": maths.id},
            headers=as_admin,
        )
        again = client.post(
            "/api/v1/class-levels/class-5/subjects",
            json={"subject_id": maths.id},
            headers=as_admin,
        )
        listed = client.get("/api/v1/class-levels/class-5/subjects", headers=as_admin)

        assert added.status_code == 201
        assert again.status_code == 400
        assert again.json()["detail"] == "Subject is already assigned to this class level"
        assert {s["slug"] for s in listed.json()} == {"english", "maths"}

        removed = client.delete(
            f"/api/v1/class-levels/class-5/subjects/{maths.id}", headers=as_admin
        )
        assert removed.status_code == 204
        slugs = [s["slug"] for s in client.get(
            "/api/v1/class-levels/class-5/subjects", headers=as_admin
        ).json()]
        assert slugs == ["english"]

    def test_scheduled_exams_with_attempts(self, client, scheduled, as_student):
        response = client.get("/api/v1/class-levels/class-5/scheduled-exams", headers=as_student)

        assert response.status_code == 200
        exams = response.json()
        assert [e["id"] for e in exams] == [scheduled.id]
        assert exams[0]["user_attempts"] == 0
        assert exams[0]["has_in_progress"] is False


class TestSubjects:
    """Tests for /api/v1/subjects."""

    def test_tree(self, client, catalog, as_student):
        category = create_subject(name_en="Scholarship", slug="scholarship", is_category=True)
        create_subject(name_en="Paper 1", slug="scholarship-paper-1", parent_subject_id=category.id)

        response = client.get("/api/v1/subjects", headers=as_student)

        assert response.status_code == 200
        tree = {s["slug"]: s for s in response.json()}
        assert set(tree) == {"english", "scholarship"}
        assert [c["slug"] for c in tree["scholarship"]["sub_subjects"]] == ["scholarship-paper-1"]

    def test_create_and_update(self, client, db, as_admin):
        created = client.post(
            "/api/v1/subjects",
            json={"name_en": "Information Technology", "icon": "monitor"},
            headers=as_admin,
        )

        assert created.status_code == 201
        assert created.json()["slug"] == "information-technology"

        updated = client.put(
            "/api/v1/subjects/information-technology",
            json={"name_mr": "माहिती तंत्रज्ञान"},
            headers=as_admin,
        )
        assert updated.status_code == 200
        assert updated.json()["name_mr"] == "माहिती तंत्रज्ञान"

    def test_get_missing(self, client, db, as_student):
        response = client.get("/api/v1/subjects/history", headers=as_student)

        assert response.status_code == 404
        assert response.json()["detail"] == "Subject 'history' not found"

    def test_children(self, client, db, as_admin):
        create_subject(name_en="Scholarship", slug="scholarship", is_category=True)

        created = client.post(
            "/api/v1/subjects/scholarship/children",
            json={"name_en": "Paper 1", "is_paper": True, "paper_number": 1},
            headers=as_admin,
        )
        listed = client.get("/api/v1/subjects/scholarship/children", headers=as_admin)

        assert created.status_code == 201
        assert created.json()["slug"] == "scholarship-paper-1"
        assert [c["slug"] for c in listed.json()] == ["scholarship-paper-1"]

    def test_child_of_plain_subject(self, client, catalog, as_admin):
        response = client.post(
            "/api/v1/subjects/english/children", json={"name_en": "Poems"}, headers=as_admin
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "Parent subject is not a category"


class TestChapters:
    """Tests for subject chapters and /api/v1/chapters."""

    def test_list(self, client, catalog, as_student):
        response = client.get("/api/v1/subjects/english/chapters", headers=as_student)

        assert response.status_code == 200
        assert [c["name_en"] for c in response.json()] == ["Grammar"]

    def test_teacher_adds_chapter(self, client, catalog, as_teacher):
        response = client.post(
            "/api/v1/subjects/english/chapters",
            json={"name_en": "Poetry", "order_index": 2},
            headers=as_teacher,
        )

        assert response.status_code == 201
        assert response.json()["subject_id"] == catalog["subject"].id

    def test_student_cannot_add_chapter(self, client, catalog, as_student):
        response = client.post(
            "/api/v1/subjects/english/chapters", json={"name_en": "Poetry"}, headers=as_student
        )

        assert response.status_code == 403

    def test_counts(self, client, english_questions, catalog, as_teacher):
        response = client.get("/api/v1/subjects/english/chapters/with-counts", headers=as_teacher)

        assert response.status_code == 200
        grammar = response.json()[0]
        assert grammar["id"] == catalog["chapter"].id
        assert grammar["question_count"] == 2

    def test_get_patch_delete(self, client, catalog, as_teacher):
        chapter_id = catalog["chapter"].id

        fetched = client.get(f"/api/v1/chapters/{chapter_id}", headers=as_teacher)
        patched = client.patch(
            f"/api/v1/chapters/{chapter_id}", json={"name_en": "Grammar I"}, headers=as_teacher
        )
        deleted = client.delete(f"/api/v1/chapters/{chapter_id}", headers=as_teacher)

        assert fetched.status_code == 200
        assert patched.json()["name_en"] == "Grammar I"
        assert deleted.status_code == 204

    def test_missing_chapter(self, client, db, as_teacher):
        response = client.get("/api/v1/chapters/missing", headers=as_teacher)

        assert response.status_code == 404
        assert response.json()["detail"] == "Chapter 'missing' not found"
