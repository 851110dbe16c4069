"""Tests for question bank and question import endpoints."""

from unittest.mock import patch

from examadmin.core.pdf_extractor import PdfExtractionError
from examadmin.core.question_extractor import QuestionExtractionError
from examadmin.db.import_batches_repository import create_batch

CAPITAL = {
    "question_text": "What is the capital of Maharashtra?",
    "question_type": "mcq_single",
    "class_level": "class-5",
    "answer_data": {"options": ["Pune", "Mumbai", "Nagpur", "Nashik"], "correct": 1},
    "marks": 2,
}

SHEET = (
    "Question (English),Option A,Option B,Option C,Option D,Correct Answer,Difficulty,Marks\n"
    "What is the capital of Maharashtra?,Pune,Mumbai,Nagpur,Nashik,B,easy,2\n"
    "How many sides does a hexagon have?,4,5,6,8,C,medium,1\n"
).encode("utf-8")


class TestQuestionBank:
    """Tests for /api/v1/subjects/{slug}/questions."""

    def test_create(self, client, catalog, teacher, as_teacher):
        response = client.post(
            "/api/v1/subjects/english/questions", json=CAPITAL, headers=as_teacher
        )

        assert response.status_code == 201
        data = response.json()
        assert data["created_by"] == teacher.id
        assert data["question_language"] == "en"
        assert data["difficulty"] == "medium"

    def test_create_invalid_type(self, client, catalog, as_teacher):
        response = client.post(
            "/api/v1/subjects/english/questions",
            json={**CAPITAL, "question_type": "essay"},
            headers=as_teacher,
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid question type: essay"

    def test_unknown_bank(self, client, catalog, as_teacher):
        response = client.post(
            "/api/v1/subjects/history/questions", json=CAPITAL, headers=as_teacher
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid subject: history"

    def test_student_cannot_create(self, client, catalog, as_student):
        response = client.post(
            "/api/v1/subjects/english/questions", json=CAPITAL, headers=as_student
        )

        assert response.status_code == 403

    def test_list_paginated(self, client, english_questions, as_teacher):
        response = client.get(
            "/api/v1/subjects/english/questions",
            params={"page_size": 3},
            headers=as_teacher,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 4
        assert data["total_pages"] == 2
        assert len(data["items"]) == 3

    def test_list_filtered(self, client, english_questions, as_teacher):
        response = client.get(
            "/api/v1/subjects/english/questions",
            params={"difficulty": "hard"},
            headers=as_teacher,
        )

        assert [q["id"] for q in response.json()["items"]] == [english_questions["cities"].id]

    def test_stats(self, client, english_questions, as_teacher):
        response = client.get("/api/v1/subjects/english/questions/stats", headers=as_teacher)

        data = response.json()
        assert data["total"] == 4
        assert data["by_difficulty"] == {"easy": 1, "medium": 2, "hard": 1}

    def test_by_ids_hides_answers_from_students(self, client, english_questions, as_student):
        capital = english_questions["capital"]

        response = client.post(
            "/api/v1/subjects/english/questions/by-ids",
            json={"ids": [capital.id]},
            headers=as_student,
        )

        assert response.status_code == 200
        assert response.json()[0]["answer_data"] == {
            "options": ["Pune", "Mumbai", "Nagpur", "Nashik"]
        }

    def test_by_ids_for_staff(self, client, english_questions, as_teacher):
        capital = english_questions["capital"]

        response = client.post(
            "/api/v1/subjects/english/questions/by-ids",
            json={"ids": [capital.id]},
            headers=as_teacher,
        )

        assert response.json()[0]["answer_data"]["correct"] == 1

    def test_get_update_delete(self, client, english_questions, as_teacher):
        url = f"/api/v1/subjects/english/questions/{english_questions['essay'].id}"

        fetched = client.get(url, headers=as_teacher)
        updated = client.put(url, json={"marks": 4, "difficulty": "hard"}, headers=as_teacher)
        deleted = client.delete(url, headers=as_teacher)

        assert fetched.json()["question_type"] == "short_answer"
        assert updated.json()["marks"] == 4
        assert updated.json()["difficulty"] == "hard"
        assert deleted.status_code == 204
        assert client.get(url, headers=as_teacher).json()["is_active"] is False

    def test_update_with_null(self, client, english_questions, as_teacher):
        url = f"/api/v1/subjects/english/questions/{english_questions['capital'].id}"

        cleared = client.put(url, json={"chapter_id": None}, headers=as_teacher)
        refused = client.put(url, json={"question_text": None}, headers=as_teacher)

        assert cleared.status_code == 200
        assert cleared.json()["chapter_id"] is None
        assert cleared.json()["marks"] == 2
        assert refused.status_code == 400
        assert refused.json()["detail"] == "question_text cannot be empty"

    def test_missing_question(self, client, catalog, as_teacher):
        response = client.get("/api/v1/subjects/english/questions/missing", headers=as_teacher)

        assert response.status_code == 404
        assert response.json()["detail"] == "Question 'missing' not found"

    def test_search_across_banks(self, client, english_questions, as_admin):
        response = client.get(
            "/api/v1/questions", params={"search": "Godavari"}, headers=as_admin
        )

        assert response.status_code == 200
        results = response.json()
        assert [q["id"] for q in results] == [english_questions["river"].id]
        assert results[0]["subject"]["slug"] == "english"


class TestSpreadsheetImport:
    """Tests for uploading, reviewing and committing spreadsheet batches."""

    def _upload(self, client, headers, name="paper.csv", data=SHEET):
        return client.post(
            "/api/v1/questions/import/csv",
            files={"file": (name, data, "text/csv")},
            data={"subject_slug": "english"},
            headers=headers,
        )

    def test_upload(self, client, catalog, teacher, as_teacher):
        response = self._upload(client, as_teacher)

        assert response.status_code == 201
        batch = response.json()
        assert batch["status"] == "pending"
        assert batch["question_count"] == 2
        assert batch["created_by"] == teacher.id
        assert batch["metadata"]["import_type"] == "csv"

    def test_wrong_extension(self, client, catalog, as_teacher):
        response = self._upload(client, as_teacher, name="paper.txt")

        assert response.status_code == 400
        assert response.json()["detail"] == "File must be one of: .csv, .xlsx, .xls"

    def test_empty_file(self, client, catalog, as_teacher):
        response = self._upload(client, as_teacher, data=b"")

        assert response.status_code == 400
        assert response.json()["detail"] == "File is empty"

    def test_student_cannot_upload(self, client, catalog, as_student):
        assert self._upload(client, as_student).status_code == 403

    def test_review_and_commit(self, client, catalog, as_teacher):
        batch = self._upload(client, as_teacher).json()
        reviewed = batch["parsed_questions"][:1]

        review = client.post(
            "/api/v1/questions/import/review",
            json={"batch_id": batch["id"], "questions": reviewed, "batch_name": "Week 1"},
            headers=as_teacher,
        )
        commit = client.post(
            "/api/v1/questions/import/commit",
            json={"batch_id": batch["id"], "default_class_level": "class-5"},
            headers=as_teacher,
        )

        assert review.json()["status"] == "reviewed"
        assert review.json()["batch_name"] == "Week 1"
        assert commit.status_code == 200
        assert commit.json() == {"batch_id": batch["id"], "imported_count": 1, "total_count": 1}
        questions = client.get("/api/v1/subjects/english/questions", headers=as_teacher).json()
        assert questions["items"][0]["class_level"] == "class-5"

    def test_commit_twice(self, client, catalog, as_teacher):
        batch = self._upload(client, as_teacher).json()
        body = {"batch_id": batch["id"]}

        client.post("/api/v1/questions/import/commit", json=body, headers=as_teacher)
        again = client.post("/api/v1/questions/import/commit", json=body, headers=as_teacher)

        assert again.status_code == 400

    def test_review_someone_elses_batch(self, client, catalog, make_user, headers_for, as_teacher):
        batch = self._upload(client, as_teacher).json()
        other = headers_for(make_user("teacher"))

        response = client.post(
            "/api/v1/questions/import/review",
            json={"batch_id": batch["id"], "questions": []},
            headers=other,
        )

        assert response.status_code == 403

    def test_batches_scoped_to_teacher(self, client, catalog, make_user, headers_for, as_teacher, as_admin):
        mine = self._upload(client, as_teacher).json()
        other = headers_for(make_user("teacher"))

        teacher_view = client.get("/api/v1/questions/import/batches", headers=as_teacher)
        other_view = client.get("/api/v1/questions/import/batches", headers=other)
        admin_view = client.get("/api/v1/questions/import/batches", headers=as_admin)

        assert [b["id"] for b in teacher_view.json()] == [mine["id"]]
        assert other_view.json() == []
        assert len(admin_view.json()) == 1

    def test_batch_detail(self, client, catalog, as_teacher):
        batch = self._upload(client, as_teacher).json()

        found = client.get(f"/api/v1/questions/import/batches/{batch['id']}", headers=as_teacher)
        missing = client.get("/api/v1/questions/import/batches/missing", headers=as_teacher)

        assert found.json()["id"] == batch["id"]
        assert missing.status_code == 404


class TestPdfImport:
    """Tests for POST /api/v1/questions/import/pdf."""

    def _upload(self, client, headers):
        return client.post(
            "/api/v1/questions/import/pdf",
            files={"file": ("paper.pdf", b"%PDF-1.7 fake", "application/pdf")},
            data={"subject_slug": "scholarship", "model": "gpt-4o-mini", "max_questions": "5"},
            headers=headers,
        )

    def test_creates_batch(self, client, teacher, as_teacher):
        batch = create_batch(
            "scholarship",
            "AI Import - paper.pdf",
            [{"question_text": "Q1", "question_type": "mcq_single"}],
            created_by=teacher.id,
        )

        with patch(
            "examadmin.web.routes.question_import.import_pdf", return_value=batch
        ) as import_pdf:
            response = self._upload(client, as_teacher)

        assert response.status_code == 201
        assert response.json()["id"] == batch.id
        kwargs = import_pdf.call_args.kwargs
        assert kwargs["subject_slug"] == "scholarship"
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["max_questions"] == 5
        assert kwargs["created_by"] == teacher.id

    def test_unreadable_pdf(self, client, db, as_teacher):
        with patch(
            "examadmin.web.routes.question_import.import_pdf",
            side_effect=PdfExtractionError("Invalid PDF file"),
        ):
            response = self._upload(client, as_teacher)

        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid PDF file"

    def test_ai_failure(self, client, db, as_teacher):
        with patch(
            "examadmin.web.routes.question_import.import_pdf",
            side_effect=QuestionExtractionError("AI service is temporarily unavailable"),
        ):
            response = self._upload(client, as_teacher)

        assert response.status_code == 502

    def test_not_a_pdf(self, client, db, as_teacher):
        response = client.post(
            "/api/v1/questions/import/pdf",
            files={"file": ("paper.docx", b"data", "application/octet-stream")},
            data={"subject_slug": "scholarship"},
            headers=as_teacher,
        )

        assert response.status_code == 400
        assert response.json()["detail"] == "File must be one of: .pdf"

    def test_models(self, client, db, as_teacher, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)

        response = client.get("/api/v1/questions/import/models", headers=as_teacher)

        data = response.json()
        assert data["default_model"] == "gpt-4o"
        assert "gpt-4o-mini" in [m["id"] for m in data["models"]]
        assert all(not m["available"] for m in data["models"] if m["provider"] == "openai")
