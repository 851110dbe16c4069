"""Tests for class level, subject and chapter repositories."""

import pytest

from examadmin.db.chapters_repository import (
    create_chapter,
    delete_chapter,
    get_chapters_by_subject_id,
    get_chapters_by_subject_slug,
    update_chapter,
)
from examadmin.db.class_levels_repository import (
    add_subject_to_class_level,
    create_class_level,
    delete_class_level,
    get_class_level_by_id,
    get_class_level_by_slug,
    get_class_level_stats,
    list_class_levels,
    remove_subject_from_class_level,
    resolve_class_level,
    update_class_level,
)
from examadmin.db.subjects_repository import (
    create_child_subject,
    create_subject,
    get_subject_by_slug,
    get_subject_detail,
    get_subject_stats,
    get_subjects_by_class_level,
    get_subjects_with_class_counts,
    list_subjects,
    update_subject,
)
from examadmin.errors import ConflictError, NotFoundError


class TestClassLevels:
    """Tests for class level CRUD."""

    def test_create_generates_slug_and_order(self, db):
        first = create_class_level(name_en="Class 5")
        second = create_class_level(name_en="Class 8", name_mr="इयत्ता ८ वी")

        assert first.slug == "class-5"
        assert first.name_mr == "Class 5"
        assert second.order_index == first.order_index + 1

    def test_duplicate_slug(self, db):
        create_class_level(name_en="Class 5")

        with pytest.raises(ConflictError):
            create_class_level(name_en="Class 5 again", slug="class-5")

    def test_slug_lookup_ignores_case(self, db):
        level = create_class_level(name_en="Class 5")

        assert get_class_level_by_slug("CLASS-5").id == level.id
        assert resolve_class_level(level.id).id == level.id
        assert resolve_class_level("class-5").id == level.id

    def test_soft_delete(self, db):
        level = create_class_level(name_en="Class 5")

        assert delete_class_level(level.id) is True

        assert list_class_levels() == []
        assert get_class_level_by_slug("class-5") is None
        assert get_class_level_by_id(level.id).is_active is False
        assert delete_class_level("missing") is False

    def test_update(self, db):
        level = create_class_level(name_en="Class 5")

        updated = update_class_level(level.id, name_en="Fifth", description_en=None)

        assert updated.name_en == "Fifth"
        assert updated.slug == "class-5"

    def test_update_missing(self, db):
        with pytest.raises(NotFoundError):
            update_class_level("missing", name_en="X")

    def test_list_includes_mapped_subjects(self, catalog):
        summaries = list_class_levels()

        assert len(summaries) == 1
        data = summaries[0].to_dict()
        assert [s["slug"] for s in data["subjects"]] == ["english"]
        assert data["exam_count"] == 0

    def test_stats_match_free_text_class_level(self, catalog, make_user):
        make_user("student", class_level="class-5")
        make_user("student", class_level="Class 5")
        make_user("student", class_level="class-8")
        make_user("teacher", class_level="class-5")

        stats = get_class_level_stats(catalog["class_level"])

        assert stats.student_count == 2


class TestSubjectMappings:
    """Tests for subject/class level mappings."""

    def test_duplicate_mapping_is_soft_failure(self, catalog):
        result = add_subject_to_class_level(catalog["class_level"].id, catalog["subject"].id)

        assert not result.success
        assert "already assigned" in result.error

    def test_remove_and_reactivate(self, catalog):
        level_id = catalog["class_level"].id
        subject_id = catalog["subject"].id

        assert remove_subject_from_class_level(level_id, subject_id).success
        assert get_subjects_by_class_level(level_id) == []
        assert not remove_subject_from_class_level(level_id, subject_id).success

        result = add_subject_to_class_level(level_id, subject_id)

        assert result.success
        assert [s.id for s in get_subjects_by_class_level(level_id)] == [subject_id]

    def test_unknown_subject(self, catalog):
        result = add_subject_to_class_level(catalog["class_level"].id, "missing")

        assert result.error == "Subject not found"


class TestSubjects:
    """Tests for the subject tree."""

    def test_slug_variants(self, db):
        subject = create_subject(name_en="Information Technology", slug="information_technology")

        assert get_subject_by_slug("information-technology").id == subject.id

    def test_child_subjects(self, db):
        category = create_subject(name_en="Scholarship", is_category=True)

        result = create_child_subject(category.id, "Paper 1", is_paper=True, paper_number=1)

        assert result.success
        assert result.data.slug == "scholarship-paper-1"
        detail = get_subject_detail("scholarship")
        assert [s["slug"] for s in detail["sub_subjects"]] == ["scholarship-paper-1"]

    def test_child_requires_category(self, db):
        plain = create_subject(name_en="English")

        result = create_child_subject(plain.id, "Paper 1")

        assert result.error == "Parent subject is not a category"

    def test_duplicate_child(self, db):
        category = create_subject(name_en="Scholarship", is_category=True)
        create_child_subject(category.id, "Paper 1")

        assert not create_child_subject(category.id, "Paper 1").success

    def test_tree_and_class_filter(self, catalog):
        category = create_subject(name_en="Scholarship", is_category=True)
        paper = create_child_subject(category.id, "Paper 1").data
        add_subject_to_class_level(catalog["class_level"].id, paper.id)
        create_child_subject(category.id, "Paper 2")

        full = list_subjects()
        filtered = list_subjects(class_level_id=catalog["class_level"].id)

        assert [s["slug"] for s in full] == ["english", "scholarship"]
        assert len(full[1]["sub_subjects"]) == 2
        scholarship = next(s for s in filtered if s["slug"] == "scholarship")
        assert [c["slug"] for c in scholarship["sub_subjects"]] == ["scholarship-paper-1"]

    def test_orphans_become_roots(self, db):
        category = create_subject(name_en="Scholarship", is_category=True)
        child = create_child_subject(category.id, "Paper 1").data
        update_subject(category.id, is_active=False)

        roots = list_subjects()

        assert [s["id"] for s in roots] == [child.id]

    def test_update_slug_conflict(self, db):
        create_subject(name_en="English")
        maths = create_subject(name_en="Maths")

        result = update_subject(maths.id, slug="english")

        assert not result.success
        assert "already exists" in result.error

    def test_stats_and_class_counts(self, catalog):
        create_subject(name_en="Scholarship", is_category=True)

        stats = get_subject_stats()
        counts = {s["slug"]: s["class_count"] for s in get_subjects_with_class_counts()}

        assert stats.total_categories == 1
        assert stats.root_subjects == 1
        assert stats.total_chapters == 1
        assert counts == {"english": 1, "scholarship": 0}


class TestChapters:
    """Tests for chapter CRUD."""

    def test_unknown_subject(self, db):
        with pytest.raises(NotFoundError):
            create_chapter("missing", name_en="Nouns")

    def test_ordering_and_slug_lookup(self, catalog):
        subject_id = catalog["subject"].id
        create_chapter(subject_id, name_en="Articles", order_index=0)

        names = [c.name_en for c in get_chapters_by_subject_slug("english")]

        assert names == ["Articles", "Grammar"]
        assert get_chapters_by_subject_slug("missing") == []

    def test_update_and_soft_delete(self, catalog):
        chapter = catalog["chapter"]

        assert update_chapter(chapter.id, name_mr="व्याकरण").name_mr == "व्याकरण"
        assert delete_chapter(chapter.id) is True
        assert get_chapters_by_subject_id(catalog["subject"].id) == []
        assert delete_chapter("missing") is False

    def test_update_missing(self, db):
        with pytest.raises(NotFoundError):
            update_chapter("missing", name_en="X")
