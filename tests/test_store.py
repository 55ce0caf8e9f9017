"""Store tests against an in-memory SQLite database."""
import json
import re

import pytest

from spellquest.models import StoredRecord
from spellquest.schemas import ClassGroup, LessonPhase, LessonPhaseState
from spellquest.security import verify_password
from spellquest.settings import settings
from spellquest.store import ChangeNotifier, Store, storage_key

from conftest import make_lesson


@pytest.mark.unit
class TestSeeding:
    def test_students_seeded_on_first_read(self, store, db):
        students = store.get_students()
        assert [s.id for s in students] == ["s1", "s2", "s3", "s4"]
        assert db.get(StoredRecord, "sq_students_v23") is not None

    def test_classes_filtered_by_teacher(self, store):
        assert {c.id for c in store.get_classes("t1")} == {"c1", "c2"}
        assert store.get_classes("nobody") == []

    def test_seed_teacher_credentials(self, store):
        teacher = store.get_teacher("t1")
        assert teacher.email == settings.seed_teacher_email
        assert verify_password(settings.seed_teacher_password, teacher.password_hash)

    def test_storage_key_format(self):
        assert storage_key("classes", "v23") == "sq_classes_v23"


@pytest.mark.unit
class TestLegacyMigration:
    def _put(self, db, key, records):
        db.add(StoredRecord(key=key, payload=json.dumps(records)))
        db.commit()

    def test_newest_legacy_version_with_students_wins(self, db):
        legacy_class = ClassGroup(id="c9", teacher_id="t1", name="Old Room").model_dump(mode="json")
        self._put(db, "sq_students_v20", [])
        self._put(db, "sq_classes_v20", [legacy_class])
        # Classes without a students record are not a complete version
        self._put(db, "sq_classes_v21", [])

        store = Store(db, ChangeNotifier())
        assert store.migrate_legacy_data() == "v20"
        assert [c.id for c in store.get_classes()] == ["c9"]
        # Students are not carried forward
        assert [s.id for s in store.get_students()] == ["s1", "s2", "s3", "s4"]

    def test_noop_once_current_students_exist(self, store, db):
        store.get_students()
        self._put(db, "sq_students_v22", [])
        assert store.migrate_legacy_data() is None

    def test_nothing_to_migrate(self, store):
        assert store.migrate_legacy_data() is None


@pytest.mark.unit
class TestTeachers:
    def test_register_creates_class(self, store):
        teacher = store.register_teacher("Ms. K", "k@school.nz", "secret123", "Room 7")
        assert teacher is not None
        classes = store.get_classes(teacher.id)
        assert [c.name for c in classes] == ["Room 7"]

    def test_duplicate_email_is_case_insensitive(self, store):
        assert store.register_teacher("Copy", settings.seed_teacher_email.upper(), "x", "Room") is None

    def test_login(self, store):
        store.register_teacher("Ms. K", "k@school.nz", "secret123", "Room 7")
        assert store.login_teacher("K@School.nz", "secret123").name == "Ms. K"
        assert store.login_teacher("k@school.nz", "wrong") is None


@pytest.mark.unit
class TestStudents:
    def test_create_student_enrols_with_code(self, store):
        student = store.create_student("Aroha", "c1")
        assert re.fullmatch(r"(KIWI|KEA|TUI|FERN|HAKA|MOA)-\d{3}", student.login_code)
        assert student.id in store.get_class("c1").student_ids
        assert student.avatar == "\U0001F423"

    def test_authenticate_is_case_and_space_insensitive(self, store):
        assert store.authenticate_student("  moa-176 ").id == "s1"
        assert store.authenticate_student("NOPE-000") is None
        assert store.authenticate_student("") is None

    def test_update_runs_rules(self, store):
        student = store.get_student("s1")
        student.xp = 1200
        saved = store.update_student(student)
        assert saved.level == 3
        assert {"novice", "legend"} <= {a.id for a in saved.achievements}
        assert store.get_student("s1").xp == 1200

    def test_update_unknown_student(self, store):
        ghost = store.get_student("s1").model_copy(update={"id": "ghost"})
        assert store.update_student(ghost) is None

    def test_progress_snapshot(self, store):
        state = LessonPhaseState(phase=LessonPhase.PRACTICE, content=make_lesson())
        assert store.save_student_progress_state("s1", "l1_cvc", state) is True
        progress = store.get_student("s1").progress["l1_cvc"]
        assert progress.resume_state.phase == LessonPhase.PRACTICE
        assert progress.completed is False

    def test_classmates_sorted_by_xp(self, store):
        s2 = store.get_student("s2")
        s2.xp = 300
        store.update_student(s2)
        assert [s.id for s in store.get_classmates("s1")] == ["s2", "s1"]
        assert store.get_classmates("ghost") == []


@pytest.mark.unit
class TestAssignments:
    def test_bulk_assign_and_unassign(self, store):
        assert store.bulk_assign_module_to_class("c1", "l1_cvc", True) is True
        assert "l1_cvc" in store.get_student("s1").assigned_module_ids
        assert "l1_cvc" in store.get_student("s2").assigned_module_ids
        assert "l1_cvc" not in store.get_student("s3").assigned_module_ids
        # Already assigned
        assert store.bulk_assign_module_to_class("c1", "l1_cvc", True) is False
        assert store.bulk_assign_module_to_class("c1", "l1_cvc", False) is True
        assert "l1_cvc" not in store.get_student("s1").assigned_module_ids

    def test_unknown_class(self, store):
        assert store.bulk_assign_module_to_class("c404", "l1_cvc", True) is False


@pytest.mark.unit
class TestCustomModules:
    def test_create_custom_module(self, store):
        module = store.create_custom_module("Space words", "rocket, comet ,, star", "t1")
        assert module.custom_words == ["rocket", "comet", "star"]
        assert module.description == "Teacher created: 3 words"
        assert module.id.startswith("custom_")
        assert store.get_module(module.id).title == "Space words"
        assert store.get_all_modules()[-1].id == module.id

    def test_fixed_module_lookup(self, store):
        assert store.get_module("l1_cvc").title == "CVC Foundations"
        assert store.get_module("missing") is None


@pytest.mark.unit
class TestChangeNotifier:
    def test_writes_notify_subscribers(self, db):
        notifier = ChangeNotifier()
        events = []
        unsubscribe = notifier.subscribe(events.append)
        store = Store(db, notifier)
        store.create_class("Room 9", "t1")
        assert events and events[-1]["type"] == "DATA_UPDATE"
        count = len(events)
        unsubscribe()
        store.create_class("Room 10", "t1")
        assert len(events) == count

    def test_failing_subscriber_does_not_block_write(self, db):
        notifier = ChangeNotifier()

        def _boom(event):
            raise RuntimeError("listener down")

        notifier.subscribe(_boom)
        store = Store(db, notifier)
        cls = store.create_class("Room 9", "t1")
        assert store.get_class(cls.id) is not None
