"""Persistence facade over versioned JSON collections.

Each collection (students, classes, teachers, custom modules) is stored as
a single JSON document under a key that embeds the schema version, e.g.
``sq_students_v23``. Every write is followed by a change notification so
that open views can re-read.
"""

from __future__ import annotations

import json
import logging
import random
import time
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from fastapi import Depends
from sqlalchemy.orm import Session

from . import curriculum
from .db import get_db
from .models import StoredRecord
from .rules import derive_student_state
from .schemas import ClassGroup, LearningModule, LessonPhaseState, ModuleProgress, ModuleTheme, Student, Teacher
from .security import hash_password, verify_password
from .settings import settings


logger = logging.getLogger(__name__)

STUDENTS = "students"
CLASSES = "classes"
TEACHERS = "teachers"
CUSTOM_MODULES = "custom_modules"


def storage_key(collection: str, version: str) -> str:
    return f"sq_{collection}_{version}"


def _now_ms() -> int:
    return int(time.time() * 1000)


class ChangeNotifier:
    """Observer list for store writes."""

    def __init__(self) -> None:
        self._subscribers: List[Callable[[Dict[str, Any]], None]] = []

    def subscribe(self, callback: Callable[[Dict[str, Any]], None]) -> Callable[[], None]:
        self._subscribers.append(callback)

        def _unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return _unsubscribe

    def notify(self) -> Dict[str, Any]:
        event = {"type": "DATA_UPDATE", "timestamp": _now_ms()}
        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception:
                logger.exception("Change subscriber failed")
        return event


# App-wide notifier; the WebSocket broadcaster subscribes to it at startup
notifier = ChangeNotifier()


class Store:
    def __init__(
        self,
        db: Session,
        notifier: Optional[ChangeNotifier] = None,
        version: Optional[str] = None,
        legacy_versions: Optional[List[str]] = None,
    ) -> None:
        self.db = db
        self.notifier = notifier or ChangeNotifier()
        self.version = version or settings.storage_version
        self.legacy_versions = legacy_versions if legacy_versions is not None else list(settings.legacy_storage_versions)

    # ---- raw records ----

    def _key(self, collection: str) -> str:
        return storage_key(collection, self.version)

    def _read_raw(self, key: str) -> Optional[str]:
        row = self.db.get(StoredRecord, key)
        return row.payload if row is not None else None

    def _write_raw(self, key: str, payload: str) -> None:
        row = self.db.get(StoredRecord, key)
        if row is None:
            row = StoredRecord(key=key, payload=payload)
        else:
            row.payload = payload
            row.updated_at = datetime.utcnow()
        self.db.add(row)
        self.db.commit()

    def _read(self, collection: str) -> Optional[List[dict]]:
        raw = self._read_raw(self._key(collection))
        if raw is None:
            return None
        return json.loads(raw)

    def _write(self, collection: str, records: List[Any]) -> None:
        data = [r.model_dump(mode="json") if hasattr(r, "model_dump") else r for r in records]
        self._write_raw(self._key(collection), json.dumps(data, ensure_ascii=False))

    def _notify(self) -> None:
        self.notifier.notify()

    def migrate_legacy_data(self) -> Optional[str]:
        """Carry classes, teachers and custom modules forward from the newest legacy version.

        Only runs while the current students key is absent. Students themselves
        are not carried forward. Returns the version migrated from, if any.
        """
        if self._read_raw(self._key(STUDENTS)) is not None:
            return None
        for version in self.legacy_versions:
            if self._read_raw(storage_key(STUDENTS, version)) is None:
                continue
            for collection in (CLASSES, TEACHERS, CUSTOM_MODULES):
                legacy = self._read_raw(storage_key(collection, version))
                if legacy is not None:
                    self._write_raw(self._key(collection), legacy)
            logger.info("Migrated classes, teachers and custom modules from %s to %s", version, self.version)
            return version
        return None

    # ---- getters ----

    def get_students(self) -> List[Student]:
        stored = self._read(STUDENTS)
        if stored is None:
            seeded = curriculum.seed_students()
            self._write(STUDENTS, seeded)
            return seeded
        return [Student.model_validate(s) for s in stored]

    def get_student(self, student_id: str) -> Optional[Student]:
        for student in self.get_students():
            if student.id == student_id:
                return student
        return None

    def get_classes(self, teacher_id: Optional[str] = None) -> List[ClassGroup]:
        stored = self._read(CLASSES)
        if stored is None:
            classes = curriculum.seed_classes()
            self._write(CLASSES, classes)
        else:
            classes = [ClassGroup.model_validate(c) for c in stored]
        if teacher_id:
            return [c for c in classes if c.teacher_id == teacher_id]
        return classes

    def get_class(self, class_id: str) -> Optional[ClassGroup]:
        for cls in self.get_classes():
            if cls.id == class_id:
                return cls
        return None

    def get_teachers(self) -> List[Teacher]:
        stored = self._read(TEACHERS)
        if stored is None:
            seed = Teacher(
                id=curriculum.SEED_TEACHER_ID,
                name=curriculum.SEED_TEACHER_NAME,
                email=settings.seed_teacher_email,
                password_hash=hash_password(settings.seed_teacher_password),
                avatar="\U0001F468‍\U0001F3EB",
            )
            self._write(TEACHERS, [seed])
            return [seed]
        return [Teacher.model_validate(t) for t in stored]

    def get_teacher(self, teacher_id: str) -> Optional[Teacher]:
        for teacher in self.get_teachers():
            if teacher.id == teacher_id:
                return teacher
        return None

    def get_custom_modules(self) -> List[LearningModule]:
        stored = self._read(CUSTOM_MODULES)
        return [LearningModule.model_validate(m) for m in stored] if stored else []

    def get_all_modules(self) -> List[LearningModule]:
        return list(curriculum.MODULES) + self.get_custom_modules()

    def get_module(self, module_id: str) -> Optional[LearningModule]:
        if module_id in curriculum.MODULES_BY_ID:
            return curriculum.MODULES_BY_ID[module_id]
        for module in self.get_custom_modules():
            if module.id == module_id:
                return module
        return None

    # ---- custom modules ----

    def save_custom_module(self, module: LearningModule) -> LearningModule:
        current = self.get_custom_modules()
        current.append(module)
        self._write(CUSTOM_MODULES, current)
        self._notify()
        return module

    def create_custom_module(self, title: str, words_text: str, teacher_id: str) -> LearningModule:
        words = [w.strip() for w in (words_text or "").split(",") if w.strip()]
        module = LearningModule(
            id=f"custom_{uuid.uuid4().hex}",
            title=title.strip(),
            level="Custom List",
            theme=ModuleTheme.SPACE,
            description=f"Teacher created: {len(words)} words",
            rule_explanation="Custom teacher list.",
            is_custom=True,
            custom_words=words,
            created_by=teacher_id,
        )
        return self.save_custom_module(module)

    # ---- teachers ----

    def register_teacher(self, name: str, email: str, password: str, class_name: str) -> Optional[Teacher]:
        teachers = self.get_teachers()
        if any(t.email.lower() == email.lower() for t in teachers):
            return None
        teacher = Teacher(
            id=f"t{_now_ms()}",
            name=name,
            email=email,
            password_hash=hash_password(password),
            avatar="\U0001F469‍\U0001F3EB",
        )
        teachers.append(teacher)
        self._write(TEACHERS, teachers)
        self.create_class(class_name, teacher.id)
        return teacher

    def login_teacher(self, email: str, password: str) -> Optional[Teacher]:
        for teacher in self.get_teachers():
            if teacher.email.lower() == (email or "").lower() and verify_password(password, teacher.password_hash):
                return teacher
        return None

    def update_teacher(self, updated: Teacher) -> bool:
        teachers = self.get_teachers()
        for i, teacher in enumerate(teachers):
            if teacher.id == updated.id:
                teachers[i] = updated
                self._write(TEACHERS, teachers)
                self._notify()
                return True
        return False

    # ---- classes ----

    def create_class(self, name: str, teacher_id: str) -> ClassGroup:
        classes = self.get_classes()
        cls = ClassGroup(
            id=f"c{_now_ms()}_{random.randint(0, 999)}",
            teacher_id=teacher_id,
            name=name,
            student_ids=[],
            avatar="\U0001F3EB",
        )
        classes.append(cls)
        self._write(CLASSES, classes)
        self._notify()
        return cls

    def update_class(self, updated: ClassGroup) -> bool:
        classes = self.get_classes()
        for i, cls in enumerate(classes):
            if cls.id == updated.id:
                classes[i] = updated
                self._write(CLASSES, classes)
                self._notify()
                return True
        return False

    def bulk_assign_module_to_class(self, class_id: str, module_id: str, assign: bool) -> bool:
        cls = self.get_class(class_id)
        if cls is None:
            return False
        students = self.get_students()
        changed = False
        for student in students:
            if student.id not in cls.student_ids:
                continue
            if assign and module_id not in student.assigned_module_ids:
                student.assigned_module_ids = student.assigned_module_ids + [module_id]
                changed = True
            elif not assign and module_id in student.assigned_module_ids:
                student.assigned_module_ids = [m for m in student.assigned_module_ids if m != module_id]
                changed = True
        if changed:
            self._write(STUDENTS, students)
            self._notify()
        return changed

    # ---- students ----

    def _generate_login_code(self, taken: set) -> str:
        while True:
            prefix = random.choice(curriculum.LOGIN_CODE_PREFIXES)
            code = f"{prefix}-{random.randint(100, 999)}"
            if code not in taken:
                return code

    def create_student(self, name: str, class_id: str) -> Student:
        students = self.get_students()
        classes = self.get_classes()
        student = Student(
            id=f"s{uuid.uuid4().hex[:12]}",
            login_code=self._generate_login_code({s.login_code.upper() for s in students}),
            name=name,
        )
        students.append(student)
        self._write(STUDENTS, students)
        for cls in classes:
            if cls.id == class_id:
                cls.student_ids.append(student.id)
                self._write(CLASSES, classes)
                break
        self._notify()
        return student

    def authenticate_student(self, code: str) -> Optional[Student]:
        wanted = (code or "").strip().upper()
        if not wanted:
            return None
        for student in self.get_students():
            if student.login_code.upper() == wanted:
                return student
        return None

    def update_student(self, updated: Student, now: Optional[datetime] = None) -> Optional[Student]:
        """Run the derived-field rules over ``updated`` and persist it. Unknown ids are ignored."""
        students = self.get_students()
        for i, previous in enumerate(students):
            if previous.id == updated.id:
                processed = derive_student_state(updated, self.get_all_modules(), previous=previous, now=now)
                students[i] = processed
                self._write(STUDENTS, students)
                self._notify()
                return processed
        return None

    def save_student_progress_state(self, student_id: str, module_id: str, state: Optional[LessonPhaseState]) -> bool:
        students = self.get_students()
        for student in students:
            if student.id == student_id:
                progress = student.progress.get(module_id) or ModuleProgress()
                if progress.completed and state is not None:
                    # Retries of a finished module always start fresh
                    return False
                progress.resume_state = state
                student.progress[module_id] = progress
                self._write(STUDENTS, students)
                self._notify()
                return True
        return False

    def get_classmates(self, student_id: str) -> List[Student]:
        cls = next((c for c in self.get_classes() if student_id in c.student_ids), None)
        if cls is None:
            return []
        mates = [s for s in self.get_students() if s.id in cls.student_ids]
        return sorted(mates, key=lambda s: s.xp, reverse=True)


def get_store(db: Session = Depends(get_db)) -> Store:
    return Store(db, notifier)
