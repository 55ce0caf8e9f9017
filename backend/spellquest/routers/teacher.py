from __future__ import annotations
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from ..curriculum import FOCUS_OPTIONS
from ..schemas import ClassGroup, LearningModule, Student, Teacher, TeacherAssessment, TeacherProfile
from ..store import Store, get_store
from .auth import require_teacher


router = APIRouter(prefix="/teacher", tags=["teacher"])


class ClassView(BaseModel):
    group: ClassGroup
    students: List[Student] = Field(default_factory=list)


class CreateClassRequest(BaseModel):
    name: str


class UpdateClassRequest(BaseModel):
    name: Optional[str] = None
    avatar: Optional[str] = None


class EnrollRequest(BaseModel):
    name: str


class BulkAssignRequest(BaseModel):
    module_id: str
    assign: bool = True


class RewardRequest(BaseModel):
    label: str


class CustomModuleRequest(BaseModel):
    title: str
    words: str  # comma separated


class ProfileUpdate(BaseModel):
    name: Optional[str] = None
    avatar: Optional[str] = None


def _profile(teacher: Teacher) -> TeacherProfile:
    return TeacherProfile(**teacher.model_dump(exclude={"password_hash"}))


def _own_class(store: Store, teacher: Teacher, class_id: str) -> ClassGroup:
    cls = store.get_class(class_id)
    if cls is None or cls.teacher_id != teacher.id:
        raise HTTPException(status_code=404, detail="Class not found")
    return cls


def _own_student(store: Store, teacher: Teacher, student_id: str) -> Student:
    owned = {sid for c in store.get_classes(teacher.id) for sid in c.student_ids}
    student = store.get_student(student_id) if student_id in owned else None
    if student is None:
        raise HTTPException(status_code=404, detail="Student not found")
    return student


def _require_module(store: Store, module_id: str) -> LearningModule:
    module = store.get_module(module_id)
    if module is None:
        raise HTTPException(status_code=404, detail="Module not found")
    return module


@router.get("/profile", response_model=TeacherProfile)
async def get_profile(teacher: Teacher = Depends(require_teacher)):
    return _profile(teacher)


@router.patch("/profile", response_model=TeacherProfile)
async def update_profile(req: ProfileUpdate, teacher: Teacher = Depends(require_teacher), store: Store = Depends(get_store)):
    changes = {k: v for k, v in req.model_dump().items() if v is not None}
    if "name" in changes and not changes["name"].strip():
        raise HTTPException(status_code=400, detail="name must not be empty")
    updated = teacher.model_copy(update=changes)
    store.update_teacher(updated)
    return _profile(updated)


@router.get("/classes", response_model=List[ClassView])
async def list_classes(teacher: Teacher = Depends(require_teacher), store: Store = Depends(get_store)):
    students = {s.id: s for s in store.get_students()}
    return [
        ClassView(group=c, students=[students[sid] for sid in c.student_ids if sid in students])
        for c in store.get_classes(teacher.id)
    ]


@router.post("/classes", status_code=201, response_model=ClassGroup)
async def create_class(req: CreateClassRequest, teacher: Teacher = Depends(require_teacher), store: Store = Depends(get_store)):
    name = (req.name or "").strip()
    if not name:
        raise HTTPException(status_code=400, detail="name is required")
    return store.create_class(name, teacher.id)


@router.patch("/classes/{class_id}", response_model=ClassGroup)
async def update_class(class_id: str, req: UpdateClassRequest, teacher: Teacher = Depends(require_teacher), store: Store = Depends(get_store)):
    cls = _own_class(store, teacher, class_id)
    changes = {k: v for k, v in req.model_dump().items() if v is not None}
    if "name" in changes:
        changes["name"] = changes["name"].strip()
        if not changes["name"]:
            raise HTTPException(status_code=400, detail="name must not be empty")
    updated = cls.model_copy(update=changes)
    store.update_class(updated)
    return updated


@router.post("/classes/{class_id}/students", status_code=201, response_model=Student)
async def enroll_student(class_id: str, req: EnrollRequest, teacher: Teacher = Depends(require_teacher), store: Store = Depends(get_store)):
    _own_class(store, teacher, class_id)
    name = (req.name or "").strip()
    if not name:
        raise HTTPException(status_code=400, detail="name is required")
    return store.create_student(name, class_id)


@router.post("/classes/{class_id}/assign")
async def bulk_assign(class_id: str, req: BulkAssignRequest, teacher: Teacher = Depends(require_teacher), store: Store = Depends(get_store)):
    _own_class(store, teacher, class_id)
    _require_module(store, req.module_id)
    changed = store.bulk_assign_module_to_class(class_id, req.module_id, req.assign)
    return {"changed": changed}


@router.get("/students/{student_id}", response_model=Student)
async def get_student(student_id: str, teacher: Teacher = Depends(require_teacher), store: Store = Depends(get_store)):
    return _own_student(store, teacher, student_id)


@router.post("/students/{student_id}/modules/{module_id}", response_model=Student)
async def toggle_assignment(student_id: str, module_id: str, teacher: Teacher = Depends(require_teacher), store: Store = Depends(get_store)):
    student = _own_student(store, teacher, student_id)
    _require_module(store, module_id)
    if module_id in student.assigned_module_ids:
        student.assigned_module_ids = [m for m in student.assigned_module_ids if m != module_id]
    else:
        student.assigned_module_ids = student.assigned_module_ids + [module_id]
    return store.update_student(student)


@router.put("/students/{student_id}/assessment", response_model=Student)
async def save_assessment(student_id: str, req: TeacherAssessment, teacher: Teacher = Depends(require_teacher), store: Store = Depends(get_store)):
    student = _own_student(store, teacher, student_id)
    student.teacher_assessment = req
    return store.update_student(student)


@router.post("/students/{student_id}/rewards", response_model=Student)
async def send_reward(student_id: str, req: RewardRequest, teacher: Teacher = Depends(require_teacher), store: Store = Depends(get_store)):
    student = _own_student(store, teacher, student_id)
    label = (req.label or "").strip()
    if not label:
        raise HTTPException(status_code=400, detail="label is required")
    student.custom_rewards = [label] + student.custom_rewards
    return store.update_student(student)


@router.get("/modules", response_model=List[LearningModule])
async def list_modules(teacher: Teacher = Depends(require_teacher), store: Store = Depends(get_store)):
    return store.get_all_modules()


@router.post("/modules", status_code=201, response_model=LearningModule)
async def create_module(req: CustomModuleRequest, teacher: Teacher = Depends(require_teacher), store: Store = Depends(get_store)):
    if not (req.title or "").strip() or not (req.words or "").strip():
        raise HTTPException(status_code=400, detail="title and words are required")
    return store.create_custom_module(req.title, req.words, teacher.id)


@router.get("/focus-options", response_model=List[str])
async def focus_options(teacher: Teacher = Depends(require_teacher)):
    return FOCUS_OPTIONS
