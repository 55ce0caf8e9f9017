from __future__ import annotations
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from ..curriculum import SHOP_ITEMS, SHOP_ITEMS_BY_ID
from ..schemas import LearningModule, ModuleProgress, ShopItem, Student
from ..shop import ShopError, purchase_or_toggle
from ..store import Store, get_store
from .auth import require_student


router = APIRouter(tags=["students"])


class ModuleView(BaseModel):
    module: LearningModule
    progress: Optional[ModuleProgress] = None
    assigned: bool = False
    suggested: bool = False
    locked: bool = False
    resumable: bool = False


class Classmate(BaseModel):
    id: str
    name: str
    avatar: str
    xp: int
    level: int
    current_streak: int


def module_views(student: Student, modules: List[LearningModule]) -> List[ModuleView]:
    """Every module with the student's progress and lock state.

    A standard module is locked until the standard module before it is
    completed; custom modules are never locked.
    """
    views: List[ModuleView] = []
    previous_standard: Optional[LearningModule] = None
    for module in modules:
        progress = student.progress.get(module.id)
        locked = False
        if not module.is_custom:
            if previous_standard is not None:
                prev = student.progress.get(previous_standard.id)
                locked = not (prev is not None and prev.completed)
            previous_standard = module
        views.append(ModuleView(
            module=module,
            progress=progress,
            assigned=module.id in student.assigned_module_ids,
            suggested=module.id in student.suggested_module_ids,
            locked=locked,
            resumable=bool(progress and progress.resume_state is not None and not progress.completed),
        ))
    return views


@router.get("/students/me", response_model=Student)
async def get_me(student: Student = Depends(require_student)):
    return student


@router.get("/students/me/modules", response_model=List[ModuleView])
async def my_modules(student: Student = Depends(require_student), store: Store = Depends(get_store)):
    return module_views(student, store.get_all_modules())


@router.get("/students/me/classmates", response_model=List[Classmate])
async def my_classmates(student: Student = Depends(require_student), store: Store = Depends(get_store)):
    return [
        Classmate(id=s.id, name=s.name, avatar=s.avatar, xp=s.xp, level=s.level, current_streak=s.current_streak)
        for s in store.get_classmates(student.id)
    ]


@router.get("/shop/items", response_model=List[ShopItem])
async def shop_items():
    return SHOP_ITEMS


@router.post("/students/me/shop/{item_id}", response_model=Student)
async def buy_or_equip(item_id: str, student: Student = Depends(require_student), store: Store = Depends(get_store)):
    item = SHOP_ITEMS_BY_ID.get(item_id)
    if item is None:
        raise HTTPException(status_code=404, detail="Unknown item")
    try:
        updated = purchase_or_toggle(student, item)
    except ShopError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return store.update_student(updated)
