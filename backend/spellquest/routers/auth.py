from datetime import datetime
from typing import Optional
import uuid

from fastapi import APIRouter, HTTPException, Depends
from fastapi.security import OAuth2PasswordRequestForm, OAuth2PasswordBearer
from jose import JWTError
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..db import get_db
from ..models import AuthSession
from ..schemas import Student, Teacher, TeacherProfile, UserRole
from ..security import create_access_token, decode_access_token
from ..store import Store, get_store

router = APIRouter(prefix="/auth", tags=["auth"])

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token")


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    role: UserRole


class Principal(BaseModel):
    id: str
    role: UserRole


class RegisterRequest(BaseModel):
    name: str
    email: str
    password: str
    class_name: str = Field(default="My Class")


class StudentLoginRequest(BaseModel):
    code: str


def _issue_token(db: Session, subject_id: str, role: UserRole) -> Token:
    # Each login gets its own server-side session (jti) so it can be revoked
    session_id = uuid.uuid4().hex
    access_token = create_access_token({"sub": subject_id, "role": role.value, "jti": session_id})
    db.merge(AuthSession(session_id=session_id, subject_id=subject_id, role=role.value))
    db.commit()
    return Token(access_token=access_token, role=role)


@router.post("/token", response_model=Token)
async def login(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db),
    store: Store = Depends(get_store),
):
    teacher = store.login_teacher(form_data.username, form_data.password)
    if not teacher:
        raise HTTPException(status_code=401, detail="Incorrect email or password")
    return _issue_token(db, teacher.id, UserRole.TEACHER)


@router.post("/register", status_code=201, response_model=Token)
async def register(req: RegisterRequest, db: Session = Depends(get_db), store: Store = Depends(get_store)):
    name = (req.name or "").strip()
    email = (req.email or "").strip()
    password = req.password or ""
    class_name = (req.class_name or "").strip() or "My Class"
    if not name or not email or not password:
        raise HTTPException(status_code=400, detail="name, email and password are required")
    teacher = store.register_teacher(name, email, password, class_name)
    if teacher is None:
        raise HTTPException(status_code=409, detail="email already registered")
    return _issue_token(db, teacher.id, UserRole.TEACHER)


@router.post("/student", response_model=Token)
async def student_login(req: StudentLoginRequest, db: Session = Depends(get_db), store: Store = Depends(get_store)):
    student = store.authenticate_student(req.code)
    if not student:
        raise HTTPException(status_code=401, detail="Unknown login code")
    # Logging in counts as activity for the day streak
    store.update_student(student)
    return _issue_token(db, student.id, UserRole.STUDENT)


def get_current_principal(token: str = Depends(oauth2_scheme), db: Session = Depends(get_db)) -> Principal:
    credentials_exception = HTTPException(status_code=401, detail="Could not validate credentials")
    try:
        payload = decode_access_token(token)
        subject: Optional[str] = payload.get("sub")
        jti: Optional[str] = payload.get("jti")
        role = UserRole(payload.get("role"))
        if subject is None or jti is None:
            raise credentials_exception
    except (JWTError, ValueError):
        raise credentials_exception
    # The session row must still exist; deleting it revokes the token
    row = db.get(AuthSession, jti)
    if not row or row.subject_id != subject or row.role != role.value:
        raise credentials_exception
    row.last_activity_at = datetime.utcnow()
    db.add(row)
    db.commit()
    return Principal(id=subject, role=role)


def require_student(principal: Principal = Depends(get_current_principal), store: Store = Depends(get_store)) -> Student:
    if principal.role != UserRole.STUDENT:
        raise HTTPException(status_code=403, detail="Students only")
    student = store.get_student(principal.id)
    if student is None:
        raise HTTPException(status_code=401, detail="Student no longer exists")
    return student


def require_teacher(principal: Principal = Depends(get_current_principal), store: Store = Depends(get_store)) -> Teacher:
    if principal.role != UserRole.TEACHER:
        raise HTTPException(status_code=403, detail="Teachers only")
    teacher = store.get_teacher(principal.id)
    if teacher is None:
        raise HTTPException(status_code=401, detail="Teacher no longer exists")
    return teacher


@router.get("/me")
async def me(principal: Principal = Depends(get_current_principal), store: Store = Depends(get_store)):
    if principal.role == UserRole.TEACHER:
        teacher = store.get_teacher(principal.id)
        if teacher is None:
            raise HTTPException(status_code=401, detail="Teacher no longer exists")
        return {"role": principal.role, "teacher": TeacherProfile(**teacher.model_dump(exclude={"password_hash"}))}
    student = store.get_student(principal.id)
    if student is None:
        raise HTTPException(status_code=401, detail="Student no longer exists")
    return {"role": principal.role, "student": student}
