import logging
from uuid import uuid4

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.api.deps import ensure_user, get_current_user_id, get_db
from app.core.security import get_password_hash
from app.models.user import User

router = APIRouter()
logger = logging.getLogger(__name__)


class UserPublicOut(BaseModel):
    id: int
    name: str | None

    class Config:
        from_attributes = True


class UserMeOut(UserPublicOut):
    external_id: str
    email: str | None


class UserMeUpdateIn(BaseModel):
    email: str | None = None
    name: str | None = None


class UserCreateIn(BaseModel):
    email: str = Field(min_length=3, max_length=320)
    name: str = Field(min_length=1, max_length=128)
    password: str | None = Field(default=None, min_length=8, max_length=72)


@router.get("/users/me", response_model=UserMeOut)
def upsert_me(
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    user = ensure_user(db, user_id)
    db.commit()
    db.refresh(user)
    return user


@router.patch("/users/me", response_model=UserMeOut)
def update_me(
    payload: UserMeUpdateIn,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    user = ensure_user(db, user_id)

    if payload.email is not None:
        v = (payload.email or "").strip().lower()
        user.email = v or None

    if payload.name is not None:
        v = (payload.name or "").strip()
        user.name = v or None

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="email already in use")

    db.refresh(user)
    return user


@router.post("/users", response_model=UserMeOut, status_code=201)
def create_user(
    payload: UserCreateIn,
    db: Session = Depends(get_db),
    _user_id: str = Depends(get_current_user_id),
):
    email = payload.email.strip().lower()
    if "@" not in email:
        raise HTTPException(status_code=400, detail="invalid email")

    existing = db.execute(select(User).where(User.email == email)).scalars().one_or_none()
    if existing:
        raise HTTPException(status_code=409, detail="email already exists")

    user = User(
        external_id=f"profile:{uuid4()}",
        email=email,
        name=payload.name.strip(),
        password_hash=get_password_hash(payload.password) if payload.password else None,
    )
    db.add(user)

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="email already in use")

    db.refresh(user)
    logger.info("Created user %s", user.id)
    return user


@router.get("/users/{user_id}", response_model=UserPublicOut)
def get_user(user_id: int, db: Session = Depends(get_db)):
    user = db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user
