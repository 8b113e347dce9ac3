import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.api.deps import get_current_user_id, get_db
from app.models.sport import Sport

router = APIRouter()
logger = logging.getLogger(__name__)


class SportCreate(BaseModel):
    name: str = Field(min_length=1, max_length=64)
    max_players: int = Field(ge=1, le=100)
    max_substitutes: int = Field(default=0, ge=0, le=100)
    description: str | None = None
    icon: str | None = Field(default=None, max_length=64)


class SportOut(BaseModel):
    id: int
    name: str
    max_players: int
    max_substitutes: int
    description: str | None
    icon: str | None

    class Config:
        from_attributes = True


@router.get("/sports", response_model=list[SportOut])
def list_sports(db: Session = Depends(get_db)):
    return db.execute(select(Sport).order_by(Sport.name)).scalars().all()


@router.post("/sports", response_model=SportOut, status_code=201)
def create_sport(
    payload: SportCreate,
    db: Session = Depends(get_db),
    _user_id: str = Depends(get_current_user_id),
):
    sport = Sport(
        name=payload.name.strip(),
        max_players=payload.max_players,
        max_substitutes=payload.max_substitutes,
        description=(payload.description or "").strip() or None,
        icon=payload.icon,
    )
    db.add(sport)

    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.warning("Duplicate sport name %r", payload.name)
        raise HTTPException(status_code=409, detail="Sport already exists")

    db.refresh(sport)
    return sport
