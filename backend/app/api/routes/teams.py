import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from app.api.deps import ensure_user, get_current_user_id, get_db
from app.models.match import Match
from app.models.team import Team, TeamMember
from app.models.tournament import Tournament
from app.models.user import User

router = APIRouter()
logger = logging.getLogger(__name__)


class TeamCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(min_length=1, max_length=128)
    tournament_id: int = Field(validation_alias=AliasChoices("tournament_id", "tournamentId"))


class TeamPatch(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=128)


class TeamMemberIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: int | None = Field(default=None, validation_alias=AliasChoices("user_id", "userId"))
    name: str | None = Field(default=None, max_length=128)
    position: str | None = Field(default=None, max_length=64)
    jersey_number: int | None = Field(
        default=None, ge=0, le=999, validation_alias=AliasChoices("jersey_number", "jerseyNumber")
    )


class TeamMemberOut(BaseModel):
    id: int
    team_id: int
    user_id: int | None
    name: str | None
    label: str
    position: str | None
    jersey_number: int | None

    class Config:
        from_attributes = True


class TeamOut(BaseModel):
    id: int
    name: str
    tournament_id: int
    manager_id: int
    members: list[TeamMemberOut] = []

    class Config:
        from_attributes = True


def _load_team(db: Session, team_id: int) -> Team | None:
    return db.execute(
        select(Team)
        .options(joinedload(Team.members).joinedload(TeamMember.user))
        .where(Team.id == team_id)
    ).scalars().unique().one_or_none()


def _managed_team_or_error(db: Session, team_id: int, user_id: str) -> Team:
    me = ensure_user(db, user_id)
    team = db.get(Team, team_id)
    if not team:
        raise HTTPException(status_code=404, detail="Team not found")
    if team.manager_id != me.id:
        raise HTTPException(status_code=403, detail="Only the team manager can change this team")
    return team


def _commit_member(db: Session) -> None:
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.warning("Jersey number conflict")
        raise HTTPException(status_code=409, detail="Jersey number already taken in this team")


@router.post("/teams", response_model=TeamOut, status_code=201)
def create_team(
    payload: TeamCreate,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    manager = ensure_user(db, user_id)

    if not db.get(Tournament, payload.tournament_id):
        raise HTTPException(status_code=404, detail="Tournament not found")

    team = Team(name=payload.name.strip(), tournament_id=payload.tournament_id, manager_id=manager.id)
    db.add(team)
    db.commit()
    logger.info("Team %s created in tournament %s", team.id, payload.tournament_id)

    return _load_team(db, team.id)


@router.get("/teams/{team_id}", response_model=TeamOut)
def get_team(team_id: int, db: Session = Depends(get_db)):
    team = _load_team(db, team_id)
    if not team:
        raise HTTPException(status_code=404, detail="Team not found")
    return team


@router.patch("/teams/{team_id}", response_model=TeamOut)
def update_team(
    team_id: int,
    payload: TeamPatch,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    team = _managed_team_or_error(db, team_id, user_id)
    if payload.name is not None:
        team.name = payload.name.strip()
    db.commit()
    return _load_team(db, team_id)


@router.delete("/teams/{team_id}")
def delete_team(
    team_id: int,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    team = _managed_team_or_error(db, team_id, user_id)

    scheduled = db.execute(
        select(Match.id)
        .where(or_(Match.home_team_id == team_id, Match.away_team_id == team_id))
        .limit(1)
    ).first()
    if scheduled:
        raise HTTPException(status_code=409, detail="Team has matches")

    db.delete(team)
    db.commit()
    logger.info("Team %s deleted", team_id)
    return {"ok": True}


@router.post("/teams/{team_id}/members", response_model=TeamMemberOut, status_code=201)
def add_member(
    team_id: int,
    payload: TeamMemberIn,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    team = _managed_team_or_error(db, team_id, user_id)

    if payload.user_id is not None and not db.get(User, payload.user_id):
        raise HTTPException(status_code=404, detail="User not found")

    name = (payload.name or "").strip() or None
    if payload.user_id is None and not name:
        raise HTTPException(status_code=400, detail="user_id or name required")

    member = TeamMember(
        team_id=team.id,
        user_id=payload.user_id,
        name=name,
        position=(payload.position or "").strip() or None,
        jersey_number=payload.jersey_number,
    )
    db.add(member)
    _commit_member(db)

    db.refresh(member)
    return member


@router.patch("/teams/{team_id}/members/{member_id}", response_model=TeamMemberOut)
def update_member(
    team_id: int,
    member_id: int,
    payload: TeamMemberIn,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    _managed_team_or_error(db, team_id, user_id)

    member = db.execute(
        select(TeamMember).where(TeamMember.id == member_id, TeamMember.team_id == team_id)
    ).scalars().one_or_none()
    if not member:
        raise HTTPException(status_code=404, detail="Team member not found")

    fields = payload.model_fields_set
    if "user_id" in fields:
        if payload.user_id is not None and not db.get(User, payload.user_id):
            raise HTTPException(status_code=404, detail="User not found")
        member.user_id = payload.user_id
    if "name" in fields:
        member.name = (payload.name or "").strip() or None
    if "position" in fields:
        member.position = (payload.position or "").strip() or None
    if "jersey_number" in fields:
        member.jersey_number = payload.jersey_number

    if member.user_id is None and not member.name:
        db.rollback()
        raise HTTPException(status_code=400, detail="user_id or name required")

    _commit_member(db)

    db.refresh(member)
    return member


@router.delete("/teams/{team_id}/members/{member_id}")
def delete_member(
    team_id: int,
    member_id: int,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    _managed_team_or_error(db, team_id, user_id)

    member = db.execute(
        select(TeamMember).where(TeamMember.id == member_id, TeamMember.team_id == team_id)
    ).scalars().one_or_none()
    if not member:
        raise HTTPException(status_code=404, detail="Team member not found")

    db.delete(member)
    db.commit()
    return {"ok": True}
