import logging
from datetime import datetime
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator
from sqlalchemy import select
from sqlalchemy.orm import Session, joinedload

from app.api.deps import ensure_user, get_current_user_id, get_db
from app.models.match import Match, MatchEvent
from app.models.team import Team, TeamMember
from app.models.tournament import Tournament

router = APIRouter()
logger = logging.getLogger(__name__)

MatchStatus = Literal["scheduled", "in_progress", "completed", "cancelled"]

# Regulation time plus extra time and stoppage.
MAX_EVENT_MINUTE = 150


def normalize_event_type(value: str) -> str:
    return value.strip().lower()


class MatchCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    tournament_id: int = Field(validation_alias=AliasChoices("tournament_id", "tournamentId"))
    home_team_id: int = Field(validation_alias=AliasChoices("home_team_id", "homeTeamId"))
    away_team_id: int = Field(validation_alias=AliasChoices("away_team_id", "awayTeamId"))
    date: datetime
    location: str | None = Field(default=None, max_length=200)

    @model_validator(mode="after")
    def validate_teams(self):
        if self.home_team_id == self.away_team_id:
            raise ValueError("home and away team must differ")
        return self


class MatchPatch(BaseModel):
    date: datetime | None = None
    status: MatchStatus | None = None
    location: str | None = Field(default=None, max_length=200)


class ScoreIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    team_id: int = Field(validation_alias=AliasChoices("team_id", "teamId"))
    increment: bool = True


class MatchEventIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: str = Field(min_length=1, max_length=32)
    minute: int = Field(ge=0, le=MAX_EVENT_MINUTE)
    team_id: int = Field(validation_alias=AliasChoices("team_id", "teamId"))
    player_id: int | None = Field(
        default=None, validation_alias=AliasChoices("player_id", "playerId")
    )
    description: str | None = None


class MatchEventOut(BaseModel):
    id: int
    match_id: int
    type: str
    minute: int
    team_id: int
    player_id: int | None
    description: str | None

    class Config:
        from_attributes = True


class MatchOut(BaseModel):
    id: int
    tournament_id: int
    home_team_id: int
    home_team_name: str
    away_team_id: int
    away_team_name: str
    date: datetime
    status: str
    home_score: int
    away_score: int
    location: str | None
    events: list[MatchEventOut]


class TeamStatisticsOut(BaseModel):
    team_id: int
    team_name: str
    score: int
    events: dict[str, int]


class MatchStatisticsOut(BaseModel):
    match_id: int
    home_team: TeamStatisticsOut
    away_team: TeamStatisticsOut


def match_out(m: Match) -> MatchOut:
    return MatchOut(
        id=m.id,
        tournament_id=m.tournament_id,
        home_team_id=m.home_team_id,
        home_team_name=m.home_team.name,
        away_team_id=m.away_team_id,
        away_team_name=m.away_team.name,
        date=m.date,
        status=m.status,
        home_score=m.home_score,
        away_score=m.away_score,
        location=m.location,
        events=[MatchEventOut.model_validate(e) for e in m.events],
    )


def _load_match(db: Session, match_id: int) -> Match | None:
    return db.execute(
        select(Match)
        .options(
            joinedload(Match.home_team),
            joinedload(Match.away_team),
            joinedload(Match.events),
            joinedload(Match.tournament),
        )
        .where(Match.id == match_id)
    ).scalars().unique().one_or_none()


def _organized_match_or_error(db: Session, match_id: int, user_id: str) -> Match:
    me = ensure_user(db, user_id)
    m = _load_match(db, match_id)
    if not m:
        raise HTTPException(status_code=404, detail="Match not found")
    if m.tournament.created_by != me.id:
        raise HTTPException(status_code=403, detail="Only the tournament creator can change matches")
    return m


@router.post("/matches", response_model=MatchOut, status_code=201)
def create_match(
    payload: MatchCreate,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    me = ensure_user(db, user_id)

    t = db.get(Tournament, payload.tournament_id)
    if not t:
        raise HTTPException(status_code=404, detail="Tournament not found")
    if t.created_by != me.id:
        raise HTTPException(status_code=403, detail="Only the tournament creator can add matches")

    team_ids = {payload.home_team_id, payload.away_team_id}
    found = db.execute(
        select(Team.id).where(Team.id.in_(team_ids), Team.tournament_id == t.id)
    ).scalars().all()
    if set(found) != team_ids:
        raise HTTPException(status_code=400, detail="Both teams must belong to the tournament")

    m = Match(
        tournament_id=t.id,
        home_team_id=payload.home_team_id,
        away_team_id=payload.away_team_id,
        date=payload.date,
        location=(payload.location or "").strip() or None,
    )
    db.add(m)
    db.commit()
    logger.info("Match %s scheduled in tournament %s", m.id, t.id)

    return match_out(_load_match(db, m.id))


@router.get("/matches/{match_id}", response_model=MatchOut)
def get_match(match_id: int, db: Session = Depends(get_db)):
    m = _load_match(db, match_id)
    if not m:
        raise HTTPException(status_code=404, detail="Match not found")
    return match_out(m)


@router.patch("/matches/{match_id}", response_model=MatchOut)
def update_match(
    match_id: int,
    payload: MatchPatch,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    m = _organized_match_or_error(db, match_id, user_id)

    if payload.date is not None:
        m.date = payload.date
    if payload.status is not None:
        m.status = payload.status
    if payload.location is not None:
        m.location = payload.location.strip() or None

    db.commit()
    return match_out(_load_match(db, match_id))


@router.delete("/matches/{match_id}")
def delete_match(
    match_id: int,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    m = _organized_match_or_error(db, match_id, user_id)
    db.delete(m)
    db.commit()
    logger.info("Match %s deleted", match_id)
    return {"ok": True}


@router.post("/matches/{match_id}/score", response_model=MatchOut)
def update_score(
    match_id: int,
    payload: ScoreIn,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    m = _organized_match_or_error(db, match_id, user_id)

    if m.status != "in_progress":
        raise HTTPException(status_code=400, detail="Can only update score for matches in progress")

    step = 1 if payload.increment else -1
    if payload.team_id == m.home_team_id:
        m.home_score = max(0, m.home_score + step)
    elif payload.team_id == m.away_team_id:
        m.away_score = max(0, m.away_score + step)
    else:
        raise HTTPException(status_code=400, detail="Team is not playing in this match")

    db.commit()
    return match_out(_load_match(db, match_id))


@router.get("/matches/{match_id}/statistics", response_model=MatchStatisticsOut)
def get_match_statistics(match_id: int, db: Session = Depends(get_db)):
    m = _load_match(db, match_id)
    if not m:
        raise HTTPException(status_code=404, detail="Match not found")

    counts: dict[int, dict[str, int]] = {m.home_team_id: {}, m.away_team_id: {}}
    for e in m.events:
        per_team = counts.setdefault(e.team_id, {})
        per_team[e.type] = per_team.get(e.type, 0) + 1

    return MatchStatisticsOut(
        match_id=m.id,
        home_team=TeamStatisticsOut(
            team_id=m.home_team_id,
            team_name=m.home_team.name,
            score=m.home_score,
            events=counts[m.home_team_id],
        ),
        away_team=TeamStatisticsOut(
            team_id=m.away_team_id,
            team_name=m.away_team.name,
            score=m.away_score,
            events=counts[m.away_team_id],
        ),
    )


@router.get("/matches/{match_id}/events", response_model=list[MatchEventOut])
def list_match_events(match_id: int, db: Session = Depends(get_db)):
    if not db.get(Match, match_id):
        raise HTTPException(status_code=404, detail="Match not found")
    return db.execute(
        select(MatchEvent)
        .where(MatchEvent.match_id == match_id)
        .order_by(MatchEvent.minute.asc(), MatchEvent.id.asc())
    ).scalars().all()


@router.post("/matches/{match_id}/events", response_model=MatchEventOut, status_code=201)
def add_match_event(
    match_id: int,
    payload: MatchEventIn,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    m = _organized_match_or_error(db, match_id, user_id)

    if m.status != "in_progress":
        raise HTTPException(status_code=400, detail="Can only add events to matches in progress")
    if payload.team_id not in (m.home_team_id, m.away_team_id):
        raise HTTPException(status_code=400, detail="Team is not playing in this match")

    if payload.player_id is not None:
        player = db.execute(
            select(TeamMember).where(
                TeamMember.id == payload.player_id, TeamMember.team_id == payload.team_id
            )
        ).scalars().one_or_none()
        if not player:
            raise HTTPException(status_code=400, detail="Player is not on this team")

    event = MatchEvent(
        match_id=m.id,
        type=normalize_event_type(payload.type),
        minute=payload.minute,
        team_id=payload.team_id,
        player_id=payload.player_id,
        description=(payload.description or "").strip() or None,
    )
    db.add(event)
    db.commit()

    db.refresh(event)
    return event
