import logging
from datetime import datetime, timezone
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator
from sqlalchemy import func, select
from sqlalchemy.orm import Session, joinedload

from app.api.deps import ensure_user, get_current_user_id, get_db
from app.api.routes.matches import MatchOut, match_out, normalize_event_type
from app.api.routes.teams import TeamOut
from app.models.match import Match, MatchEvent
from app.models.sport import Sport
from app.models.team import Team, TeamMember
from app.models.tournament import Tournament

router = APIRouter()
logger = logging.getLogger(__name__)

TournamentStatus = Literal["upcoming", "active", "completed", "cancelled"]

WIN_POINTS = 3
DRAW_POINTS = 1


def as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; treat them as UTC.
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class TournamentCreate(BaseModel):
    # One of the browser clients sends camelCase keys.
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(min_length=1, max_length=128)
    description: str | None = None
    start_date: datetime = Field(validation_alias=AliasChoices("start_date", "startDate"))
    end_date: datetime = Field(validation_alias=AliasChoices("end_date", "endDate"))
    location: str | None = Field(default=None, max_length=200)
    sport_id: int | None = Field(default=None, validation_alias=AliasChoices("sport_id", "sportId"))

    @field_validator("start_date", "end_date")
    @classmethod
    def normalize_tz(cls, value: datetime) -> datetime:
        return as_utc(value)

    @model_validator(mode="after")
    def validate_dates(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must not precede start_date")
        return self


class TournamentPatch(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str | None = Field(default=None, min_length=1, max_length=128)
    description: str | None = None
    start_date: datetime | None = Field(
        default=None, validation_alias=AliasChoices("start_date", "startDate")
    )
    end_date: datetime | None = Field(
        default=None, validation_alias=AliasChoices("end_date", "endDate")
    )
    status: TournamentStatus | None = None
    location: str | None = Field(default=None, max_length=200)

    @field_validator("start_date", "end_date")
    @classmethod
    def normalize_tz(cls, value: datetime | None) -> datetime | None:
        return as_utc(value) if value else value


class TournamentOut(BaseModel):
    id: int
    name: str
    description: str | None
    start_date: datetime
    end_date: datetime
    status: str
    location: str | None
    sport_id: int | None
    sport_name: str | None
    created_by: int
    creator_name: str | None
    created_at: datetime
    updated_at: datetime
    teams_count: int
    matches_count: int


class StandingOut(BaseModel):
    team_id: int
    team_name: str
    played: int
    won: int
    drawn: int
    lost: int
    goals_for: int
    goals_against: int
    goal_difference: int
    points: int


class LeaderboardEntryOut(BaseModel):
    player_id: int
    player_name: str
    team_id: int
    team_name: str
    count: int


class TeamLeaderboardEntryOut(BaseModel):
    team_id: int
    team_name: str
    count: int


def _tournament_out(t: Tournament, teams_count: int, matches_count: int) -> TournamentOut:
    return TournamentOut(
        id=t.id,
        name=t.name,
        description=t.description,
        start_date=t.start_date,
        end_date=t.end_date,
        status=t.status,
        location=t.location,
        sport_id=t.sport_id,
        sport_name=t.sport.name if t.sport else None,
        created_by=t.created_by,
        creator_name=t.creator.name if t.creator else None,
        created_at=t.created_at,
        updated_at=t.updated_at,
        teams_count=int(teams_count or 0),
        matches_count=int(matches_count or 0),
    )


def _counts_query():
    teams_count = (
        select(func.count(Team.id))
        .where(Team.tournament_id == Tournament.id)
        .correlate(Tournament)
        .scalar_subquery()
    )
    matches_count = (
        select(func.count(Match.id))
        .where(Match.tournament_id == Tournament.id)
        .correlate(Tournament)
        .scalar_subquery()
    )
    return select(
        Tournament,
        teams_count.label("teams_count"),
        matches_count.label("matches_count"),
    ).options(joinedload(Tournament.creator), joinedload(Tournament.sport))


def _get_tournament_or_404(db: Session, tournament_id: int) -> Tournament:
    t = db.get(Tournament, tournament_id)
    if not t:
        raise HTTPException(status_code=404, detail="Tournament not found")
    return t


def compute_standings(teams: list[Team], matches: list[Match]) -> list[StandingOut]:
    table = {
        team.id: {
            "team_id": team.id,
            "team_name": team.name,
            "played": 0,
            "won": 0,
            "drawn": 0,
            "lost": 0,
            "goals_for": 0,
            "goals_against": 0,
        }
        for team in teams
    }

    for m in matches:
        if m.status != "completed":
            continue
        home = table.get(m.home_team_id)
        away = table.get(m.away_team_id)
        if home is None or away is None:
            continue

        hs, as_ = m.home_score or 0, m.away_score or 0
        for row, scored, conceded in ((home, hs, as_), (away, as_, hs)):
            row["played"] += 1
            row["goals_for"] += scored
            row["goals_against"] += conceded
            if scored > conceded:
                row["won"] += 1
            elif scored == conceded:
                row["drawn"] += 1
            else:
                row["lost"] += 1

    out = [
        StandingOut(
            **row,
            goal_difference=row["goals_for"] - row["goals_against"],
            points=row["won"] * WIN_POINTS + row["drawn"] * DRAW_POINTS,
        )
        for row in table.values()
    ]
    out.sort(key=lambda s: (-s.points, -s.goal_difference, -s.goals_for, s.team_name.lower()))
    return out


@router.get("/tournaments", response_model=list[TournamentOut])
def list_tournaments(db: Session = Depends(get_db)):
    rows = db.execute(
        _counts_query().order_by(Tournament.created_at.desc(), Tournament.id.desc())
    ).all()
    return [_tournament_out(t, teams_count, matches_count) for (t, teams_count, matches_count) in rows]


@router.get("/tournaments/{tournament_id}", response_model=TournamentOut)
def get_tournament(tournament_id: int, db: Session = Depends(get_db)):
    row = db.execute(_counts_query().where(Tournament.id == tournament_id)).first()
    if not row:
        raise HTTPException(status_code=404, detail="Tournament not found")
    t, teams_count, matches_count = row
    return _tournament_out(t, teams_count, matches_count)


@router.post("/tournaments", response_model=TournamentOut, status_code=201)
def create_tournament(
    payload: TournamentCreate,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    creator = ensure_user(db, user_id)

    if payload.sport_id is not None and not db.get(Sport, payload.sport_id):
        raise HTTPException(status_code=404, detail="Sport not found")

    t = Tournament(
        name=payload.name.strip(),
        description=(payload.description or "").strip() or None,
        start_date=payload.start_date,
        end_date=payload.end_date,
        location=(payload.location or "").strip() or None,
        sport_id=payload.sport_id,
        created_by=creator.id,
    )
    db.add(t)
    db.commit()
    logger.info("Tournament %s created by user %s", t.id, creator.id)

    return get_tournament(t.id, db=db)


@router.patch("/tournaments/{tournament_id}", response_model=TournamentOut)
def update_tournament(
    tournament_id: int,
    payload: TournamentPatch,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    me = ensure_user(db, user_id)
    t = _get_tournament_or_404(db, tournament_id)
    if t.created_by != me.id:
        raise HTTPException(status_code=403, detail="Only the creator can update tournament")

    start = payload.start_date or as_utc(t.start_date)
    end = payload.end_date or as_utc(t.end_date)
    if end < start:
        raise HTTPException(status_code=400, detail="end_date must not precede start_date")

    if payload.name is not None:
        t.name = payload.name.strip()
    if payload.description is not None:
        t.description = payload.description.strip() or None
    if payload.location is not None:
        t.location = payload.location.strip() or None
    if payload.status is not None:
        t.status = payload.status
    t.start_date = start
    t.end_date = end

    db.commit()
    return get_tournament(tournament_id, db=db)


@router.delete("/tournaments/{tournament_id}")
def delete_tournament(
    tournament_id: int,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    me = ensure_user(db, user_id)
    t = _get_tournament_or_404(db, tournament_id)
    if t.created_by != me.id:
        raise HTTPException(status_code=403, detail="Only the creator can delete tournament")

    db.delete(t)
    db.commit()
    logger.info("Tournament %s deleted by user %s", tournament_id, me.id)
    return {"ok": True}


@router.get("/tournaments/{tournament_id}/teams", response_model=list[TeamOut])
def list_tournament_teams(tournament_id: int, db: Session = Depends(get_db)):
    _get_tournament_or_404(db, tournament_id)
    return db.execute(
        select(Team)
        .options(joinedload(Team.members).joinedload(TeamMember.user))
        .where(Team.tournament_id == tournament_id)
        .order_by(Team.name, Team.id)
    ).scalars().unique().all()


@router.get("/tournaments/{tournament_id}/matches", response_model=list[MatchOut])
def list_tournament_matches(tournament_id: int, db: Session = Depends(get_db)):
    _get_tournament_or_404(db, tournament_id)
    matches = db.execute(
        select(Match)
        .options(
            joinedload(Match.home_team),
            joinedload(Match.away_team),
            joinedload(Match.events),
        )
        .where(Match.tournament_id == tournament_id)
        .order_by(Match.date.asc(), Match.id.asc())
    ).scalars().unique().all()
    return [match_out(m) for m in matches]


@router.get("/tournaments/{tournament_id}/standings", response_model=list[StandingOut])
def get_standings(tournament_id: int, db: Session = Depends(get_db)):
    t = db.execute(
        select(Tournament)
        .options(joinedload(Tournament.teams), joinedload(Tournament.matches))
        .where(Tournament.id == tournament_id)
    ).scalars().unique().one_or_none()
    if not t:
        raise HTTPException(status_code=404, detail="Tournament not found")
    return compute_standings(t.teams, t.matches)


@router.get(
    "/tournaments/{tournament_id}/leaderboard/players/{event_type}",
    response_model=list[LeaderboardEntryOut],
)
def get_player_leaderboard(tournament_id: int, event_type: str, db: Session = Depends(get_db)):
    _get_tournament_or_404(db, tournament_id)

    rows = db.execute(
        select(MatchEvent.player_id, func.count(MatchEvent.id).label("count"))
        .join(Match, Match.id == MatchEvent.match_id)
        .where(
            Match.tournament_id == tournament_id,
            MatchEvent.type == normalize_event_type(event_type),
            MatchEvent.player_id.isnot(None),
        )
        .group_by(MatchEvent.player_id)
    ).all()
    if not rows:
        return []

    counts = {player_id: int(count) for (player_id, count) in rows}
    members = db.execute(
        select(TeamMember)
        .options(joinedload(TeamMember.team), joinedload(TeamMember.user))
        .where(TeamMember.id.in_(list(counts)))
    ).scalars().unique().all()

    leaderboard = [
        LeaderboardEntryOut(
            player_id=m.id,
            player_name=m.label,
            team_id=m.team_id,
            team_name=m.team.name,
            count=counts[m.id],
        )
        for m in members
    ]
    leaderboard.sort(key=lambda x: (-x.count, x.player_name.lower()))
    return leaderboard


@router.get(
    "/tournaments/{tournament_id}/leaderboard/teams/{event_type}",
    response_model=list[TeamLeaderboardEntryOut],
)
def get_team_leaderboard(tournament_id: int, event_type: str, db: Session = Depends(get_db)):
    _get_tournament_or_404(db, tournament_id)

    # Teams without a matching event are left out.
    rows = db.execute(
        select(Team.id, Team.name, func.count(MatchEvent.id).label("count"))
        .join(MatchEvent, MatchEvent.team_id == Team.id)
        .join(Match, Match.id == MatchEvent.match_id)
        .where(
            Match.tournament_id == tournament_id,
            MatchEvent.type == normalize_event_type(event_type),
        )
        .group_by(Team.id, Team.name)
    ).all()

    leaderboard = [
        TeamLeaderboardEntryOut(team_id=team_id, team_name=name, count=int(count))
        for (team_id, name, count) in rows
    ]
    leaderboard.sort(key=lambda x: (-x.count, x.team_name.lower()))
    return leaderboard
