import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.api.deps import get_db
from app.db.base import Base
from app.db.session import enable_sqlite_foreign_keys
from app.main import app


@pytest.fixture()
def client():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


H1 = {"X-User-Id": "u1"}
H2 = {"X-User-Id": "u2"}


def _setup(client):
    t = client.post(
        "/api/tournaments",
        json={
            "name": "Football League",
            "start_date": "2026-08-01T00:00:00Z",
            "end_date": "2026-12-01T00:00:00Z",
        },
        headers=H1,
    ).json()
    teams = [
        client.post("/api/teams", json={"name": name, "tournament_id": t["id"]}, headers=H1).json()
        for name in ("Lions", "Tigers", "Bears")
    ]
    return t, teams


def _create_match(client, t, home, away, headers=H1):
    return client.post(
        "/api/matches",
        json={
            "tournament_id": t["id"],
            "home_team_id": home["id"],
            "away_team_id": away["id"],
            "date": "2026-08-15T15:00:00Z",
        },
        headers=headers,
    )


def _play(client, match_id, home, away, home_goals, away_goals):
    client.patch(f"/api/matches/{match_id}", json={"status": "in_progress"}, headers=H1)
    for team, goals in ((home, home_goals), (away, away_goals)):
        for _ in range(goals):
            r = client.post(f"/api/matches/{match_id}/score", json={"team_id": team["id"]}, headers=H1)
            assert r.status_code == 200
    done = client.patch(f"/api/matches/{match_id}", json={"status": "completed"}, headers=H1)
    assert done.status_code == 200
    return done.json()


def test_new_match_scores_default_to_zero(client):
    t, (lions, tigers, _) = _setup(client)

    resp = _create_match(client, t, lions, tigers)
    assert resp.status_code == 201
    m = resp.json()
    assert m["home_score"] == 0
    assert m["away_score"] == 0
    assert m["status"] == "scheduled"
    assert m["home_team_name"] == "Lions"
    assert m["events"] == []

    listed = client.get(f"/api/tournaments/{t['id']}/matches").json()
    assert [x["id"] for x in listed] == [m["id"]]


def test_match_requires_distinct_teams_from_tournament(client):
    t, (lions, _, _) = _setup(client)

    same = _create_match(client, t, lions, lions)
    assert same.status_code == 422

    other = client.post(
        "/api/tournaments",
        json={"name": "Other", "start_date": "2026-01-01T00:00:00Z", "end_date": "2026-02-01T00:00:00Z"},
        headers=H1,
    ).json()
    outsider = client.post(
        "/api/teams", json={"name": "Outsiders", "tournament_id": other["id"]}, headers=H1
    ).json()

    mixed = _create_match(client, t, lions, outsider)
    assert mixed.status_code == 400


def test_only_tournament_creator_manages_matches(client):
    t, (lions, tigers, _) = _setup(client)

    assert _create_match(client, t, lions, tigers, headers=H2).status_code == 403

    m = _create_match(client, t, lions, tigers).json()
    assert client.patch(f"/api/matches/{m['id']}", json={"status": "in_progress"}, headers=H2).status_code == 403
    assert client.delete(f"/api/matches/{m['id']}", headers=H2).status_code == 403

    d = client.delete(f"/api/matches/{m['id']}", headers=H1)
    assert d.status_code == 200
    assert client.get(f"/api/matches/{m['id']}").status_code == 404


def test_score_updates_only_while_in_progress(client):
    t, (lions, tigers, bears) = _setup(client)
    m = _create_match(client, t, lions, tigers).json()

    early = client.post(f"/api/matches/{m['id']}/score", json={"team_id": lions["id"]}, headers=H1)
    assert early.status_code == 400

    client.patch(f"/api/matches/{m['id']}", json={"status": "in_progress"}, headers=H1)

    up = client.post(f"/api/matches/{m['id']}/score", json={"teamId": lions["id"]}, headers=H1)
    assert up.status_code == 200
    assert up.json()["home_score"] == 1

    # Never drops below zero.
    down = client.post(
        f"/api/matches/{m['id']}/score",
        json={"team_id": tigers["id"], "increment": False},
        headers=H1,
    )
    assert down.status_code == 200
    assert down.json()["away_score"] == 0

    wrong = client.post(f"/api/matches/{m['id']}/score", json={"team_id": bears["id"]}, headers=H1)
    assert wrong.status_code == 400


def test_match_events_and_leaderboard(client):
    t, (lions, tigers, _) = _setup(client)
    striker = client.post(
        f"/api/teams/{lions['id']}/members",
        json={"name": "Asha", "position": "Forward", "jersey_number": 9},
        headers=H1,
    ).json()
    winger = client.post(
        f"/api/teams/{lions['id']}/members",
        json={"name": "Ben", "position": "Winger", "jersey_number": 11},
        headers=H1,
    ).json()
    keeper = client.post(
        f"/api/teams/{tigers['id']}/members",
        json={"name": "Cruz", "position": "Goalkeeper", "jersey_number": 1},
        headers=H1,
    ).json()

    m = _create_match(client, t, lions, tigers).json()
    goal = {"type": "goal", "minute": 10, "team_id": lions["id"], "player_id": striker["id"]}

    not_live = client.post(f"/api/matches/{m['id']}/events", json=goal, headers=H1)
    assert not_live.status_code == 400

    client.patch(f"/api/matches/{m['id']}", json={"status": "in_progress"}, headers=H1)

    for minute, player in ((55, striker), (10, striker), (70, winger)):
        r = client.post(
            f"/api/matches/{m['id']}/events",
            json={**goal, "minute": minute, "player_id": player["id"]},
            headers=H1,
        )
        assert r.status_code == 201

    card = client.post(
        f"/api/matches/{m['id']}/events",
        json={"type": "yellow_card", "minute": 30, "team_id": tigers["id"], "player_id": keeper["id"]},
        headers=H1,
    )
    assert card.status_code == 201

    wrong_team = client.post(
        f"/api/matches/{m['id']}/events",
        json={**goal, "player_id": keeper["id"]},
        headers=H1,
    )
    assert wrong_team.status_code == 400

    too_late = client.post(f"/api/matches/{m['id']}/events", json={**goal, "minute": 200}, headers=H1)
    assert too_late.status_code == 422

    events = client.get(f"/api/matches/{m['id']}/events").json()
    assert [e["minute"] for e in events] == [10, 30, 55, 70]

    board = client.get(f"/api/tournaments/{t['id']}/leaderboard/players/goal").json()
    assert [(row["player_name"], row["count"]) for row in board] == [("Asha", 2), ("Ben", 1)]
    assert board[0]["team_name"] == "Lions"

    assert client.get(f"/api/tournaments/{t['id']}/leaderboard/players/red_card").json() == []


def test_standings_points_table(client):
    t, (lions, tigers, bears) = _setup(client)

    m1 = _create_match(client, t, lions, tigers).json()
    m2 = _create_match(client, t, tigers, bears).json()
    _create_match(client, t, lions, bears)  # still scheduled, not counted

    _play(client, m1["id"], lions, tigers, 2, 1)
    _play(client, m2["id"], tigers, bears, 0, 0)

    table = client.get(f"/api/tournaments/{t['id']}/standings").json()
    assert [row["team_name"] for row in table] == ["Lions", "Bears", "Tigers"]

    lions_row, bears_row, tigers_row = table
    assert (lions_row["played"], lions_row["won"], lions_row["points"]) == (1, 1, 3)
    assert lions_row["goal_difference"] == 1
    assert (bears_row["drawn"], bears_row["points"], bears_row["goal_difference"]) == (1, 1, 0)
    assert (tigers_row["played"], tigers_row["drawn"], tigers_row["lost"]) == (2, 1, 1)
    assert tigers_row["points"] == 1
    assert tigers_row["goal_difference"] == -1


def _live_match_with_players(client):
    t, (lions, tigers, bears) = _setup(client)
    asha = client.post(
        f"/api/teams/{lions['id']}/members", json={"name": "Asha", "jersey_number": 9}, headers=H1
    ).json()
    cruz = client.post(
        f"/api/teams/{tigers['id']}/members", json={"name": "Cruz", "jersey_number": 1}, headers=H1
    ).json()
    m = _create_match(client, t, lions, tigers).json()
    client.patch(f"/api/matches/{m['id']}", json={"status": "in_progress"}, headers=H1)
    return t, m, (lions, tigers, bears), (asha, cruz)


def _event(client, match_id, type_, minute, team, player=None):
    r = client.post(
        f"/api/matches/{match_id}/events",
        json={
            "type": type_,
            "minute": minute,
            "team_id": team["id"],
            "player_id": player["id"] if player else None,
        },
        headers=H1,
    )
    assert r.status_code == 201
    return r.json()


def test_leaderboards_ignore_event_type_case(client):
    t, m, (lions, _, _), (asha, _) = _live_match_with_players(client)

    assert _event(client, m["id"], "Goal", 12, lions, asha)["type"] == "goal"
    _event(client, m["id"], " GOAL ", 40, lions, asha)

    for event_type in ("goal", "Goal", "GOAL"):
        players = client.get(f"/api/tournaments/{t['id']}/leaderboard/players/{event_type}").json()
        assert [(row["player_name"], row["count"]) for row in players] == [("Asha", 2)]

        teams = client.get(f"/api/tournaments/{t['id']}/leaderboard/teams/{event_type}").json()
        assert [(row["team_name"], row["count"]) for row in teams] == [("Lions", 2)]


def test_team_leaderboard(client):
    t, m, (lions, tigers, bears), (asha, cruz) = _live_match_with_players(client)

    _event(client, m["id"], "goal", 5, tigers, cruz)
    _event(client, m["id"], "goal", 20, lions, asha)
    # Own goals and unattributed events still count for the team.
    _event(client, m["id"], "goal", 60, tigers)
    _event(client, m["id"], "yellow_card", 70, lions, asha)

    goals = client.get(f"/api/tournaments/{t['id']}/leaderboard/teams/goal").json()
    assert [(row["team_name"], row["count"]) for row in goals] == [("Tigers", 2), ("Lions", 1)]
    assert goals[0]["team_id"] == tigers["id"]
    assert bears["id"] not in [row["team_id"] for row in goals]

    cards = client.get(f"/api/tournaments/{t['id']}/leaderboard/teams/yellow_card").json()
    assert [(row["team_name"], row["count"]) for row in cards] == [("Lions", 1)]

    assert client.get(f"/api/tournaments/{t['id']}/leaderboard/teams/red_card").json() == []


def test_match_statistics(client):
    t, m, (lions, tigers, _), (asha, cruz) = _live_match_with_players(client)

    empty = client.get(f"/api/matches/{m['id']}/statistics")
    assert empty.status_code == 200
    assert empty.json()["home_team"]["events"] == {}
    assert empty.json()["away_team"]["events"] == {}

    _event(client, m["id"], "goal", 10, lions, asha)
    _event(client, m["id"], "goal", 25, lions, asha)
    _event(client, m["id"], "yellow_card", 30, lions, asha)
    _event(client, m["id"], "corner", 44, tigers, cruz)
    client.post(f"/api/matches/{m['id']}/score", json={"team_id": lions["id"]}, headers=H1)

    stats = client.get(f"/api/matches/{m['id']}/statistics").json()
    assert stats["match_id"] == m["id"]
    assert stats["home_team"] == {
        "team_id": lions["id"],
        "team_name": "Lions",
        "score": 1,
        "events": {"goal": 2, "yellow_card": 1},
    }
    assert stats["away_team"] == {
        "team_id": tigers["id"],
        "team_name": "Tigers",
        "score": 0,
        "events": {"corner": 1},
    }

    assert client.get("/api/matches/999/statistics").status_code == 404
