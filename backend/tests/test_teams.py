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


def _tournament(client):
    return client.post(
        "/api/tournaments",
        json={
            "name": "Cricket Cup",
            "start_date": "2026-06-01T00:00:00Z",
            "end_date": "2026-06-30T00:00:00Z",
        },
        headers=H1,
    ).json()


def test_team_roster_flow(client):
    t = _tournament(client)

    # Any signed-in user can enter a team; they become its manager.
    resp = client.post("/api/teams", json={"name": "Falcons", "tournamentId": t["id"]}, headers=H2)
    assert resp.status_code == 201
    team = resp.json()
    assert team["members"] == []

    me2 = client.get("/api/users/me", headers=H2).json()
    assert team["manager_id"] == me2["id"]

    captain = client.post(
        f"/api/teams/{team['id']}/members",
        json={"user_id": me2["id"], "position": "Batter", "jerseyNumber": 18},
        headers=H2,
    )
    assert captain.status_code == 201
    assert captain.json()["user_id"] == me2["id"]

    bowler = client.post(
        f"/api/teams/{team['id']}/members",
        json={"name": "Ravi", "position": "Bowler", "jersey_number": 7},
        headers=H2,
    )
    assert bowler.status_code == 201
    assert bowler.json()["label"] == "Ravi"

    got = client.get(f"/api/teams/{team['id']}").json()
    assert [m["jersey_number"] for m in got["members"]] == [18, 7]

    listed = client.get(f"/api/tournaments/{t['id']}/teams").json()
    assert [x["name"] for x in listed] == ["Falcons"]

    renamed = client.patch(f"/api/teams/{team['id']}", json={"name": "Falcons XI"}, headers=H2)
    assert renamed.status_code == 200
    assert renamed.json()["name"] == "Falcons XI"


def test_jersey_numbers_unique_within_team(client):
    t = _tournament(client)
    a = client.post("/api/teams", json={"name": "A", "tournament_id": t["id"]}, headers=H1).json()
    b = client.post("/api/teams", json={"name": "B", "tournament_id": t["id"]}, headers=H1).json()

    first = client.post(f"/api/teams/{a['id']}/members", json={"name": "One", "jersey_number": 10}, headers=H1)
    assert first.status_code == 201

    dup = client.post(f"/api/teams/{a['id']}/members", json={"name": "Two", "jersey_number": 10}, headers=H1)
    assert dup.status_code == 409

    # Same number on another team is fine.
    other = client.post(f"/api/teams/{b['id']}/members", json={"name": "Three", "jersey_number": 10}, headers=H1)
    assert other.status_code == 201

    second = client.post(f"/api/teams/{a['id']}/members", json={"name": "Two", "jersey_number": 11}, headers=H1).json()
    clash = client.patch(
        f"/api/teams/{a['id']}/members/{second['id']}", json={"jersey_number": 10}, headers=H1
    )
    assert clash.status_code == 409

    moved = client.patch(
        f"/api/teams/{a['id']}/members/{second['id']}", json={"position": "Keeper"}, headers=H1
    )
    assert moved.status_code == 200
    assert moved.json()["position"] == "Keeper"
    assert moved.json()["jersey_number"] == 11


def test_member_validation(client):
    t = _tournament(client)
    team = client.post("/api/teams", json={"name": "A", "tournament_id": t["id"]}, headers=H1).json()

    nobody = client.post(f"/api/teams/{team['id']}/members", json={"position": "Wing"}, headers=H1)
    assert nobody.status_code == 400

    ghost = client.post(f"/api/teams/{team['id']}/members", json={"user_id": 999}, headers=H1)
    assert ghost.status_code == 404

    missing_team = client.post("/api/teams", json={"name": "X", "tournament_id": 999}, headers=H1)
    assert missing_team.status_code == 404


def test_member_update_keeps_an_identity(client):
    t = _tournament(client)
    team = client.post("/api/teams", json={"name": "A", "tournament_id": t["id"]}, headers=H1).json()
    member = client.post(f"/api/teams/{team['id']}/members", json={"name": "Kim"}, headers=H1).json()
    url = f"/api/teams/{team['id']}/members/{member['id']}"

    cleared = client.patch(url, json={"name": None}, headers=H1)
    assert cleared.status_code == 400
    blank = client.patch(url, json={"name": "   ", "user_id": None}, headers=H1)
    assert blank.status_code == 400
    assert client.get(f"/api/teams/{team['id']}").json()["members"][0]["name"] == "Kim"

    me = client.get("/api/users/me", headers=H2).json()
    linked = client.patch(url, json={"user_id": me["id"], "name": None}, headers=H1)
    assert linked.status_code == 200
    assert linked.json()["user_id"] == me["id"]
    assert linked.json()["name"] is None

    unlinked = client.patch(url, json={"user_id": None}, headers=H1)
    assert unlinked.status_code == 400


def test_only_manager_changes_team(client):
    t = _tournament(client)
    team = client.post("/api/teams", json={"name": "A", "tournament_id": t["id"]}, headers=H1).json()
    member = client.post(f"/api/teams/{team['id']}/members", json={"name": "Kim"}, headers=H1).json()

    assert client.patch(f"/api/teams/{team['id']}", json={"name": "Z"}, headers=H2).status_code == 403
    assert client.post(f"/api/teams/{team['id']}/members", json={"name": "Lee"}, headers=H2).status_code == 403
    assert client.delete(f"/api/teams/{team['id']}/members/{member['id']}", headers=H2).status_code == 403
    assert client.delete(f"/api/teams/{team['id']}", headers=H2).status_code == 403

    removed = client.delete(f"/api/teams/{team['id']}/members/{member['id']}", headers=H1)
    assert removed.status_code == 200
    assert client.get(f"/api/teams/{team['id']}").json()["members"] == []

    gone = client.delete(f"/api/teams/{team['id']}/members/{member['id']}", headers=H1)
    assert gone.status_code == 404


def test_cannot_delete_team_with_matches(client):
    t = _tournament(client)
    a = client.post("/api/teams", json={"name": "A", "tournament_id": t["id"]}, headers=H1).json()
    b = client.post("/api/teams", json={"name": "B", "tournament_id": t["id"]}, headers=H1).json()
    c = client.post("/api/teams", json={"name": "C", "tournament_id": t["id"]}, headers=H1).json()

    m = client.post(
        "/api/matches",
        json={
            "tournament_id": t["id"],
            "home_team_id": a["id"],
            "away_team_id": b["id"],
            "date": "2026-06-05T12:00:00Z",
        },
        headers=H1,
    )
    assert m.status_code == 201

    blocked = client.delete(f"/api/teams/{b['id']}", headers=H1)
    assert blocked.status_code == 409

    ok = client.delete(f"/api/teams/{c['id']}", headers=H1)
    assert ok.status_code == 200
    assert client.get(f"/api/teams/{c['id']}").status_code == 404
