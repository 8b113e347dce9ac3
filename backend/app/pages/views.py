from pathlib import Path

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates
from sqlalchemy.orm import Session

from app.api.deps import get_db
from app.api.routes.sports import list_sports
from app.api.routes.tournaments import get_standings, get_tournament, list_tournaments
from app.pages import content

router = APIRouter()

templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent.parent / "templates"))


def filter_tournaments(tournaments: list, query: str | None) -> list:
    """Case-insensitive substring match on name or description.

    Works on API models and plain dicts alike so the same filter serves the
    dashboard fragment and any caller holding raw JSON.
    """
    needle = (query or "").strip().lower()
    if not needle:
        return list(tournaments)

    def field(t, key):
        value = t.get(key) if isinstance(t, dict) else getattr(t, key, None)
        return (value or "").lower()

    return [t for t in tournaments if needle in field(t, "name") or needle in field(t, "description")]


@router.get("/", response_class=HTMLResponse)
def landing_page(request: Request):
    return templates.TemplateResponse(
        request,
        "landing.html",
        {
            "features": content.FEATURES,
            "steps": content.HOW_IT_WORKS,
            "logos": content.SOCIAL_PROOF,
            "faq": content.FAQ,
        },
    )


@router.get("/dashboard", response_class=HTMLResponse)
def dashboard_page(request: Request, q: str | None = None):
    # Data regions start in their loading state; htmx swaps in the fragments.
    return templates.TemplateResponse(request, "dashboard.html", {"q": q or ""})


@router.get("/dashboard/fragments/tournaments", response_class=HTMLResponse)
def tournaments_fragment(request: Request, q: str | None = None, db: Session = Depends(get_db)):
    tournaments = filter_tournaments(list_tournaments(db=db), q)
    return templates.TemplateResponse(
        request,
        "fragments/tournaments.html",
        {"tournaments": tournaments, "q": q or ""},
    )


@router.get("/dashboard/fragments/sports", response_class=HTMLResponse)
def sports_fragment(request: Request, db: Session = Depends(get_db)):
    return templates.TemplateResponse(
        request,
        "fragments/sports.html",
        {"sports": list_sports(db=db)},
    )


def _not_found(request: Request):
    return templates.TemplateResponse(request, "tournament_not_found.html", {}, status_code=404)


@router.get("/tournaments/{tournament_id}", response_class=HTMLResponse)
def tournament_page(request: Request, tournament_id: str, db: Session = Depends(get_db)):
    # Hand-typed links land here, so a malformed id is just another missing tournament.
    if not tournament_id.isdigit():
        return _not_found(request)
    tournament_id = int(tournament_id)

    try:
        tournament = get_tournament(tournament_id, db=db)
    except HTTPException as exc:
        if exc.status_code != 404:
            raise
        return _not_found(request)

    return templates.TemplateResponse(
        request,
        "tournament.html",
        {"tournament": tournament, "standings": get_standings(tournament_id, db=db)},
    )
