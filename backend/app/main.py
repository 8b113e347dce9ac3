import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from app import models  # noqa: F401
from app.api.routes.health import router as health_router
from app.api.routes.matches import router as matches_router
from app.api.routes.sports import router as sports_router
from app.api.routes.teams import router as teams_router
from app.api.routes.tournaments import router as tournaments_router
from app.api.routes.users import router as users_router
from app.core.logging import configure_logging
from app.core.settings import settings
from app.pages.views import router as pages_router

configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.PROJECT_NAME)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("Database error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


app.include_router(
    health_router,
    prefix=settings.API_PREFIX,
    tags=["Health"],
)
app.include_router(
    sports_router,
    prefix=settings.API_PREFIX,
    tags=["Sports"],
)
app.include_router(
    users_router,
    prefix=settings.API_PREFIX,
    tags=["Users"],
)
app.include_router(
    tournaments_router,
    prefix=settings.API_PREFIX,
    tags=["Tournaments"],
)
app.include_router(
    teams_router,
    prefix=settings.API_PREFIX,
    tags=["Teams"],
)
app.include_router(
    matches_router,
    prefix=settings.API_PREFIX,
    tags=["Matches"],
)
app.include_router(pages_router, include_in_schema=False)
