from __future__ import annotations

from fastapi import APIRouter, Request

from api.core.scoring_tables import ScoringTables, get_scoring_tables

router = APIRouter(prefix="/quiz", tags=["quiz"])


def app_tables(request: Request) -> ScoringTables:
    tables = getattr(request.app.state, "tables", None)
    if tables is None:
        tables = get_scoring_tables()
    return tables


@router.get("")
def get_quiz(request: Request):
    """Questions and answer options for the mood quiz, plus the genre list."""
    tables = app_tables(request)
    return {
        "version": tables.version,
        "questions": tables.quiz_surface(),
        "genres": [
            {"id": genre_id, "name": name} for genre_id, name in tables.genres.items()
        ],
    }
