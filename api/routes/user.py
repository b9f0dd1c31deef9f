from __future__ import annotations

import logging
from typing import List, Optional, Union

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Request, UploadFile
from pydantic import BaseModel
from sqlalchemy.orm import Session

from api.core.platforms import normalize_platforms
from api.core.preference_store import StoredPreferences, load_preferences, save_preferences
from api.core.scoring_tables import ScoringTables, resolve_genres
from api.core.taste_blend import profile_strength
from api.db.session import get_db
from api.routes.quiz import app_tables
from etl.letterboxd_import import HistoryImportError, parse_letterboxd_csv
from etl.taste_profile import build_taste_profile

router = APIRouter(prefix="/user", tags=["user"])
logger = logging.getLogger(__name__)


class PreferencesIn(BaseModel):
    user_id: str
    exclusions: Optional[List[Union[int, str]]] = None
    platforms: Optional[List[str]] = None


def _preferences_out(user_id: str, prefs: StoredPreferences, tables: ScoringTables):
    profile = prefs.taste_profile
    return {
        "user_id": user_id,
        "exclusions": prefs.exclusions,
        "excluded_genres": [tables.genre_name(g) for g in prefs.exclusions],
        "platforms": prefs.platforms,
        "recently_shown": len(prefs.recent_window),
        "profile_strength": profile_strength(profile),
        "total_rated": profile.total_rated if profile else 0,
    }


@router.get("/preferences")
def get_preferences(
    request: Request,
    user_id: str = Query(..., description="User id (e.g., 'u1')"),
    db: Session = Depends(get_db),
):
    prefs = load_preferences(db, user_id)
    return _preferences_out(user_id, prefs, app_tables(request))


@router.put("/preferences")
def put_preferences(
    payload: PreferencesIn,
    request: Request,
    db: Session = Depends(get_db),
):
    tables = app_tables(request)
    prefs = load_preferences(db, payload.user_id)
    if payload.exclusions is not None:
        exclusions, unknown = resolve_genres(tables, payload.exclusions)
        if unknown:
            raise HTTPException(
                status_code=422, detail=f"Unknown genres: {', '.join(unknown)}"
            )
        prefs.exclusions = exclusions
    if payload.platforms is not None:
        prefs.platforms = normalize_platforms(payload.platforms)
    save_preferences(db, payload.user_id, prefs)
    return _preferences_out(payload.user_id, prefs, tables)


@router.post("/history/import")
async def import_history(
    request: Request,
    user_id: str = Form(...),
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
):
    """Import a Letterboxd CSV export and rebuild the user's taste profile."""
    content = await file.read()
    try:
        parsed = parse_letterboxd_csv(content, filename=file.filename)
    except HistoryImportError as exc:
        logger.info("Rejected history import for %s: %s (%s)", user_id, exc.kind, exc.message)
        raise HTTPException(status_code=400, detail=exc.to_dict())

    prefs = load_preferences(db, user_id)
    existing = prefs.taste_profile.weights if prefs.taste_profile else None
    profile = await build_taste_profile(
        parsed.entries,
        resolver=getattr(request.app.state, "catalog", None),
        weights=existing,
    )
    if prefs.taste_profile:
        # works rated in-app stay watched across re-imports
        for work_id in prefs.taste_profile.watched_work_ids:
            if work_id not in profile.watched_work_ids:
                profile.watched_work_ids.append(work_id)
    prefs.taste_profile = profile
    save_preferences(db, user_id, prefs)
    return {
        "ok": True,
        "user_id": user_id,
        "imported": len(parsed.entries),
        "skipped_rows": parsed.row_errors,
        "average_rating": profile.average_rating,
        "loved_works": profile.loved_work_ids,
        "preferred_decades": profile.preferred_decades,
        "profile_strength": profile_strength(profile),
    }
