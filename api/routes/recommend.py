from __future__ import annotations

import logging
from typing import Dict, List, Optional, Union

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from api.core.engine import RecommendationEngine
from api.core.preference_store import load_preferences, save_preferences
from api.core.scoring_tables import resolve_genres
from api.db.session import get_db
from api.routes.quiz import app_tables

router = APIRouter(prefix="/recommend", tags=["recommend"])
logger = logging.getLogger(__name__)


class RecommendRequest(BaseModel):
    user_id: str
    # category -> answer id; symbols and path take a list of ids
    answers: Dict[str, Union[str, List[str]]]
    # genre ids or names; omitted means the user's stored exclusions
    exclusions: Optional[List[Union[int, str]]] = None
    platforms: Optional[List[str]] = None
    strength: Optional[str] = Field(
        None, description="Override the profile strength (strong, moderate, weak)."
    )


@router.post("")
async def recommend(
    payload: RecommendRequest,
    request: Request,
    db: Session = Depends(get_db),
):
    tables = app_tables(request)
    prefs = load_preferences(db, payload.user_id)

    exclusions = prefs.exclusions
    if payload.exclusions is not None:
        exclusions, unknown = resolve_genres(tables, payload.exclusions)
        if unknown:
            raise HTTPException(
                status_code=422, detail=f"Unknown genres: {', '.join(unknown)}"
            )
    platforms = prefs.platforms if payload.platforms is None else payload.platforms

    engine = RecommendationEngine(
        getattr(request.app.state, "catalog", None),
        tables,
        getattr(request.app.state, "rng", None),
    )
    window = prefs.window()
    results = await engine.run_recommendation(
        payload.answers,
        taste_profile=prefs.taste_profile,
        exclusions=exclusions,
        recent_window=window,
        platforms=platforms,
        strength=payload.strength,
    )

    prefs.recent_window = window.to_list()
    save_preferences(db, payload.user_id, prefs)
    logger.info(
        "Recommended %s for user %s",
        [(r.tier, r.work.id) for r in results],
        payload.user_id,
    )
    return {
        "user_id": payload.user_id,
        "results": [result.to_dict() for result in results],
    }
