from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel
from sqlalchemy.orm import Session

from api.core.catalog import CatalogError
from api.core.feedback import InvalidRatingError, rating_influence, record_rating
from api.core.legends import legend_by_id
from api.core.preference_store import load_preferences, save_preferences
from api.core.works import CandidateWork
from api.db.models import Rating
from api.db.session import get_db

router = APIRouter(prefix="/rating", tags=["rating"])
logger = logging.getLogger(__name__)


class RatingIn(BaseModel):
    user_id: str
    work_id: int
    rating: float
    # genre/keyword/credit ids of the work; fetched from TMDB when omitted
    work: Optional[Dict[str, Any]] = None


def _legend_names(work: CandidateWork) -> List[str]:
    names: List[str] = []
    for person_id in work.top_cast_ids + work.director_ids:
        legend = legend_by_id(person_id)
        if legend is not None and legend.name not in names:
            names.append(legend.name)
    return names


@router.post("")
async def post_rating(
    payload: RatingIn,
    request: Request,
    db: Session = Depends(get_db),
):
    """Fold a star rating into the user's taste weights."""
    try:
        influence = rating_influence(payload.rating)
    except InvalidRatingError as exc:
        raise HTTPException(status_code=422, detail=str(exc))

    if payload.work is not None:
        work = CandidateWork.from_dict({**payload.work, "id": payload.work_id})
    else:
        catalog = getattr(request.app.state, "catalog", None)
        if catalog is None:
            raise HTTPException(
                status_code=503,
                detail="Catalog unavailable; include the work metadata in the request.",
            )
        try:
            work = await catalog.fetch_work_meta(payload.work_id)
        except CatalogError as exc:
            logger.warning("Could not fetch work %s: %s", payload.work_id, exc)
            raise HTTPException(status_code=502, detail=str(exc))

    prefs = load_preferences(db, payload.user_id)
    prefs.taste_profile = record_rating(prefs.taste_profile, work, payload.rating)
    db.add(
        Rating(
            user_id=payload.user_id,
            work_id=payload.work_id,
            rating=payload.rating,
            influence=influence,
        )
    )
    save_preferences(db, payload.user_id, prefs)
    return {
        "ok": True,
        "influence": influence,
        "legends": _legend_names(work),
        "weights": prefs.taste_profile.weights.to_dict(),
    }
