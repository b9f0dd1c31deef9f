from __future__ import annotations

from typing import Any, Dict, List, Optional

from api.core.works import CandidateWork

TOP_BILLED_CAST = 10
WRITER_JOBS = {"Screenplay", "Writer", "Story"}
CINEMATOGRAPHER_JOB = "Director of Photography"
POSTER_BASE = "https://image.tmdb.org/t/p/w500"


def _extract_release_year(data: Dict[str, Any]) -> Optional[int]:
    value = data.get("release_date")
    if isinstance(value, str) and len(value) >= 4:
        year_part = value[:4]
        if year_part.isdigit():
            return int(year_part)
    return None


def _genre_ids(d: Dict[str, Any]) -> List[int]:
    # discover results carry genre_ids; details carry genres objects
    if d.get("genre_ids"):
        return [int(g) for g in d["genre_ids"] if g is not None]
    return [int(g["id"]) for g in d.get("genres") or [] if g.get("id") is not None]


def _float_or_zero(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _int_or_zero(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def extract_person_ids(credits: Dict[str, Any] | None) -> Dict[str, List[int]]:
    """Top-billed cast plus directors, writers and directors of photography."""
    if not credits:
        return {"cast": [], "directors": [], "writers": [], "cinematographers": []}
    cast = [p["id"] for p in (credits.get("cast") or [])[:TOP_BILLED_CAST] if p.get("id")]
    crew = credits.get("crew") or []
    return {
        "cast": cast,
        "directors": [p["id"] for p in crew if p.get("job") == "Director" and p.get("id")],
        "writers": [p["id"] for p in crew if p.get("job") in WRITER_JOBS and p.get("id")],
        "cinematographers": [
            p["id"] for p in crew if p.get("job") == CINEMATOGRAPHER_JOB and p.get("id")
        ],
    }


def map_work_payload(d: Dict[str, Any]) -> CandidateWork:
    """Map a TMDB discover result or movie details payload onto a CandidateWork."""
    poster_url = None
    if d.get("poster_path"):
        poster_url = f"{POSTER_BASE}{d['poster_path']}"

    keywords_block = d.get("keywords") or {}
    keyword_ids = [
        int(k["id"]) for k in keywords_block.get("keywords") or [] if k.get("id") is not None
    ]
    people = extract_person_ids(d.get("credits"))

    return CandidateWork(
        id=int(d["id"]),
        title=d.get("title") or d.get("original_title") or "",
        release_year=_extract_release_year(d),
        genre_ids=_genre_ids(d),
        vote_average=_float_or_zero(d.get("vote_average")),
        vote_count=_int_or_zero(d.get("vote_count")),
        popularity=_float_or_zero(d.get("popularity")),
        original_language=d.get("original_language"),
        runtime=d.get("runtime") or None,
        keyword_ids=keyword_ids,
        top_cast_ids=people["cast"],
        director_ids=people["directors"],
        writer_ids=people["writers"],
        cinematographer_ids=people["cinematographers"],
        poster_url=poster_url,
        overview=d.get("overview"),
    )
