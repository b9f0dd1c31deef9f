from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

TIER_SAFE = "safe"
TIER_STRETCH = "stretch"
TIER_WILD = "wild"
TIERS = (TIER_SAFE, TIER_STRETCH, TIER_WILD)

# category -> single answer id, or a list of ids for multi-choice categories
MoodAnswers = Mapping[str, Union[str, Sequence[str]]]


@dataclass
class GenreScore:
    genre_id: int
    score: float


@dataclass
class CandidateWork:
    id: int
    title: str
    release_year: Optional[int] = None
    # ordered by salience, position 0 is the dominant genre
    genre_ids: List[int] = field(default_factory=list)
    vote_average: float = 0.0
    vote_count: int = 0
    popularity: float = 0.0
    original_language: Optional[str] = None
    # minutes; only present on movie details
    runtime: Optional[int] = None
    keyword_ids: List[int] = field(default_factory=list)
    top_cast_ids: List[int] = field(default_factory=list)
    director_ids: List[int] = field(default_factory=list)
    writer_ids: List[int] = field(default_factory=list)
    cinematographer_ids: List[int] = field(default_factory=list)
    poster_url: Optional[str] = None
    overview: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CandidateWork":
        return cls(
            id=int(data["id"]),
            title=str(data.get("title") or ""),
            release_year=_optional_int(data.get("release_year")),
            genre_ids=[int(g) for g in data.get("genre_ids") or []],
            vote_average=float(data.get("vote_average") or 0.0),
            vote_count=int(data.get("vote_count") or 0),
            popularity=float(data.get("popularity") or 0.0),
            original_language=data.get("original_language"),
            runtime=_optional_int(data.get("runtime")),
            keyword_ids=[int(k) for k in data.get("keyword_ids") or []],
            top_cast_ids=[int(p) for p in data.get("top_cast_ids") or []],
            director_ids=[int(p) for p in data.get("director_ids") or []],
            writer_ids=[int(p) for p in data.get("writer_ids") or []],
            cinematographer_ids=[int(p) for p in data.get("cinematographer_ids") or []],
            poster_url=data.get("poster_url"),
            overview=data.get("overview"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class RecommendationResult:
    tier: str
    work: CandidateWork
    rationale: str

    def to_dict(self) -> Dict[str, Any]:
        return {"tier": self.tier, "work": self.work.to_dict(), "rationale": self.rationale}


def decade_of(year: int) -> int:
    return (int(year) // 10) * 10


def _optional_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None
