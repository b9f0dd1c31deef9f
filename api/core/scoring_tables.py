from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from api.config import SCORING_TABLES_STRICT
from api.core.works import CandidateWork, MoodAnswers

logger = logging.getLogger(__name__)
if logger.level == logging.NOTSET:
    logger.setLevel(logging.INFO)
if not logger.handlers:
    _handler = logging.StreamHandler()
    _handler.setFormatter(logging.Formatter("%(levelname)s:%(name)s:%(message)s"))
    logger.addHandler(_handler)
    logger.propagate = False

SUPPORTED_VERSIONS = {3}
MAX_AFFINITY = 5
MAX_SEARCH_KEYWORDS = 8
MIN_DEFAULT_WORKS = 3

_TABLES_CACHE: Dict[str, Any] = {"path": None, "mtime": None, "tables": None}


class ScoringConfigError(ValueError):
    """Raised when the scoring tables are structurally invalid."""


@dataclass(frozen=True)
class CategoryWeight:
    primary: float
    secondary: float
    tertiary: float


@dataclass(frozen=True)
class ScoringEntry:
    primary: int
    secondary: Optional[int] = None
    tertiary: Optional[int] = None

    def slots(self) -> Iterable[Tuple[str, Optional[int]]]:
        yield "primary", self.primary
        yield "secondary", self.secondary
        yield "tertiary", self.tertiary


@dataclass(frozen=True)
class QuizQuestion:
    category: str
    prompt: str
    multi: bool
    options: Tuple[Tuple[str, str], ...]

    def option_ids(self) -> List[str]:
        return [option_id for option_id, _ in self.options]


@dataclass(frozen=True)
class ScoringTables:
    version: int
    genres: Dict[int, str]
    category_weights: Dict[str, CategoryWeight]
    scoring: Dict[str, Dict[str, ScoringEntry]]
    keywords: Dict[str, Dict[str, Tuple[int, ...]]]
    traits: Tuple[str, ...]
    trait_affinity: Dict[int, Dict[str, float]]
    questions: Tuple[QuizQuestion, ...]
    default_works: Tuple[CandidateWork, ...] = field(default_factory=tuple)

    @property
    def all_genres(self) -> List[int]:
        return list(self.genres)

    @property
    def categories(self) -> List[str]:
        return [question.category for question in self.questions]

    def genre_name(self, genre_id: int) -> str:
        return self.genres.get(genre_id, str(genre_id))

    def entry(self, category: str, answer_id: str) -> ScoringEntry | None:
        return self.scoring.get(category, {}).get(answer_id)

    def weight(self, category: str) -> CategoryWeight | None:
        return self.category_weights.get(category)

    def keywords_for(
        self, answers: MoodAnswers, limit: int = MAX_SEARCH_KEYWORDS
    ) -> List[int]:
        """Collect keyword ids for the chosen answers, in quiz order, deduplicated."""
        collected: List[int] = []
        ordered = sorted(answers.items(), key=lambda kv: self.category_rank(kv[0]))
        for category, answer in ordered:
            per_category = self.keywords.get(category, {})
            for answer_id in answer_ids(answer):
                for keyword_id in per_category.get(answer_id, ()):
                    if keyword_id not in collected:
                        collected.append(keyword_id)
        return collected[:limit]

    def quiz_surface(self) -> List[Dict[str, Any]]:
        return [
            {
                "category": question.category,
                "prompt": question.prompt,
                "multi": question.multi,
                "options": [
                    {"id": option_id, "text": text}
                    for option_id, text in question.options
                ],
            }
            for question in self.questions
        ]

    def category_rank(self, category: str) -> int:
        categories = self.categories
        if category in categories:
            return categories.index(category)
        return len(categories)


def answer_ids(answer: Any) -> List[str]:
    if answer is None:
        return []
    if isinstance(answer, str):
        return [answer] if answer.strip() else []
    return [str(item) for item in answer if item is not None and str(item).strip()]


def _default_tables_path() -> str:
    env_path = os.getenv("SCORING_TABLES_PATH")
    if env_path:
        return env_path
    return os.path.join(os.path.dirname(os.path.dirname(__file__)), "data", "scoring_tables.json")


def clear_tables_cache() -> None:
    global _TABLES_CACHE
    _TABLES_CACHE = {"path": None, "mtime": None, "tables": None}


def get_scoring_tables() -> ScoringTables:
    path = _default_tables_path()
    mtime = os.path.getmtime(path)
    if (
        _TABLES_CACHE.get("path") == path
        and _TABLES_CACHE.get("mtime") == mtime
        and _TABLES_CACHE.get("tables") is not None
    ):
        return _TABLES_CACHE["tables"]  # type: ignore[return-value]
    tables = load_scoring_tables(path)
    _TABLES_CACHE.update({"path": path, "mtime": mtime, "tables": tables})
    return tables


def load_scoring_tables(
    path: str | None = None, strict: bool | None = None
) -> ScoringTables:
    path = path or _default_tables_path()
    try:
        with open(path, "r", encoding="utf-8") as handle:
            raw = json.load(handle)
    except json.JSONDecodeError as exc:
        raise ScoringConfigError(f"Scoring tables at {path} are not valid JSON: {exc}")
    tables = parse_scoring_tables(raw)

    gaps = find_unscored_answers(tables)
    if gaps:
        strict = SCORING_TABLES_STRICT if strict is None else strict
        formatted = ", ".join(f"{category}.{answer}" for category, answer in gaps)
        if strict:
            raise ScoringConfigError(f"Quiz answers without scoring entries: {formatted}")
        logger.warning("Quiz answers without scoring entries: %s", formatted)
    logger.info(
        "Loaded scoring tables v%s from %s (%d categories, %d genres)",
        tables.version,
        path,
        len(tables.scoring),
        len(tables.genres),
    )
    return tables


def parse_scoring_tables(raw: Mapping[str, Any]) -> ScoringTables:
    version = raw.get("version")
    if version not in SUPPORTED_VERSIONS:
        raise ScoringConfigError(f"Unsupported scoring tables version: {version!r}")

    genres = {int(genre_id): str(name) for genre_id, name in (raw.get("genres") or {}).items()}
    if not genres:
        raise ScoringConfigError("Scoring tables define no genres")

    category_weights: Dict[str, CategoryWeight] = {}
    for category, weights in (raw.get("category_weights") or {}).items():
        weight = CategoryWeight(
            primary=float(weights.get("primary", 0)),
            secondary=float(weights.get("secondary", 0)),
            tertiary=float(weights.get("tertiary", 0)),
        )
        if min(weight.primary, weight.secondary, weight.tertiary) < 0:
            raise ScoringConfigError(f"Negative weight for category '{category}'")
        category_weights[category] = weight

    scoring: Dict[str, Dict[str, ScoringEntry]] = {}
    for category, answers in (raw.get("scoring") or {}).items():
        if category not in category_weights:
            raise ScoringConfigError(f"Category '{category}' has no weight table")
        scoring[category] = {}
        for answer_id, slots in answers.items():
            entry = ScoringEntry(
                primary=_genre_ref(slots.get("primary"), genres, f"{category}.{answer_id}"),
                secondary=_optional_genre_ref(slots.get("secondary"), genres, f"{category}.{answer_id}"),
                tertiary=_optional_genre_ref(slots.get("tertiary"), genres, f"{category}.{answer_id}"),
            )
            scoring[category][answer_id] = entry

    keywords = {
        category: {
            answer_id: tuple(int(k) for k in keyword_ids)
            for answer_id, keyword_ids in answers.items()
        }
        for category, answers in (raw.get("keywords") or {}).items()
    }

    traits = tuple(raw.get("traits") or ())
    trait_affinity: Dict[int, Dict[str, float]] = {}
    for genre_key, affinities in (raw.get("trait_affinity") or {}).items():
        genre_id = _genre_ref(genre_key, genres, "trait_affinity")
        row: Dict[str, float] = {}
        for trait, value in affinities.items():
            if trait not in traits:
                raise ScoringConfigError(f"Unknown trait '{trait}' for genre {genre_id}")
            value = float(value)
            if value < 0 or value > MAX_AFFINITY:
                raise ScoringConfigError(
                    f"Affinity {value} for {genre_id}.{trait} outside 0..{MAX_AFFINITY}"
                )
            row[trait] = value
        trait_affinity[genre_id] = row

    questions = tuple(
        QuizQuestion(
            category=str(question["category"]),
            prompt=str(question.get("prompt") or ""),
            multi=bool(question.get("multi", False)),
            options=tuple(
                (str(option["id"]), str(option.get("text") or option["id"]))
                for option in question.get("options") or []
            ),
        )
        for question in raw.get("questions") or []
    )

    default_works = tuple(
        CandidateWork.from_dict(work) for work in raw.get("default_works") or []
    )
    if len({work.id for work in default_works}) < MIN_DEFAULT_WORKS:
        raise ScoringConfigError(
            f"Scoring tables need at least {MIN_DEFAULT_WORKS} distinct default works"
        )

    return ScoringTables(
        version=int(version),
        genres=genres,
        category_weights=category_weights,
        scoring=scoring,
        keywords=keywords,
        traits=traits,
        trait_affinity=trait_affinity,
        questions=questions,
        default_works=default_works,
    )


def find_unscored_answers(tables: ScoringTables) -> List[Tuple[str, str]]:
    gaps: List[Tuple[str, str]] = []
    for question in tables.questions:
        for option_id in question.option_ids():
            if tables.entry(question.category, option_id) is None:
                gaps.append((question.category, option_id))
    return gaps


def _genre_ref(value: Any, genres: Mapping[int, str], where: str) -> int:
    try:
        genre_id = int(value)
    except (TypeError, ValueError):
        raise ScoringConfigError(f"Invalid genre reference {value!r} in {where}")
    if genre_id not in genres:
        raise ScoringConfigError(f"Unknown genre {genre_id} in {where}")
    return genre_id


def _optional_genre_ref(
    value: Any, genres: Mapping[int, str], where: str
) -> Optional[int]:
    if value is None:
        return None
    return _genre_ref(value, genres, where)


def resolve_genres(
    tables: ScoringTables, refs: Sequence[Any]
) -> Tuple[List[int], List[str]]:
    """Resolve genre ids or names; returns (genre ids, unrecognised refs)."""
    by_name = {name.lower(): genre_id for genre_id, name in tables.genres.items()}
    resolved: List[int] = []
    unknown: List[str] = []
    for ref in refs:
        text = str(ref).strip()
        genre_id = int(text) if text.isdigit() else by_name.get(text.lower())
        if genre_id is None or genre_id not in tables.genres:
            unknown.append(text)
        elif genre_id not in resolved:
            resolved.append(genre_id)
    return resolved, unknown
