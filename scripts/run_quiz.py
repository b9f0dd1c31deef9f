from __future__ import annotations

import argparse
import asyncio
import json
import random

from api.config import TMDB_API_KEY
from api.core.catalog import TMDBCatalog
from api.core.engine import RecommendationEngine
from api.core.scoring_tables import get_scoring_tables, resolve_genres
from etl.tmdb_client import TMDBClient


def _parse_answers(pairs: list[str]) -> dict[str, list[str]]:
    answers: dict[str, list[str]] = {}
    for pair in pairs:
        category, _, answer_id = pair.partition("=")
        if not answer_id:
            raise SystemExit(f"Expected category=answer, got '{pair}'")
        answers.setdefault(category.strip(), []).append(answer_id.strip())
    return answers


async def _run(answers, exclusions, seed) -> None:
    tables = get_scoring_tables()
    excluded, unknown = resolve_genres(tables, exclusions)
    if unknown:
        raise SystemExit(f"Unknown genres: {', '.join(unknown)}")
    catalog = TMDBCatalog(TMDBClient(TMDB_API_KEY)) if TMDB_API_KEY else None
    engine = RecommendationEngine(catalog, tables, random.Random(seed))
    try:
        results = await engine.run_recommendation(answers, exclusions=excluded)
    finally:
        if catalog is not None:
            await catalog.aclose()
    print(json.dumps([r.to_dict() for r in results], indent=2))


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Run one mood quiz through the recommendation engine."
    )
    parser.add_argument(
        "answers",
        nargs="+",
        help="Quiz answers as category=answer (repeat a category for multi-choice).",
    )
    parser.add_argument(
        "--exclude",
        action="append",
        default=[],
        help="Genre id or name to exclude; may be repeated.",
    )
    parser.add_argument("--seed", type=int, help="Seed for reproducible picks.")
    args = parser.parse_args()
    asyncio.run(_run(_parse_answers(args.answers), args.exclude, args.seed))


if __name__ == "__main__":
    main()
