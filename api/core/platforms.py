from __future__ import annotations

from typing import Dict, List, Sequence, Set

_STREAMING_PROVIDER_ALIASES: Dict[str, Set[str]] = {
    "netflix": {"netflix", "nfx"},
    "disney_plus": {"disney_plus", "disney", "dnp"},
    "prime_video": {"prime_video", "primevideo", "amazon", "amz", "amp"},
    "hulu": {"hulu", "hlu"},
    "max": {"max", "hbomax", "hbo", "hbm"},
    "apple_tv_plus": {"apple_tv_plus", "appletvplus", "apple", "atp"},
    "paramount_plus": {"paramount_plus", "paramountplus", "prm", "pmnt", "paramount"},
}

# TMDB watch-provider ids for the canonical services
TMDB_PROVIDER_IDS: Dict[str, int] = {
    "netflix": 8,
    "disney_plus": 337,
    "prime_video": 9,
    "hulu": 15,
    "max": 1899,
    "apple_tv_plus": 350,
    "paramount_plus": 531,
}


def normalize_platforms(providers: Sequence[str] | None) -> List[str]:
    """Map free-form service names onto canonical ids, dropping unknown ones."""
    normalized: List[str] = []
    if not providers:
        return normalized

    for provider in providers:
        if not isinstance(provider, str):
            continue
        key = provider.strip().lower().replace(" ", "_").replace("+", "_plus")
        if not key:
            continue
        for canonical, variants in _STREAMING_PROVIDER_ALIASES.items():
            if key == canonical or key in variants:
                if canonical not in normalized:
                    normalized.append(canonical)
                break
    return normalized


def provider_ids(platforms: Sequence[str]) -> List[int]:
    return [
        TMDB_PROVIDER_IDS[name]
        for name in normalize_platforms(platforms)
        if name in TMDB_PROVIDER_IDS
    ]
