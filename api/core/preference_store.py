from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy.orm import Session

from api.core.platforms import normalize_platforms
from api.core.recent_window import RecentlyShownWindow
from api.core.taste_blend import TasteProfile
from api.db.models import UserPreferences

logger = logging.getLogger(__name__)

PREFERENCES_SCHEMA_VERSION = 2


@dataclass
class StoredPreferences:
    exclusions: List[int] = field(default_factory=list)
    platforms: List[str] = field(default_factory=list)
    recent_window: List[int] = field(default_factory=list)
    taste_profile: Optional[TasteProfile] = None

    def window(self) -> RecentlyShownWindow:
        return RecentlyShownWindow(self.recent_window)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "exclusions": sorted(set(self.exclusions)),
            "platforms": list(self.platforms),
            "recent_window": list(self.recent_window),
            "taste_profile": self.taste_profile.to_dict() if self.taste_profile else None,
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "StoredPreferences":
        profile_raw = payload.get("taste_profile")
        return cls(
            exclusions=sorted({int(g) for g in payload.get("exclusions") or []}),
            platforms=normalize_platforms(payload.get("platforms") or []),
            recent_window=[int(w) for w in payload.get("recent_window") or []],
            taste_profile=TasteProfile.from_dict(profile_raw) if profile_raw else None,
        )


def _upgrade_v1(payload: Mapping[str, Any]) -> Dict[str, Any]:
    # v1 kept flat weight maps next to the profile instead of inside it
    profile = dict(payload.get("taste_profile") or {})
    weights = {
        name: payload[name]
        for name in (
            "genre_weights",
            "keyword_weights",
            "decade_weights",
            "cast_weights",
            "crew_weights",
        )
        if payload.get(name)
    }
    if weights:
        profile["weights"] = weights
    return {
        "exclusions": payload.get("excluded_genres") or [],
        "platforms": payload.get("services") or [],
        "recent_window": payload.get("recently_shown") or [],
        "taste_profile": profile or None,
    }


def migrate_payload(payload: Any, version: Optional[int]) -> StoredPreferences:
    """
    Bring a stored payload up to the current schema.

    Known older versions are upgraded. Unknown versions and payloads that fail
    to parse are discarded and replaced with empty preferences. Never raises.
    """
    if not isinstance(payload, Mapping):
        if payload is not None:
            logger.warning("Discarding non-object preference payload (%s).", type(payload).__name__)
        return StoredPreferences()
    try:
        if version == 1:
            payload = _upgrade_v1(payload)
            version = 2
        if version != PREFERENCES_SCHEMA_VERSION:
            logger.warning(
                "Discarding preferences stored with unknown schema version %r.", version
            )
            return StoredPreferences()
        return StoredPreferences.from_payload(payload)
    except (TypeError, ValueError, AttributeError) as exc:
        logger.warning("Discarding unreadable preference payload: %s", exc)
        return StoredPreferences()


def load_preferences(db: Session, user_id: str) -> StoredPreferences:
    row = (
        db.query(UserPreferences)
        .filter(UserPreferences.user_id == user_id)
        .one_or_none()
    )
    if row is None:
        return StoredPreferences()
    return migrate_payload(row.payload, row.schema_version)


def save_preferences(db: Session, user_id: str, prefs: StoredPreferences) -> None:
    row = (
        db.query(UserPreferences)
        .filter(UserPreferences.user_id == user_id)
        .one_or_none()
    )
    if row is None:
        row = UserPreferences(user_id=user_id)
        db.add(row)
    row.schema_version = PREFERENCES_SCHEMA_VERSION
    row.payload = prefs.to_payload()
    db.commit()
