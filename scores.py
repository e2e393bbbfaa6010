"""
scores.py — Normalized score records and the shared metric table.

Every score that enters the bot (stats API payloads, stored champions, test
fixtures) goes through ScoreRecord.from_api, and every place that needs the
raw score number goes through extract_score_value. The card, the comparison
table and the comparator all read their rows from STAT_ROWS.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Optional


class InvalidScoreData(ValueError):
    """Raised when a score payload can't be compared."""


# ── Canonical extraction ─────────────────────────────────────────────────────

def extract_score_value(raw: Any) -> int:
    """
    Resolve a total score to a single non-negative integer.

    Accepts a plain number or the legacy ``{"total": ...}`` / ``{"value": ...}``
    object. Anything else resolves to 0.
    """
    if isinstance(raw, Mapping):
        raw = raw.get("total") or raw.get("value") or 0
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        return 0
    if not math.isfinite(raw) or raw <= 0:
        return 0
    return int(raw)


def _number(data: Mapping, key: str, default: float = 0) -> float:
    value = data.get(key)
    if value is None:
        return default
    if isinstance(value, bool):
        raise InvalidScoreData(f"Field '{key}' must be a number, got {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise InvalidScoreData(f"Field '{key}' must be a number, got {value!r}") from None
    if not math.isfinite(number):
        return default
    return number


def _score_field(data: Mapping) -> int:
    """The payload's total score; present but non-numeric values are rejected."""
    raw = data.get("score")
    inner = raw
    if isinstance(raw, Mapping):
        inner = raw.get("total")
        if inner is None:
            inner = raw.get("value")
    if inner is not None and (isinstance(inner, bool) or not isinstance(inner, (int, float))):
        raise InvalidScoreData(f"Field 'score' must be a number, got {raw!r}")
    return extract_score_value(raw)


def _accuracy_field(data: Mapping) -> float:
    accuracy = _number(data, "accuracy")
    if not 0 <= accuracy <= 1:
        raise InvalidScoreData(f"Field 'accuracy' must be a fraction between 0 and 1, got {accuracy!r}")
    return accuracy


# ── Model ────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class HitCounts:
    perfect: int = 0
    good: int = 0
    meh: int = 0
    miss: int = 0


@dataclass(frozen=True)
class MapReference:
    id: int
    difficulty_name: str = ""
    set_id: Optional[int] = None
    title: str = ""
    artist: str = ""


# statistics key -> (legacy name, lazer name)
_HIT_KEYS = {
    "perfect": ("count_300", "great"),
    "good":    ("count_100", "ok"),
    "meh":     ("count_50", "meh"),
    "miss":    ("count_miss", "miss"),
}


@dataclass(frozen=True)
class ScoreRecord:
    """One performance on one map attempt."""

    total_score: int = 0
    performance_points: float = 0.0
    accuracy: float = 0.0
    max_combo: int = 0
    hits: HitCounts = field(default_factory=HitCounts)
    mods: tuple[str, ...] = ()
    beatmap: Optional[MapReference] = None
    owner_name: Optional[str] = None
    owner_id: Optional[int] = None
    rank: Optional[str] = None

    @classmethod
    def from_api(cls, data: Any) -> "ScoreRecord":
        """Build a record from a stats-API score object (or a stored copy of one)."""
        if not isinstance(data, Mapping):
            raise InvalidScoreData("Invalid score data provided for comparison")

        stats = data.get("statistics")
        if not isinstance(stats, Mapping):
            stats = {}
        counts = {}
        for name, keys in _HIT_KEYS.items():
            value = 0.0
            for key in keys:
                if stats.get(key) is not None:
                    value = _number(stats, key)
                    break
                if data.get(key) is not None:
                    value = _number(data, key)
                    break
            counts[name] = max(0, int(value))

        user = data.get("user") if isinstance(data.get("user"), Mapping) else {}
        owner_name = user.get("username") or data.get("username")

        return cls(
            total_score=_score_field(data),
            performance_points=max(0.0, _number(data, "pp")),
            accuracy=_accuracy_field(data),
            max_combo=max(0, int(_number(data, "max_combo"))),
            hits=HitCounts(**counts),
            mods=_parse_mods(data),
            beatmap=_parse_beatmap(data),
            owner_name=str(owner_name).strip() if owner_name else None,
            owner_id=user.get("id") or data.get("user_id"),
            rank=data.get("rank"),
        )

    def to_api(self) -> dict:
        """Serialize back to the API-like shape the bot stores."""
        data = {
            "score": self.total_score,
            "pp": self.performance_points,
            "accuracy": self.accuracy,
            "max_combo": self.max_combo,
            "statistics": {
                "count_300": self.hits.perfect,
                "count_100": self.hits.good,
                "count_50": self.hits.meh,
                "count_miss": self.hits.miss,
            },
            "mods": list(self.mods),
            "rank": self.rank,
        }
        if self.owner_name or self.owner_id:
            data["user"] = {"username": self.owner_name, "id": self.owner_id}
        if self.beatmap:
            data["beatmap"] = {
                "id": self.beatmap.id,
                "version": self.beatmap.difficulty_name,
                "beatmapset_id": self.beatmap.set_id,
                "beatmapset": {"title": self.beatmap.title, "artist": self.beatmap.artist},
            }
        return data


def ensure_record(value: Any) -> ScoreRecord:
    if isinstance(value, ScoreRecord):
        return value
    return ScoreRecord.from_api(value)


def _parse_mods(data: Mapping) -> tuple[str, ...]:
    mods = data.get("mods")
    if isinstance(mods, (list, tuple)) and mods:
        acronyms = []
        for mod in mods:
            if isinstance(mod, Mapping) and mod.get("acronym"):
                acronyms.append(str(mod["acronym"]))
            elif isinstance(mod, str) and mod:
                acronyms.append(mod)
        return tuple(acronyms)
    for text in (data.get("mods_string"), mods):
        if isinstance(text, str) and text:
            return tuple(m.strip() for m in text.split(",") if m.strip())
    return ()


def _parse_beatmap(data: Mapping) -> Optional[MapReference]:
    beatmap = data.get("beatmap")
    if not isinstance(beatmap, Mapping):
        return None
    try:
        map_id = int(beatmap.get("id") or 0)
    except (TypeError, ValueError):
        return None
    if not map_id:
        return None
    beatmapset = beatmap.get("beatmapset") or data.get("beatmapset") or {}
    if not isinstance(beatmapset, Mapping):
        beatmapset = {}
    return MapReference(
        id=map_id,
        difficulty_name=str(beatmap.get("version") or ""),
        set_id=beatmap.get("beatmapset_id") or beatmapset.get("id"),
        title=beatmapset.get("title") or beatmapset.get("title_unicode") or "",
        artist=beatmapset.get("artist") or beatmapset.get("artist_unicode") or "",
    )


def is_valid_score(data: Any) -> bool:
    """A score can open a challenge only if it names a map and a difficulty."""
    if not isinstance(data, Mapping):
        return False
    beatmap = data.get("beatmap")
    if not isinstance(beatmap, Mapping) or not beatmap.get("id") or not beatmap.get("version"):
        return False
    raw = data.get("score")
    return isinstance(raw, (int, float, Mapping)) and not isinstance(raw, bool)


# ── Metric table ─────────────────────────────────────────────────────────────

def format_mods(record: ScoreRecord) -> str:
    return ", ".join(record.mods) if record.mods else "No mods"


def _format_score(value: float) -> str:
    if value >= 1_000_000:
        return f"{value / 1_000_000:.1f}M"
    return f"{int(round(value)):,}"


def _format_int(value: float) -> str:
    return str(int(round(value)))


@dataclass(frozen=True)
class StatRow:
    key: str
    label: str
    value: Callable[[ScoreRecord], float]
    format: Callable[[float], str]
    # "higher", "lower", or None for display-only rows
    rule: Optional[str] = "higher"
    text_only: bool = False

    def text(self, record: ScoreRecord) -> str:
        if self.text_only:
            return format_mods(record)
        return self.format(self.value(record))


STAT_ROWS: tuple[StatRow, ...] = (
    StatRow("mods", "Mods", lambda r: 0, lambda v: "", rule=None, text_only=True),
    StatRow("pp", "PP", lambda r: r.performance_points, lambda v: f"{v:.1f}"),
    StatRow("accuracy", "Accuracy %", lambda r: r.accuracy * 100, lambda v: f"{v:.2f}%"),
    StatRow("max_combo", "Max combo", lambda r: r.max_combo, _format_int),
    StatRow("score", "Score", lambda r: r.total_score, _format_score),
    StatRow("misses", "Misses", lambda r: r.hits.miss, _format_int, rule="lower"),
    StatRow("count_300", "300s", lambda r: r.hits.perfect, _format_int),
    StatRow("count_100", "100s", lambda r: r.hits.good, _format_int, rule="lower"),
    StatRow("count_50", "50s", lambda r: r.hits.meh, _format_int, rule="lower"),
)

ROW_INDEX = {row.key: i for i, row in enumerate(STAT_ROWS)}


# ── Display helpers ──────────────────────────────────────────────────────────

def beatmap_link(record: ScoreRecord) -> Optional[str]:
    beatmap = record.beatmap
    if beatmap is None:
        return None
    if beatmap.set_id:
        return f"https://osu.ppy.sh/beatmapsets/{beatmap.set_id}#osu/{beatmap.id}"
    return f"https://osu.ppy.sh/beatmaps/{beatmap.id}"


def difficulty_label(title: str, difficulty: str, artist: str = "") -> str:
    if artist and artist.strip():
        return f"{artist.strip()} - {title} [{difficulty}]"
    return f"{title} [{difficulty}]"


def format_compact(record: ScoreRecord, emoji: Optional[Mapping[str, str]] = None) -> str:
    """Rank | mods | pp | acc | combo | score | hits, on one line."""
    rank = record.rank or "N/A"
    if emoji:
        rank = emoji.get(rank.upper(), rank)
    rows = {row.key: row for row in STAT_ROWS}
    hits = record.hits
    return " | ".join([
        rank,
        format_mods(record),
        f"{rows['pp'].text(record)}pp",
        rows["accuracy"].text(record),
        f"{record.max_combo:,}x",
        f"{record.total_score:,}",
        f"{hits.perfect}/{hits.good}/{hits.meh}/{hits.miss}",
    ])
