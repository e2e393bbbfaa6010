"""
comparator.py — Decides who wins a challenge from two score records.

The challenger (current champion) sits on the left of the card and the
responder on the right. Five key metrics decide the result: PP (or 300s when
both plays are worth 0pp), accuracy, max combo, score and misses. The
responder takes the challenge by winning at least 3 of them.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from scores import ROW_INDEX, STAT_ROWS, ScoreRecord, ensure_record, format_mods

KEY_METRIC_COUNT = 5
WINS_NEEDED = 3


class Winner(Enum):
    CHALLENGER = "challenger"
    RESPONDER = "responder"
    TIE = "tie"

    def flipped(self) -> "Winner":
        if self is Winner.CHALLENGER:
            return Winner.RESPONDER
        if self is Winner.RESPONDER:
            return Winner.CHALLENGER
        return Winner.TIE


def responder_won_majority(responder_wins: int) -> bool:
    return responder_wins >= WINS_NEEDED


@dataclass(frozen=True)
class ComparisonVerdict:
    per_metric_winner: tuple[Winner, ...]
    challenger_wins: int
    responder_wins: int
    # Rows tallied as key metrics; the first is the PP row or the 300s fallback
    key_rows: tuple[int, ...]
    challenger_name: str = "Challenger"
    responder_name: str = "Responder"

    @property
    def total_metrics(self) -> int:
        return self.challenger_wins + self.responder_wins

    @property
    def responder_won(self) -> bool:
        return responder_won_majority(self.responder_wins)

    @property
    def fifth_metric_winner(self) -> Winner:
        return self.per_metric_winner[self.key_rows[0]]

    @property
    def leader(self) -> Winner:
        """Who took more key metrics; not the same as who takes the challenge."""
        if self.responder_wins > self.challenger_wins:
            return Winner.RESPONDER
        if self.responder_wins < self.challenger_wins:
            return Winner.CHALLENGER
        return Winner.TIE

    @property
    def loser(self) -> Winner:
        return Winner.CHALLENGER if self.responder_won else Winner.RESPONDER


def _row_winner(rule, challenger_value: float, responder_value: float) -> Winner:
    if rule is None or challenger_value == responder_value:
        return Winner.TIE
    responder_ahead = responder_value > challenger_value
    if rule == "lower":
        responder_ahead = not responder_ahead
    return Winner.RESPONDER if responder_ahead else Winner.CHALLENGER


def compare_scores(challenger: Any, responder: Any, responder_name: str = "") -> ComparisonVerdict:
    """
    Compare two scores row by row and tally the key metrics.

    Either side may be a ScoreRecord or a raw score payload. Raises
    InvalidScoreData if a payload can't be normalized.
    """
    left = ensure_record(challenger)
    right = ensure_record(responder)

    winners = tuple(
        _row_winner(row.rule, row.value(left), row.value(right))
        for row in STAT_ROWS
    )

    both_pp_zero = left.performance_points == 0 and right.performance_points == 0
    fifth = ROW_INDEX["count_300"] if both_pp_zero else ROW_INDEX["pp"]
    key_rows = (fifth, ROW_INDEX["accuracy"], ROW_INDEX["max_combo"],
                ROW_INDEX["score"], ROW_INDEX["misses"])

    tally = [winners[i] for i in key_rows]
    return ComparisonVerdict(
        per_metric_winner=winners,
        challenger_wins=tally.count(Winner.CHALLENGER),
        responder_wins=tally.count(Winner.RESPONDER),
        key_rows=key_rows,
        challenger_name=(left.owner_name or "Challenger").strip(),
        responder_name=(responder_name or "").strip() or "Responder",
    )


# ── Text table ───────────────────────────────────────────────────────────────

TROPHY = "🏆"


def _cell(text: str, won: bool, width: int = 17) -> str:
    return f"{text:>{width}} {TROPHY if won else ''}".rstrip()


def format_comparison_table(challenger: ScoreRecord, responder: ScoreRecord,
                            verdict: ComparisonVerdict) -> str:
    """Markdown code-block table posted next to the card."""
    lines = [
        "```",
        f"{'Stat':<18}| {'Challenger':<20}| Responder",
        f"{'-' * 18}|{'-' * 21}|{'-' * 19}",
    ]
    key_rows = set(verdict.key_rows)
    for i, row in enumerate(STAT_ROWS[1:], start=1):
        winner = verdict.per_metric_winner[i] if i in key_rows else Winner.TIE
        lines.append(
            f"{row.label:<18}| "
            f"{_cell(row.text(challenger), winner is Winner.CHALLENGER):<20}| "
            f"{_cell(row.text(responder), winner is Winner.RESPONDER)}"
        )
    mods = [format_mods(challenger), format_mods(responder)]
    mods = [m if len(m) <= 17 else m[:14] + "..." for m in mods]
    lines.append(f"{'Mods':<18}| {mods[0]:>17}   | {mods[1]:>17}")
    lines.append("```")

    leader = verdict.leader
    name = {Winner.RESPONDER: verdict.responder_name,
            Winner.CHALLENGER: verdict.challenger_name}.get(leader, "Tie")
    best = max(verdict.responder_wins, verdict.challenger_wins)
    lines.append("")
    lines.append(f"**Winner:** {name} ({best}/{verdict.total_metrics} stats)")
    return "\n".join(lines)
