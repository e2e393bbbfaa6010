"""
challenge.py — Open challenges and champion hand-over.

A challenge is one map difficulty with a current champion score. Responding
never mutates a ChallengeState in place: resolve_response works out the
result, and the board only swaps the champion if the challenge still has
the version the response was judged against.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, replace
from typing import Optional

from comparator import ComparisonVerdict, compare_scores
from scores import ScoreRecord, ensure_record


class ChallengeError(Exception):
    """Base class for challenge problems shown to the user."""


class ChallengeNotFound(ChallengeError):
    pass


class ChallengeExists(ChallengeError):
    pass


class StaleChallenge(ChallengeError):
    """The champion changed while a response was being judged."""


@dataclass(frozen=True)
class ChallengeState:
    map_id: int
    difficulty: str
    champion_id: int
    champion_name: str
    champion_score: ScoreRecord
    challenger_id: int
    version: int = 1


@dataclass(frozen=True)
class ChallengeOutcome:
    verdict: ComparisonVerdict
    responder_id: int
    responder_name: str
    responder_score: ScoreRecord
    expected_version: int

    @property
    def responder_won(self) -> bool:
        return self.verdict.responder_won


def resolve_response(state: ChallengeState, responder_score, responder_id: int,
                     responder_name: str) -> ChallengeOutcome:
    """Judge a response against the champion held in ``state``."""
    score = ensure_record(responder_score)
    verdict = compare_scores(state.champion_score, score, responder_name)
    return ChallengeOutcome(
        verdict=verdict,
        responder_id=responder_id,
        responder_name=verdict.responder_name,
        responder_score=score,
        expected_version=state.version,
    )


class ChallengeBoard:
    """In-process challenge store keyed by map id."""

    def __init__(self):
        self._lock = threading.Lock()
        self._challenges: dict[int, ChallengeState] = {}

    def open(self, map_id: int, difficulty: str, player_id: int, player_name: str,
             score: ScoreRecord) -> ChallengeState:
        with self._lock:
            if map_id in self._challenges:
                raise ChallengeExists(f"There is already a challenge on map {map_id}.")
            state = ChallengeState(map_id, difficulty, player_id, player_name,
                                   ensure_record(score), challenger_id=player_id)
            self._challenges[map_id] = state
            return state

    def get(self, map_id: int) -> ChallengeState:
        state = self._challenges.get(map_id)
        if state is None:
            raise ChallengeNotFound(f"No active challenge on map {map_id}.")
        return state

    def active(self) -> list[ChallengeState]:
        return sorted(self._challenges.values(), key=lambda s: s.map_id)

    def replace_champion(self, outcome: ChallengeOutcome, map_id: int) -> Optional[ChallengeState]:
        """
        Hand the challenge to the responder if they won.

        Returns the new state, or None when the champion holds. Raises
        StaleChallenge if someone else took the challenge first.
        """
        if not outcome.responder_won:
            return None
        with self._lock:
            current = self._challenges.get(map_id)
            if current is None:
                raise ChallengeNotFound(f"No active challenge on map {map_id}.")
            if current.version != outcome.expected_version:
                raise StaleChallenge(
                    f"{current.champion_name} took map {map_id} first. Try again against the new champion.")
            state = replace(current,
                            champion_id=outcome.responder_id,
                            champion_name=outcome.responder_name,
                            champion_score=outcome.responder_score,
                            version=current.version + 1)
            self._challenges[map_id] = state
            return state

    def close(self, map_id: int, player_id: int) -> ChallengeState:
        with self._lock:
            state = self._challenges.get(map_id)
            if state is None:
                raise ChallengeNotFound(f"No active challenge on map {map_id}.")
            if player_id not in (state.challenger_id, state.champion_id):
                raise ChallengeError("Only the challenger or the champion can close this challenge.")
            return self._challenges.pop(map_id)
