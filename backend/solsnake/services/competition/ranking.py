"""Leaderboard ordering.

Higher score first; on equal scores the earlier submission ranks higher.
"""
from typing import Iterable, List, Mapping, Union

from solsnake.models import PlayerScore

Entry = Union[PlayerScore, Mapping]


def _coerce(entries: Iterable[Entry]) -> List[PlayerScore]:
    out = []
    for e in entries or []:
        if isinstance(e, PlayerScore):
            out.append(e)
        elif isinstance(e, Mapping):
            out.append(PlayerScore.from_dict(e))
    return out


def rank(entries: Iterable[Entry]) -> List[PlayerScore]:
    # id is the last key so equal (score, timestamp) pairs still order deterministically
    return sorted(_coerce(entries), key=lambda e: (-e.score, e.timestamp, e.id))


def top_n(entries: Iterable[Entry], n: int = 5) -> List[PlayerScore]:
    """Best-ranked entry per distinct score, at most ``n`` of them."""
    if n <= 0:
        return []
    seen = set()
    top = []
    for entry in rank(entries):
        if entry.score in seen:
            continue
        seen.add(entry.score)
        top.append(entry)
        if len(top) >= n:
            break
    return top


def winner_set(entries: Iterable[Entry]) -> List[PlayerScore]:
    """Every wallet tied at the top score, first occurrence per wallet."""
    ranked = rank(entries)
    if not ranked:
        return []
    top_score = ranked[0].score
    wallets = set()
    winners = []
    for entry in ranked:
        if entry.score != top_score:
            break
        if entry.wallet in wallets:
            continue
        wallets.add(entry.wallet)
        winners.append(entry)
    return winners
