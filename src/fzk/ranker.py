"""Fuzzy ranking of candidate keys against a query."""

from collections.abc import Iterable

from thefuzz import fuzz

from fzk.models import FuzzyMatch

EXE_SUFFIX = ".exe"


def strip_suffix(command: str) -> str:
    """Drop a trailing ``.exe`` so Windows image names match like POSIX ones."""
    if command.lower().endswith(EXE_SUFFIX):
        return command[: -len(EXE_SUFFIX)]
    return command


def is_pid_query(query: str) -> bool:
    """A query starting with an ASCII digit searches PIDs instead of names."""
    return bool(query) and query[0] in "0123456789"


def similarity(query: str, candidate: str) -> float:
    """Normalized edit-distance similarity in [0, 1], case-insensitive."""
    return fuzz.ratio(query.lower(), candidate.lower()) / 100


def rank(
    query: str,
    candidates: Iterable[str],
    threshold: float,
    limit: int,
) -> list[FuzzyMatch]:
    """
    Rank ``candidates`` by similarity to ``query``.

    Candidates scoring at least ``threshold`` are kept and ordered by
    descending score. The sort is stable, so equal scores keep the order the
    candidates were supplied in. At most ``limit`` matches are returned; an
    empty list means nothing cleared the threshold.
    """
    if limit < 1:
        return []

    matches = [
        FuzzyMatch(key, score)
        for key in candidates
        if (score := similarity(query, key)) >= threshold
    ]
    matches.sort(key=lambda m: m.score, reverse=True)
    return matches[:limit]
