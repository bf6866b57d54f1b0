"""Knowledge Search — keyword-overlap ranking of stored text snippets.

Invariants:
    - Pure function: no IO, no async, no DB
    - Case-insensitive word match; words shorter than 3 characters are ignored
    - Entries with zero overlap are never returned
    - Ties keep the input order (callers pass newest first)

Design Decisions:
    - Word overlap instead of embeddings: predictable, fast, testable
    - max_results hard cap at 10: prevents accidental context blowup
"""

import re

_MAX_RESULTS_CAP = 10
_MIN_WORD_LEN = 3
_WORD = re.compile(r"\w+", re.UNICODE)


def keywords(text: str) -> set[str]:
    return {
        w for w in (m.group(0).lower() for m in _WORD.finditer(text or ""))
        if len(w) >= _MIN_WORD_LEN
    }


def rank_by_overlap(
    entries: list[dict], question: str, max_results: int = 5,
) -> list[dict]:
    """Return entries ({"content": ...}) sorted by shared keywords with the question."""
    wanted = keywords(question)
    if not wanted:
        return []
    max_results = max(1, min(max_results, _MAX_RESULTS_CAP))

    scored = []
    for index, entry in enumerate(entries):
        score = len(wanted & keywords(entry.get("content", "")))
        if score:
            scored.append((score, index, entry))
    scored.sort(key=lambda t: (-t[0], t[1]))
    return [
        {**entry, "score": score}
        for score, _, entry in scored[:max_results]
    ]
