"""Knowledge Search — pure keyword-overlap ranking.

Tests:
    - Highest overlap first, ties keep input order
    - Zero-overlap entries excluded; short words ignored
    - max_results clamped to [1, 10]
"""

from backstage.core.search_knowledge import keywords, rank_by_overlap


def test_keywords_ignore_short_words_and_case():
    assert keywords("The DB is on Port 5432") == {"the", "port", "5432"}


def test_ranks_by_overlap_then_input_order():
    entries = [
        {"content": "redis cache port"},
        {"content": "redis cache eviction port settings"},
        {"content": "cache warmup"},
    ]

    ranked = rank_by_overlap(entries, "redis cache port settings")

    assert [r["content"] for r in ranked] == [
        "redis cache eviction port settings",
        "redis cache port",
        "cache warmup",
    ]
    assert [r["score"] for r in ranked] == [4, 3, 1]


def test_no_overlap_returns_empty():
    assert rank_by_overlap([{"content": "alpha beta"}], "gamma delta") == []
    assert rank_by_overlap([{"content": "alpha"}], "a b") == []


def test_max_results_is_clamped():
    entries = [{"content": f"deploy note {i}"} for i in range(15)]

    assert len(rank_by_overlap(entries, "deploy", max_results=50)) == 10
    assert len(rank_by_overlap(entries, "deploy", max_results=0)) == 1
