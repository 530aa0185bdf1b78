"""
String similarity helpers for pairwise comparison.
"""

import jellyfish

# Per-token similarity above which two name tokens count as the same
TOKEN_MATCH_THRESHOLD = 0.8


def string_similarity(s1: str, s2: str) -> float:
    """
    Normalized Levenshtein similarity: 1 - distance / max(len).

    Identical strings score 1.0; an empty string against a non-empty one
    scores 0.0. Comparison is case-sensitive; callers lowercase first.
    """
    if s1 == s2:
        return 1.0
    if not s1 or not s2:
        return 0.0

    distance = jellyfish.levenshtein_distance(s1, s2)
    return 1.0 - distance / max(len(s1), len(s2))


def compare_names(name1: str, name2: str) -> float:
    """
    Token-overlap similarity for personal names.

    A token in ``name1`` matches if any token in ``name2`` is identical or
    similar above TOKEN_MATCH_THRESHOLD. The score is the match count over
    the larger token count.
    """
    n1 = name1.lower().strip()
    n2 = name2.lower().strip()

    if n1 == n2:
        return 1.0
    if not n1 or not n2:
        return 0.0

    parts1 = n1.split()
    parts2 = n2.split()

    matching = 0
    for p1 in parts1:
        for p2 in parts2:
            if p1 == p2 or string_similarity(p1, p2) > TOKEN_MATCH_THRESHOLD:
                matching += 1
                break

    return matching / max(len(parts1), len(parts2))

