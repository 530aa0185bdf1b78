"""
Phonetic and n-gram encodings used as blocking transforms.
"""

import re

from metaphone import doublemetaphone

_NON_LETTERS = re.compile(r"[^A-Z]")

# Soundex digit classes; vowels and H/W/Y are uncoded
_SOUNDEX_CODES = {
    **dict.fromkeys("BFPV", "1"),
    **dict.fromkeys("CGJKQSXZ", "2"),
    **dict.fromkeys("DT", "3"),
    "L": "4",
    **dict.fromkeys("MN", "5"),
    "R": "6",
}


def soundex(value: str) -> str:
    """
    Four-character Soundex code (letter + 3 digits).

    Consecutive letters of the same class collapse to one digit. Any
    uncoded letter (vowels, H, W, Y) resets the previous code, so a
    repeated class after it is emitted again. Returns "" when the input
    has no letters.
    """
    letters = _NON_LETTERS.sub("", value.upper())
    if not letters:
        return ""

    result = letters[0]
    prev_code = _SOUNDEX_CODES.get(letters[0], "")

    for char in letters[1:]:
        if len(result) >= 4:
            break
        code = _SOUNDEX_CODES.get(char, "")
        if code and code != prev_code:
            result += code
            prev_code = code
        elif not code:
            prev_code = ""

    return (result + "000")[:4]


def metaphone_key(value: str) -> str:
    """Double Metaphone primary code, degrading to Soundex when empty."""
    if not value:
        return ""
    primary, secondary = doublemetaphone(value)
    return primary or secondary or soundex(value)


def ngrams(value: str, size: int = 2) -> list[str]:
    """Sliding-window substrings of ``size`` characters."""
    if size <= 0:
        raise ValueError("ngram size must be positive")
    return [value[i : i + size] for i in range(len(value) - size + 1)]
