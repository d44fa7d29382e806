"""Lexical code similarity based on Levenshtein edit distance"""

import re

_LINE_COMMENT = re.compile(r"//.*$", re.MULTILINE)
_BLOCK_COMMENT = re.compile(r"/\*[\s\S]*?\*/")
_HASH_COMMENT = re.compile(r"#.*$", re.MULTILINE)
_WHITESPACE = re.compile(r"\s+")


def normalize(code: str) -> str:
    """
    Strip comments and whitespace and lowercase, so cosmetic edits do not
    lower similarity.

    `#` comments are removed for every language, which also drops C++
    preprocessor lines; both sides of a comparison lose them equally.
    """
    if not code:
        return ""
    normalized = _LINE_COMMENT.sub("", code)
    normalized = _BLOCK_COMMENT.sub("", normalized)
    normalized = _HASH_COMMENT.sub("", normalized)
    normalized = _WHITESPACE.sub("", normalized)
    return normalized.lower()


def levenshtein(a: str, b: str) -> int:
    """Classic dynamic-programming edit distance (insert, delete, substitute)."""
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)

    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, 1):
        current = [i]
        for j, cb in enumerate(b, 1):
            if ca == cb:
                current.append(previous[j - 1])
            else:
                current.append(1 + min(previous[j], current[j - 1], previous[j - 1]))
        previous = current
    return previous[-1]


def similarity(a: str, b: str) -> float:
    """Similarity percentage in [0, 100], rounded to two decimals."""
    if not a or not b:
        return 0.0
    if a == b:
        return 100.0

    longer, shorter = (a, b) if len(a) >= len(b) else (b, a)
    distance = levenshtein(longer, shorter)
    return round((len(longer) - distance) / len(longer) * 100, 2)


def compare(code1: str, code2: str, normalize_code: bool = True) -> float:
    """Similarity of two sources, normalized unless raw comparison is requested."""
    if normalize_code:
        return similarity(normalize(code1), normalize(code2))
    return similarity(code1 or "", code2 or "")
