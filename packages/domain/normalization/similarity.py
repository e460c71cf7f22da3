"""
String and keyword-set similarity used by master-product matching
"""
from typing import Iterable


def levenshtein_distance(a: str, b: str) -> int:
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            cost = 0 if char_a == char_b else 1
            current.append(min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost))
        previous = current
    return previous[-1]


def name_similarity(a: str, b: str) -> float:
    """1 - levenshtein / longer length, case-insensitive; two empty strings are identical"""
    a, b = a.lower(), b.lower()
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1.0 - levenshtein_distance(a, b) / longest


def jaccard_similarity(first: Iterable[str], second: Iterable[str]) -> float:
    set_a = {keyword.lower() for keyword in first}
    set_b = {keyword.lower() for keyword in second}
    union = set_a | set_b
    if not union:
        return 0.0
    return len(set_a & set_b) / len(union)
