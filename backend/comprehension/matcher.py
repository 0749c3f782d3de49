"""Deterministic short-answer matcher.

Used when the semantic grader is not consulted at all (offline mode, tests)
or when it is unavailable and the coordinator is configured to fall back to it.

Acceptance rule:

* an empty or whitespace-only submission never matches;
* equal answers match after normalization (lowercase, ``.,!?;:`` removed, trimmed);
* otherwise the expected answer is split into key terms, dropping tokens of
  ``short_token_max`` characters or fewer. With at most two key terms a single
  hit is enough; with more, ``ceil(0.6 * n)`` of them must occur in the
  submission;
* an expected answer made only of short tokens has no key terms and falls back
  to plain containment of the normalized expected answer. This is lenient on
  purpose for very short answers; callers that need strict grading should use
  the semantic grader.
"""
from __future__ import annotations

import re
from typing import List

PUNCTUATION_RE = re.compile(r"[.,!?;:]")
DEFAULT_SHORT_TOKEN_MAX = 2
# Required share of key terms is 3/5, kept as integers so ceil() is exact
MATCH_NUMERATOR = 3
MATCH_DENOMINATOR = 5


def normalize_answer(answer: str) -> str:
    return PUNCTUATION_RE.sub("", answer.lower()).strip()


def key_terms(expected: str, short_token_max: int = DEFAULT_SHORT_TOKEN_MAX) -> List[str]:
    return [token for token in normalize_answer(expected).split() if len(token) > short_token_max]


def required_matches(term_count: int) -> int:
    if term_count <= 2:
        return 1
    return -(-MATCH_NUMERATOR * term_count // MATCH_DENOMINATOR)


def matches(submitted: str, expected: str, *, short_token_max: int = DEFAULT_SHORT_TOKEN_MAX) -> bool:
    if not submitted or not submitted.strip():
        return False

    normalized = normalize_answer(submitted)
    normalized_expected = normalize_answer(expected)
    if not normalized:
        return False
    if normalized == normalized_expected:
        return True

    terms = key_terms(expected, short_token_max)
    if not terms:
        return bool(normalized_expected) and normalized_expected in normalized

    hits = sum(1 for term in terms if term in normalized)
    return hits >= required_matches(len(terms))
