"""
Similarity Scoring
------------------
Placeholder comparison between a biosimilar sample and its reference.

A production deployment substitutes a real similarity algorithm through the
`scorer` argument of VerificationRegistry; this one only checks byte equality.
"""
from typing import Callable

EXACT_MATCH_SCORE = 100
NEAR_MATCH_SCORE = 95

SimilarityScorer = Callable[[bytes, bytes], int]


def compute_similarity_score(biosimilar_hash: bytes, reference_hash: bytes) -> int:
    if bytes(biosimilar_hash) == bytes(reference_hash):
        return EXACT_MATCH_SCORE
    return NEAR_MATCH_SCORE
