"""Keyword heuristic that labels and scores financial headlines.

Scores run from 0.0 (most negative) to 1.0 (most positive). Single-signal
headlines draw a score from their label's half of the range and are clamped to
[0.1, 0.9]. Headlines matching both keyword sets are labelled neutral with a
score jittered around 0.5; that branch is not clamped.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Protocol

from .rounding import round_half_up

POSITIVE_KEYWORDS: tuple[str, ...] = (
    "record high",
    "strong",
    "breakthrough",
    "promises",
    "green",
    "raised",
    "boosting",
    "demand strength",
)
NEGATIVE_KEYWORDS: tuple[str, ...] = (
    "concerns rise",
    "under pressure",
    "woes",
    "layoffs",
    "massive",
    "fall sharply",
    "unexpected",
)
NEUTRAL_SCORE = 0.5


class RandomSource(Protocol):
    def random(self) -> float: ...


@dataclass(frozen=True)
class SentimentResult:
    sentiment: str
    score: float


def _matches(text: str, keywords: tuple[str, ...]) -> bool:
    return any(keyword in text for keyword in keywords)


def score_headline(headline: str, rng: RandomSource | None = None) -> SentimentResult:
    """
    Label a headline and draw its score.

    Keyword matching is plain substring containment on the lower-cased text, so
    "strong" also matches "stronger". `rng` only needs a `random()` method; pass
    a seeded `random.Random` (or a stub) for reproducible scores.
    """
    draw = (rng or random).random
    text = headline.lower()
    is_positive = _matches(text, POSITIVE_KEYWORDS)
    is_negative = _matches(text, NEGATIVE_KEYWORDS)

    sentiment = "neutral"
    score = NEUTRAL_SCORE
    if is_positive and not is_negative:
        sentiment = "positive"
        score = min(0.9, NEUTRAL_SCORE + draw() * 0.4)
    elif is_negative and not is_positive:
        sentiment = "negative"
        score = max(0.1, NEUTRAL_SCORE - draw() * 0.4)
    elif is_positive and is_negative:
        # Mixed signal: neutral label, jittered score.
        score = NEUTRAL_SCORE + (draw() - 0.5) * 0.1

    return SentimentResult(sentiment=sentiment, score=round_half_up(score, 3))
