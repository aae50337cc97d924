"""Headline catalog: the sample feed, JSON loading, and one-time scoring."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Iterable, List, Optional

from pydantic import ValidationError

from .errors import CatalogError
from .models import Article, ScoredArticle
from .schema import validate_catalog_payload
from .sentiment import RandomSource, score_headline

logger = logging.getLogger(__name__)

SAMPLE_ARTICLES: tuple[Article, ...] = (
    Article(
        id="n1",
        title="Google Hits Record High on Strong Q3 Earnings.",
        source="Financial Times",
        date="2025-11-15",
    ),
    Article(
        id="n2",
        title="Inflation Concerns Rise as Fed Hints at Rate Increase.",
        source="Reuters",
        date="2025-11-15",
    ),
    Article(
        id="n3",
        title="Tech Stocks Under Pressure Amid Supply Chain Woes.",
        source="Bloomberg",
        date="2025-11-14",
    ),
    Article(
        id="n4",
        title="New Energy Breakthrough Promises Green Transition.",
        source="Science Daily",
        date="2025-11-14",
    ),
    Article(
        id="n5",
        title="Major Bank Announces Massive Layoffs.",
        source="Wall Street Journal",
        date="2025-11-13",
    ),
    Article(
        id="n6",
        title="Tesla price target raised by Morgan Stanley on demand strength.",
        source="Seeking Alpha",
        date="2025-11-15",
    ),
    Article(
        id="n7",
        title="Oil prices fall sharply due to unexpected inventory build.",
        source="CNBC",
        date="2025-11-14",
    ),
    Article(
        id="n8",
        title="Netflix signs massive deal with top showrunners, boosting content pipeline.",
        source="Variety",
        date="2025-11-13",
    ),
)


def load_articles(path: Path) -> List[Article]:
    """Read a JSON array of articles, validating shape, dates, and id uniqueness."""
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise CatalogError(f"Could not read catalog {path}: {exc}") from exc

    validate_catalog_payload(data)
    try:
        articles = [Article(**item) for item in data]
    except ValidationError as exc:
        raise CatalogError(f"Invalid article in {path}: {exc}") from exc
    return articles


def score_articles(
    articles: Iterable[Article], rng: Optional[RandomSource] = None
) -> List[ScoredArticle]:
    """Score each article exactly once, preserving input order."""
    scored: List[ScoredArticle] = []
    seen: set[str] = set()
    for article in articles:
        if article.id in seen:
            raise CatalogError(f"Duplicate article id: {article.id}")
        seen.add(article.id)
        result = score_headline(article.title, rng=rng)
        scored.append(
            ScoredArticle(
                **article.model_dump(),
                sentiment=result.sentiment,
                score=result.score,
            )
        )
    logger.debug("Scored %d articles", len(scored))
    return scored


def load_catalog(
    path: Optional[Path] = None, rng: Optional[RandomSource] = None
) -> List[ScoredArticle]:
    """Return the scored catalog from `path`, or the sample headlines when omitted."""
    articles = load_articles(path) if path else list(SAMPLE_ARTICLES)
    return score_articles(articles, rng=rng)
