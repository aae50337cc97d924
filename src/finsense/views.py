"""Pure view functions: saved-state join and sentiment/search filtering."""

from __future__ import annotations

from typing import AbstractSet, Iterable, List, Sequence

from .models import SENTIMENTS, AnnotatedArticle, ScoredArticle

ALL_SENTIMENTS = "all"


def project(
    catalog: Sequence[ScoredArticle], saved_ids: AbstractSet[str]
) -> List[AnnotatedArticle]:
    """Flag each catalog entry as saved or not; never adds, drops, or reorders."""
    return [
        AnnotatedArticle(
            **article.model_dump(exclude={"is_saved"}),
            is_saved=article.id in saved_ids,
        )
        for article in catalog
    ]


def filter_articles(
    articles: Iterable[AnnotatedArticle],
    sentiment: str = ALL_SENTIMENTS,
    search: str = "",
) -> List[AnnotatedArticle]:
    """
    Narrow the annotated list by sentiment label, then by search term.

    `sentiment` is "all" or one of positive/negative/neutral. A non-empty
    `search` keeps articles whose title or source contains it, ignoring case.
    Input order is preserved.
    """
    if sentiment != ALL_SENTIMENTS and sentiment not in SENTIMENTS:
        raise ValueError(
            f"sentiment must be 'all' or one of {', '.join(SENTIMENTS)}; got {sentiment!r}"
        )

    result = list(articles)
    if sentiment != ALL_SENTIMENTS:
        result = [article for article in result if article.sentiment == sentiment]

    if search:
        needle = search.lower()
        result = [
            article
            for article in result
            if needle in article.title.lower() or needle in article.source.lower()
        ]
    return result
