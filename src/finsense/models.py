"""Data models for the FinSense dashboard."""

import re
from datetime import date as date_type, datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

Sentiment = Literal["positive", "negative", "neutral"]
SENTIMENTS: tuple[str, ...] = ("positive", "negative", "neutral")

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class Article(BaseModel):
    """A news headline as supplied by the catalog source."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(..., min_length=1)
    title: str
    source: str
    date: str = Field(..., description="Calendar date, zero-padded YYYY-MM-DD.")

    @field_validator("date")
    @classmethod
    def _check_iso_date(cls, value: str) -> str:
        # Trend ordering compares these strings lexically.
        if not _ISO_DATE.match(value):
            raise ValueError(f"date must be YYYY-MM-DD, got {value!r}")
        date_type.fromisoformat(value)
        return value


class ScoredArticle(Article):
    """Article with the sentiment label and score assigned once at load time."""

    sentiment: Sentiment
    score: float = Field(..., ge=0.0, le=1.0)


class AnnotatedArticle(ScoredArticle):
    """View-only join of a scored article with the user's saved set."""

    is_saved: bool = Field(False, alias="isSaved")


class SavedRecord(BaseModel):
    """A saved article as held by the saved-state store."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(..., min_length=1, description="Equals the source article id.")
    title: str
    source: str
    date: str
    sentiment: Sentiment
    sentiment_score: float = Field(..., alias="sentimentScore")
    saved_at: Optional[datetime] = Field(
        None,
        alias="savedAt",
        description="Assigned by the store when the record is committed.",
    )

    @classmethod
    def from_article(cls, article: ScoredArticle) -> "SavedRecord":
        return cls(
            id=article.id,
            title=article.title,
            source=article.source,
            date=article.date,
            sentiment=article.sentiment,
            sentiment_score=article.score,
        )


class TrendPoint(BaseModel):
    """Average sentiment score for one calendar date."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    date: str
    avg_sentiment: float = Field(..., alias="avgSentiment")
