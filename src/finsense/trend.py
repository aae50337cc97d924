"""Daily sentiment trend over the full annotated catalog."""

from collections import defaultdict
from typing import Dict, Iterable, List

from .models import ScoredArticle, TrendPoint
from .rounding import round_half_up


def aggregate_trend(articles: Iterable[ScoredArticle]) -> List[TrendPoint]:
    """Average scores per date, oldest first.

    Dates are grouped by exact string match and sorted lexically, which is
    chronological for the zero-padded YYYY-MM-DD dates Article enforces.
    """
    totals: Dict[str, float] = defaultdict(float)
    counts: Dict[str, int] = defaultdict(int)
    for article in articles:
        totals[article.date] += article.score
        counts[article.date] += 1

    return [
        TrendPoint(
            date=day, avg_sentiment=round_half_up(totals[day] / counts[day], 2)
        )
        for day in sorted(totals)
    ]
