"""Dashboard session: scored catalog, live saved set, and derived views."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from .controller import Outcome, SaveController, Status, StatusBoard
from .models import AnnotatedArticle, SavedRecord, ScoredArticle, TrendPoint
from .store import SavedStateStore, Snapshot, Subscription
from .trend import aggregate_trend
from .views import ALL_SENTIMENTS, filter_articles, project

logger = logging.getLogger(__name__)


@dataclass
class DashboardView:
    """Everything a presentation layer needs for one render."""

    loaded: bool
    user_id: Optional[str]
    articles: Optional[List[AnnotatedArticle]]
    trend: List[TrendPoint] = field(default_factory=list)
    saved: Sequence[SavedRecord] = ()
    status: Status = field(default_factory=Status)


class Dashboard:
    """
    Holds one identity's view of the catalog.

    The catalog is scored before it is handed in and never rescored. The saved
    set is replaced wholesale by each store snapshot; when the subscription
    fails the last snapshot is kept. Snapshots addressed to an identity that has
    since been closed or switched away from are dropped.
    """

    def __init__(
        self,
        store: Optional[SavedStateStore] = None,
        user_id: Optional[str] = None,
        catalog: Optional[Sequence[ScoredArticle]] = None,
    ):
        self.store = store
        self.user_id = user_id
        self.status = StatusBoard()
        self.controller = SaveController(store, user_id, self.status)
        self._catalog: Optional[List[ScoredArticle]] = (
            list(catalog) if catalog is not None else None
        )
        self._saved: Snapshot = ()
        self._subscription: Optional[Subscription] = None
        self._generation = 0

    # -- lifecycle ---------------------------------------------------------

    def __enter__(self) -> "Dashboard":
        self.start()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def loaded(self) -> bool:
        return self._catalog is not None

    @property
    def subscribed(self) -> bool:
        return self._subscription is not None and self._subscription.active

    def load(self, catalog: Sequence[ScoredArticle]) -> None:
        self._catalog = list(catalog)

    def start(self) -> None:
        """Subscribe to the saved set once both a store and an identity exist."""
        if self.store is None or not self.user_id or self.subscribed:
            return
        generation = self._generation

        def on_snapshot(snapshot: Snapshot) -> None:
            if generation != self._generation:
                logger.debug("Dropping snapshot for superseded session %s", self.user_id)
                return
            self._saved = tuple(snapshot)
            logger.debug("Fetched saved articles: %d", len(self._saved))

        def on_error(exc: Exception) -> None:
            if generation != self._generation:
                return
            logger.error("Error listening to saved articles: %s", exc)

        self._subscription = self.store.subscribe(self.user_id, on_snapshot, on_error)

    def close(self) -> None:
        """Tear down the subscription; later deliveries are ignored."""
        self._generation += 1
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    def switch_user(self, user_id: Optional[str]) -> None:
        """Move the session to another identity, starting from an empty saved set."""
        self.close()
        self.user_id = user_id
        self._saved = ()
        self.controller = SaveController(self.store, user_id, self.status)
        self.start()

    # -- derived views -----------------------------------------------------

    @property
    def catalog(self) -> List[ScoredArticle]:
        return list(self._catalog or [])

    def saved_articles(self) -> Snapshot:
        return self._saved

    def saved_ids(self) -> frozenset[str]:
        return frozenset(record.id for record in self._saved)

    def article(self, article_id: str) -> ScoredArticle:
        for article in self._catalog or []:
            if article.id == article_id:
                return article
        raise KeyError(article_id)

    def annotated(self) -> List[AnnotatedArticle]:
        return project(self._catalog or [], self.saved_ids())

    def view(self, sentiment: str = ALL_SENTIMENTS, search: str = "") -> DashboardView:
        if not self.loaded:
            return DashboardView(
                loaded=False,
                user_id=self.user_id,
                articles=None,
                saved=self._saved,
                status=self.status.current,
            )
        annotated = self.annotated()
        return DashboardView(
            loaded=True,
            user_id=self.user_id,
            articles=filter_articles(annotated, sentiment, search),
            # Trend always covers the whole catalog, not the filtered view.
            trend=aggregate_trend(annotated),
            saved=self._saved,
            status=self.status.current,
        )

    # -- actions -----------------------------------------------------------

    async def save(self, article_id: str) -> Optional[Outcome]:
        return await self.controller.save(self.article(article_id))

    async def remove(self, article_id: str) -> Optional[Outcome]:
        return await self.controller.remove(article_id)
