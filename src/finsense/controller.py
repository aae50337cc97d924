"""Save/remove actions against the saved-article store, reported on a status board."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional

from .models import SavedRecord, ScoredArticle
from .store import SavedStateStore

logger = logging.getLogger(__name__)


class StatusState(str, Enum):
    IDLE = "idle"
    IN_FLIGHT = "in-flight"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class Status:
    state: StatusState = StatusState.IDLE
    message: str = ""
    action: str | None = None
    article_id: str | None = None

    @property
    def is_error(self) -> bool:
        return self.state is StatusState.FAILED


@dataclass(frozen=True)
class Outcome:
    action: str
    article_id: str
    state: StatusState
    detail: str | None = None

    @property
    def ok(self) -> bool:
        return self.state is StatusState.SUCCEEDED


class StatusBoard:
    """Single status surface shared by every save/remove; the latest write wins."""

    def __init__(self) -> None:
        self.current = Status()
        self._watchers: List[Callable[[Status], None]] = []

    def watch(self, callback: Callable[[Status], None]) -> None:
        self._watchers.append(callback)

    def set(self, status: Status) -> None:
        self.current = status
        for callback in list(self._watchers):
            callback(status)


class SaveController:
    """
    Issues upserts and deletes for one identity.

    Without a store or a user id the controller is not ready and every action
    returns None without touching the status board. Store failures are logged,
    shown on the board, and returned as a failed Outcome; they are never raised
    or retried.
    """

    def __init__(
        self,
        store: Optional[SavedStateStore],
        user_id: Optional[str],
        status: Optional[StatusBoard] = None,
    ):
        self.store = store
        self.user_id = user_id
        self.status = status or StatusBoard()

    @property
    def ready(self) -> bool:
        return self.store is not None and bool(self.user_id)

    async def save(self, article: ScoredArticle) -> Optional[Outcome]:
        if not self.ready:
            logger.debug("Skipping save of %s: store or identity not ready", article.id)
            return None

        self.status.set(
            Status(StatusState.IN_FLIGHT, f'Saving "{article.title}"...', "save", article.id)
        )
        try:
            await self.store.upsert(self.user_id, SavedRecord.from_article(article))
        except Exception as exc:
            logger.exception("Error saving article %s", article.id)
            return self._finish("save", article.id, f"Error saving article: {exc}", exc)
        return self._finish("save", article.id, "Article saved successfully!")

    async def remove(self, article_id: str) -> Optional[Outcome]:
        if not self.ready:
            logger.debug("Skipping removal of %s: store or identity not ready", article_id)
            return None

        self.status.set(
            Status(
                StatusState.IN_FLIGHT,
                f"Removing article ID {article_id}...",
                "remove",
                article_id,
            )
        )
        try:
            await self.store.delete(self.user_id, article_id)
        except Exception as exc:
            logger.exception("Error removing article %s", article_id)
            return self._finish("remove", article_id, f"Error removing article: {exc}", exc)
        return self._finish("remove", article_id, "Article removed successfully!")

    def submit_save(self, article: ScoredArticle) -> "asyncio.Task[Optional[Outcome]]":
        """Schedule `save` on the running loop and return without waiting."""
        return asyncio.get_running_loop().create_task(self.save(article))

    def submit_remove(self, article_id: str) -> "asyncio.Task[Optional[Outcome]]":
        """Schedule `remove` on the running loop and return without waiting."""
        return asyncio.get_running_loop().create_task(self.remove(article_id))

    def _finish(
        self,
        action: str,
        article_id: str,
        message: str,
        error: Exception | None = None,
    ) -> Outcome:
        state = StatusState.FAILED if error else StatusState.SUCCEEDED
        self.status.set(Status(state, message, action, article_id))
        return Outcome(action, article_id, state, str(error) if error else None)
