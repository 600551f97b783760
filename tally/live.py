"""Leaderboard that recomputes whenever the tables it reads change."""

import logging
import threading
from collections.abc import Callable

from tally.models import Leaderboard, Scope
from tally.store.base import BONUS_POINTS, PHASE_LOCKS, TEAMS, VOTES, CatalogStore
from tally.tabulate import Snapshot

logger = logging.getLogger(__name__)


class LiveLeaderboard:
    """Polling-by-invalidation view of the results.

    Any change to a watched table triggers a full re-pull and a synchronous
    recompute. Each refresh takes a generation number and its result is
    only published if no newer refresh started in the meantime, so a slow
    refresh never overwrites a fresher one.
    """

    WATCHED_TABLES = (VOTES, PHASE_LOCKS, BONUS_POINTS, TEAMS)

    def __init__(
        self,
        store: CatalogStore,
        scope: Scope = Scope(),
        on_update: Callable[[Leaderboard], None] | None = None,
    ):
        self.store = store
        self.scope = scope
        self.on_update = on_update
        self.snapshot: Snapshot | None = None
        self.leaderboard: Leaderboard | None = None
        self._generation = 0
        self._published = 0
        self._lock = threading.Lock()
        self._subscriptions = [store.subscribe(table, self._on_change) for table in self.WATCHED_TABLES]
        self.refresh()

    @property
    def generation(self) -> int:
        """Generation of the currently published leaderboard."""
        return self._published

    def _on_change(self, table: str) -> None:
        logger.debug("%s changed, refreshing leaderboard", table)
        self.refresh()

    def refresh(self) -> Leaderboard | None:
        """Recompute from a fresh snapshot.

        Returns:
            The new leaderboard, or None if a newer refresh superseded this one
        """
        with self._lock:
            self._generation += 1
            generation = self._generation

        snapshot = Snapshot.load(self.store)
        leaderboard = snapshot.leaderboard(self.scope)

        with self._lock:
            if generation != self._generation:
                logger.debug("Discarding superseded refresh %d", generation)
                return None
            self.snapshot = snapshot
            self.leaderboard = leaderboard
            self._published = generation

        if self.on_update is not None:
            self.on_update(leaderboard)
        return leaderboard

    def set_scope(self, scope: Scope) -> Leaderboard | None:
        self.scope = scope
        return self.refresh()

    def close(self) -> None:
        for subscription in self._subscriptions:
            subscription.unsubscribe()
        self._subscriptions = []

    def __enter__(self) -> "LiveLeaderboard":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
