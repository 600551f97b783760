"""Abstract base class for catalog stores."""

import logging
import threading
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any, Self

logger = logging.getLogger(__name__)

TEAMS = "teams"
VOTERS = "voters"
VOTES = "votes"
CRITERIA = "criteria"
PHASE_LOCKS = "phase_locks"
BONUS_POINTS = "bonus_points"

TABLES = (TEAMS, VOTERS, VOTES, CRITERIA, PHASE_LOCKS, BONUS_POINTS)

# Natural keys for upserts into catalog tables. Ballots depend on the
# competition variant, see Competition.conflict_keys. Lock rows key on the
# unit label since whole-phase units have a NULL criterion.
CATALOG_CONFLICT_KEYS = {
    TEAMS: ("id",),
    VOTERS: ("voter_id",),
    CRITERIA: ("id",),
    PHASE_LOCKS: ("unit",),
}

Row = dict[str, Any]
# (column, descending) pairs, applied left to right
Order = list[tuple[str, bool]]
ChangeCallback = Callable[[str], None]


class Subscription:
    """Handle returned by ``CatalogStore.subscribe``."""

    def __init__(self, store: "CatalogStore", table: str, callback: ChangeCallback):
        self.store = store
        self.table = table
        self.callback = callback
        self.active = True

    def unsubscribe(self) -> None:
        if self.active:
            self.store._remove_listener(self)
            self.active = False


class CatalogStore(ABC):
    """Abstract base class for the table store the core reads and writes.

    Each implementation handles one kind of backend, chosen by URL. Stores
    are registered via the @register_store decorator in tally/store/__init__.py.

    Change notification is polling-by-invalidation: a subscriber only learns
    that a table changed and must re-fetch what it needs.
    """

    def __init__(self) -> None:
        self._listeners: dict[str, list[Subscription]] = {}
        self._listener_lock = threading.Lock()

    @classmethod
    def can_open(cls, url: str) -> bool:
        """Check if this store class handles the given store URL."""
        return False

    @classmethod
    @abstractmethod
    def from_url(cls, url: str, **options: Any) -> Self:
        """Create a store for the given URL."""
        pass

    @abstractmethod
    def get(self, table: str, filters: Row | None = None, order: Order | None = None) -> list[Row]:
        """Fetch rows matching every filter.

        Args:
            table: Table name
            filters: Column -> value equality filters. A list value matches
                any of its members; None matches a missing value.
            order: (column, descending) pairs

        Returns:
            Copies of the matching rows
        """
        pass

    @abstractmethod
    def upsert(self, table: str, row: Row, conflict_keys: tuple[str, ...]) -> Row:
        """Insert ``row``, or overwrite the row that matches it on ``conflict_keys``."""
        pass

    @abstractmethod
    def insert(self, table: str, row: Row) -> Row:
        """Insert a new row, assigning an integer ``id`` where the row has none."""
        pass

    @abstractmethod
    def delete(self, table: str, filters: Row) -> int:
        """Delete rows matching every filter and return how many went."""
        pass

    def get_one(self, table: str, filters: Row) -> Row | None:
        rows = self.get(table, filters)
        return rows[0] if rows else None

    def subscribe(self, table: str, on_change: ChangeCallback) -> Subscription:
        """Call ``on_change(table)`` after every mutation of ``table``."""
        subscription = Subscription(self, table, on_change)
        with self._listener_lock:
            self._listeners.setdefault(table, []).append(subscription)
        return subscription

    def _remove_listener(self, subscription: Subscription) -> None:
        with self._listener_lock:
            listeners = self._listeners.get(subscription.table, [])
            if subscription in listeners:
                listeners.remove(subscription)

    def _notify(self, table: str) -> None:
        with self._listener_lock:
            listeners = list(self._listeners.get(table, []))
        for subscription in listeners:
            try:
                subscription.callback(table)
            except Exception:
                # The write already happened; one failing reader must not undo it
                logger.exception("Change listener for %s failed", table)
