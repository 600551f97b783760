"""Catalog stores for the various storage backends."""

from tally.errors import InvalidInput

from .base import CatalogStore

# Store registry - import stores here to register them
_stores: list[type[CatalogStore]] = []


def register_store(store_class: type[CatalogStore]) -> type[CatalogStore]:
    """Decorator to register a store class."""
    _stores.append(store_class)
    return store_class


def get_all_stores() -> list[type[CatalogStore]]:
    """Return all registered store classes."""
    return _stores.copy()


def detect_store(url: str) -> type[CatalogStore] | None:
    """Return the registered store class that handles the given URL."""
    for store_class in _stores:
        if store_class.can_open(url):
            return store_class
    return None


def get_supported_store_urls() -> str:
    """Return a user-friendly description of supported store URLs."""
    lines = ["Supported catalog store URLs:"]
    for store_class in _stores:
        example = getattr(store_class, "EXAMPLE_URL", None)
        if example:
            lines.append(f"  - {example}")
    return "\n".join(lines)


def open_store(url: str, **options) -> CatalogStore:
    """Open a store for ``url``, e.g. ``memory://`` or a Supabase project URL."""
    store_class = detect_store(url)
    if store_class is None:
        raise InvalidInput(f"No catalog store handles {url!r}.\n{get_supported_store_urls()}")
    return store_class.from_url(url, **options)
