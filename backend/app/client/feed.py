import logging
from typing import List, Optional, Tuple

from app.client.api import MarketplaceAPI
from app.errors import MarketplaceError
from app.models.listing import ListingRead
from app.utils.categories import ALL_CATEGORIES

logger = logging.getLogger(__name__)

SUGGESTION_LIMIT = 6


def _matches(listing: ListingRead, query: str) -> bool:
    return (
        query in listing.title.lower()
        or query in listing.description.lower()
        or query in listing.category.lower()
    )


class ListingFeed:
    """Newest-first listings, always replaced by a full refetch.

    ``items`` is an immutable tuple swapped in one assignment, so readers see
    either the old list or the new one, never a mix.
    """

    def __init__(self, api: MarketplaceAPI):
        self.api = api
        self._items: Tuple[ListingRead, ...] = ()
        self.loading = False
        self.last_error: Optional[str] = None

    @property
    def items(self) -> Tuple[ListingRead, ...]:
        return self._items

    async def refresh(self) -> bool:
        self.loading = True
        try:
            listings = await self.api.list_listings()
        except MarketplaceError as e:
            self.last_error = e.message
            logger.warning("Feed refresh failed, keeping %d listings: %s", len(self._items), e.message)
            return False
        finally:
            self.loading = False
        self._items = tuple(listings)
        self.last_error = None
        return True

    def clear(self):
        self._items = ()

    def filtered(self, category: str = ALL_CATEGORIES, query: str = "") -> List[ListingRead]:
        listings = list(self._items)
        if category != ALL_CATEGORIES:
            listings = [l for l in listings if l.category == category]
        if query:
            normalized = query.lower()
            listings = [l for l in listings if _matches(l, normalized)]
        return listings

    def featured(self, category: str = ALL_CATEGORIES, query: str = "") -> List[ListingRead]:
        # an empty filter result falls back to everything
        return self.filtered(category, query) or list(self._items)

    def suggestions(self, query: str, limit: int = SUGGESTION_LIMIT) -> List[ListingRead]:
        normalized = query.strip().lower()
        if not normalized:
            return []
        return [l for l in self._items if _matches(l, normalized)][:limit]
