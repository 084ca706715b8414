import logging
from typing import Callable, List, Optional

from app.client.api import MarketplaceAPI
from app.client.changes import subscribe_to_changes
from app.client.events import Listeners
from app.client.feed import ListingFeed
from app.client.form import EditListingForm, ListingForm
from app.client.prefs import Preferences
from app.client.session import AuthSession, SessionStore
from app.errors import MarketplaceError
from app.models.listing import ListingRead
from app.utils.categories import ALL_CATEGORIES
from app.utils.messaging import whatsapp_link
from app.utils.placeholder import has_real_image, placeholder_gradient

logger = logging.getLogger(__name__)

VIEWS = ("marketplace", "profile", "settings")


class MarketplaceApp:
    """Top-level owner of session, theme, feed and open forms.

    Child objects get what they need passed in; nothing else holds global
    state. Every failure except a feed refresh ends up in ``notices``.
    """

    def __init__(
        self,
        api: MarketplaceAPI,
        prefs: Optional[Preferences] = None,
        change_source: Callable = subscribe_to_changes,
    ):
        self.api = api
        self.prefs = prefs or Preferences()
        self.session = SessionStore(api, self.prefs)
        self.feed = ListingFeed(api)
        self.change_source = change_source

        self.notices: List[str] = []
        self._notice_listeners = Listeners()
        self._session_handle = None
        self._changes = None

        self.view = "marketplace"
        self.selected_category = ALL_CATEGORIES
        self.search_query = ""
        self.sell_form: Optional[ListingForm] = None
        self.edit_form: Optional[EditListingForm] = None
        self._form_state = ListingForm()

    async def start(self):
        self.prefs.load()
        self._session_handle = self.session.on_change(self._on_session_change)
        await self.session.initialize()

    async def stop(self):
        await self._stop_changes()
        if self._session_handle is not None:
            self._session_handle.cancel()
            self._session_handle = None
        await self.api.aclose()

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, *exc_info):
        await self.stop()

    # notices
    def on_notice(self, callback):
        return self._notice_listeners.add(callback)

    async def notify(self, message: str):
        self.notices.append(message)
        await self._notice_listeners.emit(message)

    # session
    @property
    def user_id(self) -> Optional[str]:
        return self.session.user_id

    async def _on_session_change(self, session: Optional[AuthSession]):
        await self._stop_changes()
        if session is None:
            self.feed.clear()
            self.sell_form = None
            self.edit_form = None
            return
        await self.feed.refresh()
        self._changes = self.change_source(self.api.changes_url(), self.feed.refresh, token=session.access_token)

    async def _stop_changes(self):
        if self._changes is not None:
            await self._changes.cancel()
            self._changes = None

    async def sign_in(self, email: str, password: str) -> bool:
        if not email or not password:
            return False
        try:
            await self.session.sign_in(email, password)
        except MarketplaceError as e:
            await self.notify(e.message)
            return False
        return True

    async def sign_up(self, email: str, password: str) -> bool:
        if not email or not password:
            return False
        try:
            await self.session.sign_up(email, password)
        except MarketplaceError as e:
            await self.notify(e.message)
            return False
        await self.notify("Account created. Sign in to continue.")
        return True

    async def sign_out(self):
        await self.session.sign_out()
        self.view = "marketplace"

    # theme
    @property
    def theme(self) -> str:
        return self.prefs.theme

    def toggle_theme(self) -> str:
        self.prefs.theme = "day" if self.prefs.theme == "night" else "night"
        return self.prefs.theme

    # browsing
    def show(self, view: str):
        if view not in VIEWS:
            raise ValueError(f"Unknown view: {view}")
        self.view = view

    def visible_listings(self) -> List[ListingRead]:
        return self.feed.featured(self.selected_category, self.search_query)

    def search_suggestions(self) -> List[ListingRead]:
        return self.feed.suggestions(self.search_query)

    def can_edit(self, listing: ListingRead) -> bool:
        return self.user_id is not None and listing.owner_id == self.user_id

    def contact_link(self, listing: ListingRead) -> str:
        return whatsapp_link(listing.seller_phone, listing.title, listing.price)

    def placeholder(self, listing: ListingRead) -> Optional[str]:
        if has_real_image(listing.image_url):
            return None
        return placeholder_gradient(listing.title, listing.category, listing.id)

    # selling
    def open_sell_form(self) -> ListingForm:
        # closing the modal keeps what was typed until a successful submit
        self.sell_form = self._form_state
        return self.sell_form

    def close_sell_form(self):
        self.sell_form = None

    async def submit_sell_form(self) -> bool:
        if self.sell_form is None or self.user_id is None:
            return False
        try:
            await self.sell_form.submit(self.api, owner_id=self.user_id)
        except MarketplaceError as e:
            logger.warning("Creating listing failed: %s", e.message)
            await self.notify(e.message)
            return False
        self.close_sell_form()
        await self.feed.refresh()
        return True

    # editing
    def open_edit_form(self, listing: ListingRead) -> EditListingForm:
        self.edit_form = EditListingForm(listing)
        return self.edit_form

    def close_edit_form(self):
        self.edit_form = None

    async def save_edit_form(self) -> bool:
        if self.edit_form is None:
            return False
        try:
            await self.edit_form.save(self.api)
        except MarketplaceError as e:
            logger.warning("Updating listing %s failed: %s", self.edit_form.listing.id, e.message)
            await self.notify(e.message)
            return False
        self.close_edit_form()
        await self.feed.refresh()
        return True
