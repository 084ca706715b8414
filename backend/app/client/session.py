import logging
from dataclasses import dataclass
from typing import Optional

from app.client.api import MarketplaceAPI
from app.client.events import ListenerHandle, Listeners
from app.client.prefs import Preferences
from app.errors import AuthenticationFailure, MarketplaceError, NetworkFailure
from app.models.auth import Account

logger = logging.getLogger(__name__)

TOKEN_KEY = "uniswap-session"


@dataclass(frozen=True)
class AuthSession:
    access_token: str
    user: Account


class SessionStore:
    """Process-wide session state.

    Established on start from the persisted token, changed only through
    ``sign_in``/``sign_out``, and announced to every ``on_change`` listener.
    """

    def __init__(self, api: MarketplaceAPI, prefs: Preferences):
        self.api = api
        self.prefs = prefs
        self.current: Optional[AuthSession] = None
        self.loading = True
        self._listeners = Listeners()

    @property
    def user_id(self) -> Optional[str]:
        return self.current.user.id if self.current else None

    def on_change(self, callback) -> ListenerHandle:
        return self._listeners.add(callback)

    async def initialize(self):
        token = self.prefs.get(TOKEN_KEY)
        try:
            if token:
                await self._activate(token)
        except AuthenticationFailure:
            logger.info("Stored session is no longer valid")
            self.prefs.remove(TOKEN_KEY)
        except NetworkFailure as e:
            logger.warning("Could not restore session: %s", e.message)
        finally:
            self.loading = False

    async def sign_in(self, email: str, password: str) -> AuthSession:
        token = await self.api.sign_in(email, password)
        return await self._activate(token)

    async def sign_up(self, email: str, password: str) -> Account:
        return await self.api.sign_up(email, password)

    async def sign_out(self):
        self.api.token = None
        self.prefs.remove(TOKEN_KEY)
        await self._set(None)

    async def _activate(self, token: str) -> AuthSession:
        self.api.token = token
        try:
            user = await self.api.me()
        except MarketplaceError:
            # the client keeps only the token of an established session
            self.api.token = self.current.access_token if self.current else None
            raise
        session = AuthSession(access_token=token, user=user)
        self.prefs.set(TOKEN_KEY, token)
        await self._set(session)
        return session

    async def _set(self, session: Optional[AuthSession]):
        self.current = session
        await self._listeners.emit(session)
