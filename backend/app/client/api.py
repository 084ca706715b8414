from __future__ import annotations

import logging
from typing import Any, List, Optional, Type

import httpx
from pydantic import TypeAdapter, ValidationError

from app.errors import (
    AuthenticationFailure,
    AuthorizationFailure,
    MarketplaceError,
    NetworkFailure,
    UploadFailure,
    ValidationFailure,
)
from app.models.auth import Account, Token
from app.models.listing import ListingRead
from app.models.upload import UploadedImage

logger = logging.getLogger(__name__)

_ERRORS_BY_STATUS = {
    401: AuthenticationFailure,
    403: AuthorizationFailure,
    422: ValidationFailure,
    502: UploadFailure,
}

_LISTINGS = TypeAdapter(List[ListingRead])


def _detail_message(resp: httpx.Response) -> str:
    try:
        detail = resp.json().get("detail")
    except (ValueError, AttributeError):
        detail = None
    if isinstance(detail, list):
        # FastAPI validation errors
        return "; ".join(str(item.get("msg", item)) for item in detail if item)
    if detail:
        return str(detail)
    return f"HTTP {resp.status_code}"


def _unexpected(what: str, error: Exception) -> NetworkFailure:
    logger.warning("Malformed %s from the marketplace: %s", what, error)
    return NetworkFailure(f"Unexpected response from the marketplace ({what})")


def _parse(model, data: Any, what: str):
    adapter = model if isinstance(model, TypeAdapter) else TypeAdapter(model)
    try:
        return adapter.validate_python(data)
    except ValidationError as e:
        raise _unexpected(what, e)


class MarketplaceAPI:
    """
    Async client for the marketplace service.

    - One AsyncClient instance for the lifetime of the application.
    - Bearer token is attached when ``token`` is set.
    - Failures, including malformed responses, are raised as the shared
      ``app.errors`` classes.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout_seconds: float = 20.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token: Optional[str] = None
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout_seconds),
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    def changes_url(self) -> str:
        # the token travels in the handshake's Authorization header, never in the URL
        ws_base = "ws" + self.base_url[len("http"):] if self.base_url.startswith("http") else self.base_url
        return f"{ws_base}/realtime/products"

    async def _request(
        self,
        method: str,
        path: str,
        *,
        fallback: Type[MarketplaceError] = MarketplaceError,
        **kwargs: Any,
    ) -> Any:
        headers = dict(kwargs.pop("headers", None) or {})
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        try:
            resp = await self._client.request(method, path, headers=headers, **kwargs)
        except httpx.RequestError as e:
            logger.warning("%s %s did not complete: %s", method, path, e)
            raise NetworkFailure(f"Could not reach the marketplace: {e}")

        if 200 <= resp.status_code < 300:
            try:
                return resp.json()
            except ValueError as e:
                raise _unexpected(f"{method} {path}", e)

        message = _detail_message(resp)
        error_cls = _ERRORS_BY_STATUS.get(resp.status_code, fallback)
        raise error_cls(message)

    # auth
    async def sign_up(self, email: str, password: str) -> Account:
        data = await self._request(
            "POST", "/auth/signup", json={"email": email, "password": password}, fallback=AuthenticationFailure
        )
        return _parse(Account, data, "account")

    async def sign_in(self, email: str, password: str) -> str:
        data = await self._request(
            "POST", "/auth/login", data={"username": email, "password": password}, fallback=AuthenticationFailure
        )
        return _parse(Token, data, "token").access_token

    async def me(self) -> Account:
        data = await self._request("GET", "/auth/me", fallback=AuthenticationFailure)
        return _parse(Account, data, "account")

    # listings
    async def list_listings(self, q: Optional[str] = None, category: Optional[str] = None) -> List[ListingRead]:
        params = {}
        if q:
            params["q"] = q
        if category:
            params["category"] = category
        data = await self._request("GET", "/listing/", params=params)
        return _parse(_LISTINGS, data, "listings")

    async def my_listings(self) -> List[ListingRead]:
        return _parse(_LISTINGS, await self._request("GET", "/listing/my"), "listings")

    async def create_listing(self, record: dict) -> ListingRead:
        return _parse(ListingRead, await self._request("POST", "/listing/create", json=record), "listing")

    async def update_listing(self, listing_id: str, changes: dict) -> ListingRead:
        data = await self._request("PUT", f"/listing/{listing_id}", json=changes)
        return _parse(ListingRead, data, "listing")

    # storage
    async def upload_image(self, filename: str, content: bytes, content_type: str) -> str:
        data = await self._request(
            "POST",
            "/upload/",
            files={"file": (filename, content, content_type)},
            fallback=UploadFailure,
        )
        return _parse(UploadedImage, data, "upload").url
