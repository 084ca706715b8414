import httpx
import pytest

from app.client.api import MarketplaceAPI
from app.client.controller import MarketplaceApp
from app.client.feed import ListingFeed
from app.client.prefs import Preferences
from app.client.session import TOKEN_KEY, SessionStore
from app.errors import AuthorizationFailure, NetworkFailure
from app.main import app as service


class FakeSubscription:
    def __init__(self, url, on_change, token):
        self.url = url
        self.token = token
        self.on_change = on_change
        self.cancelled = False

    async def fire(self):
        await self.on_change()

    async def cancel(self):
        self.cancelled = True


class FakeChanges:
    def __init__(self):
        self.subscriptions = []

    def __call__(self, url, on_change, token=None):
        subscription = FakeSubscription(url, on_change, token)
        self.subscriptions.append(subscription)
        return subscription


def make_api():
    return MarketplaceAPI("http://test", transport=httpx.ASGITransport(app=service))


@pytest.fixture
def prefs_path(tmp_path):
    return tmp_path / "prefs" / "preferences.json"


@pytest.fixture
async def marketplace(engine, object_store, prefs_path):
    changes = FakeChanges()
    app = MarketplaceApp(make_api(), Preferences(prefs_path), change_source=changes)
    app.changes = changes
    await app.start()
    yield app
    await app.stop()


async def sign_up_and_in(app, email):
    assert await app.sign_up(email, "secret123")
    assert await app.sign_in(email, "secret123")


def fill(form, title="Casio FX-991EX"):
    form.title = title
    form.description = "Works perfectly"
    form.category = "Electronics"
    form.price = "1200"
    form.seller_name = "Alice"
    form.seller_phone = "98765 43210"


@pytest.mark.asyncio
async def test_starts_signed_out(marketplace):
    assert marketplace.session.current is None
    assert marketplace.session.loading is False
    assert marketplace.feed.items == ()
    assert marketplace.changes.subscriptions == []


@pytest.mark.asyncio
async def test_sign_in_loads_feed_and_subscribes(marketplace):
    await sign_up_and_in(marketplace, "alice@campus.edu")

    assert marketplace.user_id is not None
    assert marketplace.notices == ["Account created. Sign in to continue."]
    [subscription] = marketplace.changes.subscriptions
    assert subscription.url == "ws://test/realtime/products"
    assert subscription.token == marketplace.session.current.access_token


@pytest.mark.asyncio
async def test_bad_credentials_become_a_notice(marketplace):
    assert await marketplace.sign_in("nobody@campus.edu", "secret123") is False
    assert marketplace.notices == ["Invalid login credentials"]
    assert marketplace.session.current is None


@pytest.mark.asyncio
async def test_empty_credentials_are_ignored(marketplace):
    assert await marketplace.sign_in("", "secret123") is False
    assert marketplace.notices == []


@pytest.mark.asyncio
async def test_sell_flow(marketplace):
    await sign_up_and_in(marketplace, "alice@campus.edu")

    form = marketplace.open_sell_form()
    fill(form)
    form.set_image_file("calc.png", b"png", "image/png")
    assert form.next_step() and form.next_step()

    assert await marketplace.submit_sell_form() is True
    assert marketplace.sell_form is None

    [listing] = marketplace.feed.items
    assert listing.owner_id == marketplace.user_id
    assert listing.seller_phone == "+919876543210"
    assert listing.image_url.startswith("http://test/media/product-images/")
    assert marketplace.can_edit(listing)
    assert marketplace.placeholder(listing) is None

    # the form was reset for the next listing
    assert marketplace.open_sell_form().title == ""


@pytest.mark.asyncio
async def test_listing_without_image_gets_placeholder(marketplace):
    await sign_up_and_in(marketplace, "alice@campus.edu")
    fill(marketplace.open_sell_form())
    await marketplace.submit_sell_form()

    [listing] = marketplace.feed.items
    gradient = marketplace.placeholder(listing)
    assert gradient.startswith("linear-gradient(145deg")
    assert marketplace.placeholder(listing) == gradient


@pytest.mark.asyncio
async def test_closed_sell_form_keeps_its_state(marketplace):
    await sign_up_and_in(marketplace, "alice@campus.edu")
    fill(marketplace.open_sell_form(), title="Half typed")
    marketplace.close_sell_form()
    assert marketplace.open_sell_form().title == "Half typed"


@pytest.mark.asyncio
async def test_editing_someone_elses_listing_is_refused(marketplace, engine):
    await sign_up_and_in(marketplace, "alice@campus.edu")
    fill(marketplace.open_sell_form())
    await marketplace.submit_sell_form()
    [listing] = marketplace.feed.items

    await marketplace.sign_out()
    await sign_up_and_in(marketplace, "bob@campus.edu")
    [listing] = marketplace.feed.items
    assert not marketplace.can_edit(listing)

    form = marketplace.open_edit_form(listing)
    form.price = "1"
    assert await marketplace.save_edit_form() is False
    assert marketplace.edit_form is form
    assert "row-level security" in marketplace.notices[-1]
    assert marketplace.feed.items[0].price == 1200


@pytest.mark.asyncio
async def test_saving_an_unchanged_foreign_listing_is_refused(marketplace):
    await sign_up_and_in(marketplace, "alice@campus.edu")
    fill(marketplace.open_sell_form())
    await marketplace.submit_sell_form()

    await marketplace.sign_out()
    await sign_up_and_in(marketplace, "bob@campus.edu")
    marketplace.open_edit_form(marketplace.feed.items[0])
    assert await marketplace.save_edit_form() is False
    assert "row-level security" in marketplace.notices[-1]


@pytest.mark.asyncio
async def test_owner_edits_listing(marketplace):
    await sign_up_and_in(marketplace, "alice@campus.edu")
    fill(marketplace.open_sell_form())
    await marketplace.submit_sell_form()

    form = marketplace.open_edit_form(marketplace.feed.items[0])
    form.title = "Casio FX-991EX (with cover)"
    assert await marketplace.save_edit_form() is True
    assert marketplace.edit_form is None
    assert marketplace.feed.items[0].title == "Casio FX-991EX (with cover)"


@pytest.mark.asyncio
async def test_change_notification_refetches(marketplace, make_account, client, listing_payload):
    await sign_up_and_in(marketplace, "alice@campus.edu")
    assert marketplace.feed.items == ()

    bob = await make_account("bob@campus.edu")
    await client.post("/listing/create", json=listing_payload(bob["id"]), headers=bob["headers"])

    await marketplace.changes.subscriptions[-1].fire()
    assert [l.owner_id for l in marketplace.feed.items] == [bob["id"]]


@pytest.mark.asyncio
async def test_sign_out_tears_down(marketplace, prefs_path):
    await sign_up_and_in(marketplace, "alice@campus.edu")
    fill(marketplace.open_sell_form())
    await marketplace.submit_sell_form()
    subscription = marketplace.changes.subscriptions[-1]

    await marketplace.sign_out()

    assert subscription.cancelled
    assert marketplace.session.current is None
    assert marketplace.feed.items == ()
    assert marketplace.prefs.get(TOKEN_KEY) is None


@pytest.mark.asyncio
async def test_session_is_restored_on_start(engine, object_store, prefs_path):
    first = MarketplaceApp(make_api(), Preferences(prefs_path), change_source=FakeChanges())
    await first.start()
    await sign_up_and_in(first, "alice@campus.edu")
    user_id = first.user_id
    await first.stop()

    second = MarketplaceApp(make_api(), Preferences(prefs_path), change_source=FakeChanges())
    async with second:
        assert second.user_id == user_id


@pytest.mark.asyncio
async def test_stale_token_is_dropped_on_start(engine, object_store, prefs_path):
    prefs = Preferences(prefs_path)
    prefs.set(TOKEN_KEY, "expired-token")

    async with MarketplaceApp(make_api(), Preferences(prefs_path), change_source=FakeChanges()) as app:
        assert app.session.current is None
        assert app.prefs.get(TOKEN_KEY) is None


@pytest.mark.asyncio
async def test_theme_is_persisted(engine, prefs_path):
    async with MarketplaceApp(make_api(), Preferences(prefs_path), change_source=FakeChanges()) as app:
        assert app.theme == "night"
        assert app.toggle_theme() == "day"

    async with MarketplaceApp(make_api(), Preferences(prefs_path), change_source=FakeChanges()) as app:
        assert app.theme == "day"


@pytest.mark.asyncio
async def test_contact_link():
    app = MarketplaceApp(make_api(), change_source=FakeChanges())
    await app.api.aclose()

    class Item:
        title = "Casio FX-991EX"
        price = 1200.0
        seller_phone = "+91 98765-43210"

    assert app.contact_link(Item()) == (
        "https://wa.me/919876543210?text="
        "Hi!%20I'm%20interested%20in%20your%20Casio%20FX-991EX%20listed%20on%20UniSwap%20for%20%E2%82%B91200"
    )


@pytest.mark.asyncio
async def test_network_failure_is_reported():
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    api = MarketplaceAPI("http://test", transport=httpx.MockTransport(refuse))
    with pytest.raises(NetworkFailure, match="Could not reach the marketplace"):
        await api.list_listings()
    await api.aclose()


@pytest.mark.asyncio
async def test_policy_rejection_maps_to_authorization_failure(client, alice, bob, listing_payload):
    api = make_api()
    api.token = alice["token"]
    with pytest.raises(AuthorizationFailure):
        await api.create_listing(listing_payload(bob["id"]))
    await api.aclose()


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [
        {"text": "<html>gateway</html>"},
        {"json": {"unexpected": "shape"}},
        {"json": [{"id": "1"}]},
    ],
)
async def test_malformed_responses_become_network_failures(body):
    api = MarketplaceAPI("http://test", transport=httpx.MockTransport(lambda request: httpx.Response(200, **body)))
    with pytest.raises(NetworkFailure, match="Unexpected response"):
        await api.list_listings()

    feed = ListingFeed(api)
    assert await feed.refresh() is False
    assert feed.items == ()
    assert feed.last_error.startswith("Unexpected response")
    await api.aclose()


@pytest.mark.asyncio
async def test_token_is_dropped_when_the_account_cannot_be_loaded(prefs_path):
    def service_down_after_login(request):
        if request.url.path == "/auth/login":
            return httpx.Response(200, json={"access_token": "fresh", "token_type": "bearer"})
        return httpx.Response(200, text="maintenance")

    api = MarketplaceAPI("http://test", transport=httpx.MockTransport(service_down_after_login))
    session = SessionStore(api, Preferences(prefs_path))
    with pytest.raises(NetworkFailure):
        await session.sign_in("alice@campus.edu", "secret123")

    assert api.token is None
    assert session.current is None
    assert session.prefs.get(TOKEN_KEY) is None
    await api.aclose()
