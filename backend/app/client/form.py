"""Listing form state: the three-step sell wizard and the edit form."""
import logging
import math
from dataclasses import dataclass
from typing import Optional, Union

from app.client.api import MarketplaceAPI
from app.errors import ValidationFailure
from app.models.listing import Condition, ListingRead
from app.utils.categories import CATEGORIES, suggestion_for
from app.utils.messaging import format_price
from app.utils.phone import DEFAULT_COUNTRY_CODE, normalize_phone

logger = logging.getLogger(__name__)

STEP_DETAILS = 1
STEP_PRICE_IMAGE = 2
STEP_CONTACT = 3

REQUIRED_FIELDS = {
    STEP_DETAILS: ("title", "description", "category"),
    STEP_PRICE_IMAGE: ("price", "condition"),
    STEP_CONTACT: ("seller_name", "seller_phone"),
}


@dataclass(frozen=True)
class ImageUrl:
    url: str


@dataclass(frozen=True)
class ImageUpload:
    filename: str
    content: bytes
    content_type: str


ImageSource = Union[ImageUrl, ImageUpload]


def _parse_price(value: str) -> Optional[float]:
    try:
        price = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(price) or price < 0:
        return None
    return price


async def resolve_image(api: MarketplaceAPI, image: Optional[ImageSource]) -> str:
    if isinstance(image, ImageUpload):
        return await api.upload_image(image.filename, image.content, image.content_type)
    if isinstance(image, ImageUrl):
        return image.url.strip()
    return ""


class ListingForm:
    """Details -> Price/Image -> Contact.

    Forward moves are refused until the current step's required fields are
    filled; backward moves always succeed.
    """

    def __init__(self):
        self.reset()

    def reset(self):
        self.step = STEP_DETAILS
        self.title = ""
        self.description = ""
        self.category = CATEGORIES[0]
        self.condition = Condition.USED.value
        self.price = ""
        self.image: Optional[ImageSource] = None
        self.seller_name = ""
        self.seller_phone = ""
        self.country_code = DEFAULT_COUNTRY_CODE

    # details
    def set_category(self, category: str):
        self.category = category
        if not self.description:
            self.description = suggestion_for(category)

    @property
    def suggestion(self) -> str:
        return suggestion_for(self.category)

    def apply_suggestion(self):
        self.description = self.suggestion

    # image
    def set_image_url(self, url: str):
        if url:
            self.image = ImageUrl(url)
        elif isinstance(self.image, ImageUrl):
            self.image = None

    def set_image_file(self, filename: str, content: bytes, content_type: str):
        if not (content_type or "").startswith("image/"):
            raise ValidationFailure("Please choose a valid image file.")
        self.image = ImageUpload(filename, content, content_type)

    # navigation
    def missing_fields(self, step: Optional[int] = None):
        step = step or self.step
        missing = [name for name in REQUIRED_FIELDS[step] if not str(getattr(self, name)).strip()]
        if step == STEP_PRICE_IMAGE and "price" not in missing and _parse_price(self.price) is None:
            missing.append("price")
        return missing

    def can_proceed(self, step: Optional[int] = None) -> bool:
        return not self.missing_fields(step)

    def next_step(self) -> bool:
        if self.step == STEP_CONTACT or not self.can_proceed():
            return False
        self.step += 1
        return True

    def back(self):
        if self.step > STEP_DETAILS:
            self.step -= 1

    @property
    def is_complete(self) -> bool:
        return all(self.can_proceed(step) for step in REQUIRED_FIELDS)

    @property
    def normalized_phone(self) -> str:
        return normalize_phone(self.country_code, self.seller_phone)

    def build_record(self, owner_id: str, image_url: str = "") -> dict:
        return {
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "condition": self.condition,
            "price": _parse_price(self.price),
            "image_url": image_url,
            "seller_name": self.seller_name,
            "seller_phone": self.normalized_phone,
            "owner_id": owner_id,
        }

    async def submit(self, api: MarketplaceAPI, owner_id: str) -> ListingRead:
        """Upload the image if needed, then insert the listing.

        The form resets only after the insert succeeds; on failure every field
        and the current step are left as they were.
        """
        if not self.is_complete:
            missing = [name for step in REQUIRED_FIELDS for name in self.missing_fields(step)]
            raise ValidationFailure(f"Missing required fields: {', '.join(missing)}")

        image_url = await resolve_image(api, self.image)
        listing = await api.create_listing(self.build_record(owner_id, image_url))
        logger.info("Listed %s", listing.id)
        self.reset()
        return listing


class EditListingForm:
    """Single-step form pre-filled from an existing listing; the owner is not editable."""

    REQUIRED = ("title", "description", "category", "price", "condition", "seller_name", "seller_phone")

    def __init__(self, listing: ListingRead):
        self.listing = listing
        self.title = listing.title
        self.description = listing.description
        self.category = listing.category
        self.condition = listing.condition
        self.price = format_price(listing.price)
        self.image_url = listing.image_url
        self.seller_name = listing.seller_name
        self.seller_phone = listing.seller_phone

    @property
    def can_save(self) -> bool:
        filled = all(str(getattr(self, name)).strip() for name in self.REQUIRED)
        return filled and _parse_price(self.price) is not None

    def build_changes(self) -> dict:
        return {
            "title": self.title,
            "description": self.description,
            "category": self.category,
            "condition": self.condition,
            "price": _parse_price(self.price),
            "image_url": self.image_url.strip(),
            "seller_name": self.seller_name,
            "seller_phone": normalize_phone(DEFAULT_COUNTRY_CODE, self.seller_phone),
            "owner_id": self.listing.owner_id,
        }

    async def save(self, api: MarketplaceAPI) -> ListingRead:
        if not self.can_save:
            raise ValidationFailure("Fill in every field before saving")
        return await api.update_listing(self.listing.id, self.build_changes())
