from urllib.parse import quote

from app.utils.phone import phone_digits

MESSAGE_TEMPLATE = "Hi! I'm interested in your {title} listed on UniSwap for ₹{price}"

# characters encodeURIComponent leaves alone, so links match the web client's
_URI_COMPONENT_SAFE = "!~*'()"


def format_price(price) -> str:
    # 1200.0 reads as 1200, the way the listing cards print it
    if isinstance(price, float) and price.is_integer():
        return str(int(price))
    return str(price)


def whatsapp_link(seller_phone: str, title: str, price) -> str:
    text = MESSAGE_TEMPLATE.format(title=title, price=format_price(price))
    encoded = quote(text, safe=_URI_COMPONENT_SAFE)
    return f"https://wa.me/{phone_digits(seller_phone)}?text={encoded}"
