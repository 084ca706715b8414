BANNER_PALETTES = [
    ("#2b2f77", "#4f46e5"),
    ("#1d4d7a", "#0ea5e9"),
    ("#3d2c8d", "#8b5cf6"),
    ("#2f4858", "#0f766e"),
    ("#4f2b5f", "#db2777"),
    ("#3d3f44", "#6b7280"),
]


def hash_string(value: str) -> int:
    """31-multiplier string hash over UTF-16 code units, kept to 32 bits."""
    encoded = value.encode("utf-16-le")
    h = 0
    for i in range(0, len(encoded), 2):
        code_unit = encoded[i] | (encoded[i + 1] << 8)
        h = (h * 31 + code_unit) & 0xFFFFFFFF
    return h


def palette_index(title: str, category: str, listing_id: str) -> int:
    return hash_string(f"{title}-{category}-{listing_id}") % len(BANNER_PALETTES)


def placeholder_gradient(title: str, category: str, listing_id: str) -> str:
    start, end = BANNER_PALETTES[palette_index(title, category, listing_id)]
    return f"linear-gradient(145deg, {start} 0%, {end} 100%)"


def has_real_image(image_url: str) -> bool:
    image = (image_url or "").strip()
    return bool(image) and not image.startswith("data:image/svg")
