"""Topic-derived stock image, used only when IMAGE_STOCK_FALLBACK is on."""

from __future__ import annotations

from newscurator.images.image_types import LAYER_STOCK, ImageValidation, ResolvedImage


STOCK_CATEGORIES = ("ai", "technology", "computer", "robotics", "data", "science")


def stock_image_url(title: str, link: str) -> str:
    # Deterministic per article so reruns pick the same picture.
    seed = sum(ord(c) for c in (title or "") + (link or ""))
    category = STOCK_CATEGORIES[seed % len(STOCK_CATEGORIES)]
    return f"https://source.unsplash.com/1600x900/?{category},artificial-intelligence&sig={seed % 10000}"


def stock_image(title: str, link: str) -> ResolvedImage:
    return ResolvedImage(
        url=stock_image_url(title, link),
        layer=LAYER_STOCK,
        method="stock",
        confidence=0.1,
        validation=ImageValidation(is_valid=True, width=1600, height=900, mime="image/jpeg"),
    )
