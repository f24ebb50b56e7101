"""
cadence.engine.content — Message content bonuses
=================================================

Two message-only stages of the award pipeline:

* a flat bonus per link (image links are worth more), and
* a length factor applied to the running sum.
"""

from __future__ import annotations

from cadence.constants import (
    IMAGE_LINK_BONUS,
    IMAGE_URL_REGEX,
    LENGTH_TIERS,
    LINK_BONUS,
    URL_REGEX,
)


def classify_links(text: str) -> tuple[int, int]:
    """Return ``(plain_links, image_links)`` found in *text*."""
    plain = images = 0
    for url in URL_REGEX.findall(text):
        if IMAGE_URL_REGEX.search(url):
            images += 1
        else:
            plain += 1
    return plain, images


def content_bonus(text: str) -> int:
    """+3 per link, +5 per image link."""
    plain, images = classify_links(text)
    return plain * LINK_BONUS + images * IMAGE_LINK_BONUS


def length_factor(text: str) -> float:
    """1.0 below 25 chars, then 1.2 / 1.5 / 2.0 at 25 / 50 / 100."""
    length = len(text)
    for min_chars, factor in LENGTH_TIERS:
        if length >= min_chars:
            return factor
    return 1.0
