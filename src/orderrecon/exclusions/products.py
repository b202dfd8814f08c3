"""Product-based exclusion rules.

Both rules match on plain substrings, not word boundaries: the keyword "Tusk"
also excludes "tuskegee widget", and "mt" matches inside any word. A false
positive silently drops a legitimate order line, so the keyword lists live in
configuration and should be reviewed as such.
"""
from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional, Sequence

from ..coercion_utils import clean_str
from ..standards.naming import normalize_product_text


DEFAULT_BANNED_PRODUCT_KEYWORDS = (
    "Roxo",
    "Rough Country",
    "Rigid",
    "Rugged Ridge",
    "ScanGauge",
    "Shorty Stunt",
    "Smittybilt",
    "Spoke",
    "Squadron",
    "Honda Talon",
    "Stainless Steel",
    "Standard Side",
    "Stealth",
    "Sticker Bomb",
    "SUZUKI DRZ400SM",
    "Subaru Crosstrek",
    "Tactical",
    "Speedometer",
    "Trail Tech",
    "Trailmax",
    "Skid Plate",
    "Tusk",
    "Universal",
    "Signal",
    "UTV Conversion",
    "UTV Plug",
    "Legal Conversion",
    "Vehicle Sales Tax",
    "Vintage Air",
    "Winch",
    "Wheelie",
    "Windshield",
    "WR250 R/X",
    "OEM",
    "ZETA",
)


def is_banned_product(product_name: object, keywords: Iterable[str] = DEFAULT_BANNED_PRODUCT_KEYWORDS) -> bool:
    """Case-insensitive substring match against ``keywords``."""
    name = clean_str(product_name).lower()
    if not name:
        return False
    return any(kw.lower() in name for kw in keywords if kw)


def matches_renewal_rule(
    order_date: Optional[datetime],
    product_name: object,
    year: int,
    keyword_groups: Sequence[Sequence[str]],
) -> bool:
    """Duplicate-renewal pattern: dated in ``year`` and every keyword group hit.

    Keywords inside a group are alternatives; groups are combined with AND.
    Orders without a resolved date never match.
    """
    if order_date is None or order_date.year != year:
        return False
    if not keyword_groups:
        return False
    text = normalize_product_text(product_name)
    return all(any(kw.lower() in text for kw in group) for group in keyword_groups)
