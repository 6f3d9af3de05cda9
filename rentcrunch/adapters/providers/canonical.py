# rentcrunch/adapters/providers/canonical.py
from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from ...config import settings
from ...domain.parsing import to_int
from ...domain.types import Property, RentSource
from ...schemas import ZillowListing

log = logging.getLogger(__name__)


def _listing_url(listing: ZillowListing) -> str:
    base = settings.ZILLOW_LISTING_URL_BASE.rstrip("/")
    if listing.detail_url:
        if listing.detail_url.startswith("http"):
            return listing.detail_url
        return f"{base}/{listing.detail_url.lstrip('/')}"
    if listing.zpid is not None:
        return f"{base}/homes/{listing.zpid}_zpid/"
    return ""


def property_from_payload(item: dict[str, Any], *, fallback_ratio: float | None = None) -> Property | None:
    """
    Map one Zillow-shaped payload into a Property.

    Returns None when the item cannot be a listing (no price, no address/id).
    Missing rent estimates fall back to price * RENT_FALLBACK_RATIO, tagged `calculated`.
    """
    try:
        listing = ZillowListing.model_validate(item)
    except ValidationError as e:
        log.warning("skipping malformed listing payload: %s errors", e.error_count())
        return None

    if listing.price is None:
        return None

    address = (listing.address or "").strip()
    if listing.zpid not in (None, ""):
        property_id = str(listing.zpid)
    elif address:
        property_id = f"property-{address}"
    else:
        return None

    ratio = settings.RENT_FALLBACK_RATIO if fallback_ratio is None else fallback_ratio
    if listing.rent_zestimate and listing.rent_zestimate > 0:
        rent = float(listing.rent_zestimate)
        source = RentSource.zillow
    else:
        rent = float(listing.price) * ratio
        source = RentSource.calculated

    return Property(
        property_id=property_id,
        address=address,
        price=float(listing.price),
        rent_estimate=rent,
        bedrooms=listing.bedrooms,
        bathrooms=listing.bathrooms,
        sqft=listing.living_area or 0.0,
        days_on_market=to_int(listing.days_on_zillow),
        latitude=listing.latitude,
        longitude=listing.longitude,
        url=_listing_url(listing),
        rent_source=source,
        thumbnail=listing.img_src,
    )
