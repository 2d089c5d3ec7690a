"""
Donation discovery.

Donors page through their own listings entirely in the store. Recipients get
the available donations from the store (category filter and date ordering
pushed down), then radius filtering, distance sorting and paging happen here,
because distance is not a stored column.
"""
import logging
from dataclasses import dataclass
from typing import Any, Optional

from sqlalchemy import desc

from .geo import distance_km
from .models import FoodDonation
from .pagination import paginate_list, paginate_query

logger = logging.getLogger(__name__)

RADIUS_CHOICES = (5, 10, 20, 50, 100, 1000)
NO_LIMIT_RADIUS_KM = 1000  # "No limit" option
SORT_OPTIONS = ('expiration_asc', 'expiration_desc', 'created_desc', 'distance_asc')
DEFAULT_SORT = 'expiration_asc'


def _to_int(value, default):
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


@dataclass
class DiscoveryQuery:
    radius: int = 10
    category: Optional[int] = None
    sort: str = DEFAULT_SORT
    page: int = 1

    @property
    def unlimited(self):
        return self.radius >= NO_LIMIT_RADIUS_KM

    @classmethod
    def from_args(cls, args, default_radius=10):
        """Build a query from request args, falling back on anything invalid."""
        radius = _to_int(args.get('radius'), default_radius)
        if radius not in RADIUS_CHOICES:
            radius = default_radius if default_radius in RADIUS_CHOICES else 10

        category = _to_int(args.get('category'), None) if args.get('category') else None

        sort = args.get('sort') or DEFAULT_SORT
        if sort not in SORT_OPTIONS:
            sort = DEFAULT_SORT

        page = max(_to_int(args.get('page'), 1), 1)
        return cls(radius=radius, category=category, sort=sort, page=page)


@dataclass
class DiscoveredDonation:
    donation: Any
    distance: float


def donor_donations(donor, page, per_page):
    """A donor's own donations, newest first, counted and sliced by the store."""
    query = FoodDonation.query.filter_by(donor_id=donor.id) \
        .order_by(desc(FoodDonation.created_at), desc(FoodDonation.id))
    result = paginate_query(query, page, per_page)
    logger.debug(f"Donor {donor.id}: page {page} of {result.total_pages} ({result.total_count} donations)")
    return result


def _store_ordering(sort):
    if sort == 'expiration_desc':
        return [desc(FoodDonation.expiration_date), FoodDonation.id]
    if sort == 'created_desc':
        return [desc(FoodDonation.created_at), desc(FoodDonation.id)]
    # expiration_asc, and the store-side order underneath distance_asc
    return [FoodDonation.expiration_date, FoodDonation.id]


def available_donations(query):
    """Every available donation matching the category, in store order."""
    q = FoodDonation.query.filter_by(status='available')
    if query.category:
        q = q.filter_by(food_type=query.category)
    return q.order_by(*_store_ordering(query.sort)).all()


def rank_by_distance(donations, origin, query, per_page):
    """
    Attach distances from ``origin``, drop donations beyond the radius, sort
    by distance when asked, then page. Totals reflect the filtered set.
    """
    lat, lon = origin
    results = [
        DiscoveredDonation(d, distance_km(lat, lon, d.pickup_latitude, d.pickup_longitude))
        for d in donations
    ]

    if not query.unlimited:
        results = [r for r in results if r.distance <= query.radius]

    if query.sort == 'distance_asc':
        results.sort(key=lambda r: r.distance)

    return paginate_list(results, query.page, per_page)


def recipient_origin(recipient, fallback):
    if recipient is not None and recipient.location_latitude is not None \
            and recipient.location_longitude is not None:
        return recipient.location_latitude, recipient.location_longitude
    return fallback


def discover_for_recipient(recipient, query, per_page, fallback_location):
    donations = available_donations(query)
    origin = recipient_origin(recipient, fallback_location)
    result = rank_by_distance(donations, origin, query, per_page)
    logger.debug(
        f"Recipient {recipient.id}: {len(donations)} available, "
        f"{result.total_count} within {query.radius} km"
    )
    return result


def discover(profile, query, per_page, fallback_location):
    if profile.is_donor:
        return donor_donations(profile, query.page, per_page)
    return discover_for_recipient(profile, query, per_page, fallback_location)
