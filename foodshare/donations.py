import logging
from datetime import datetime

from .exceptions import InvalidTransitionError, PermissionDeniedError
from .models import FoodCategory, FoodDonation, commit_session, db
from .transactions import get_donation

logger = logging.getLogger(__name__)


def category_choices():
    categories = FoodCategory.query.order_by(FoodCategory.name).all()
    return [('', 'Select a category')] + [(c.id, c.name) for c in categories]


def category_names():
    return {c.id: c.name for c in FoodCategory.query.all()}


def _donation_fields(form, donor):
    """Column values from a validated DonationForm."""
    expiration_day = form.expiration_date.data

    if form.use_registered_location.data:
        address = donor.address
        latitude, longitude = donor.location_latitude, donor.location_longitude
    else:
        address = form.pickup_address.data
        latitude, longitude = form.pickup_latitude.data, form.pickup_longitude.data

    prepared = form.prepared_date.data
    return {
        'title': form.title.data.strip(),
        'description': form.description.data,
        'food_type': form.food_type.data,
        'quantity': float(form.quantity.data),
        'quantity_unit': form.quantity_unit.data,
        'prepared_date': datetime.combine(prepared, datetime.min.time()) if prepared else None,
        'expiration_date': datetime.combine(expiration_day, datetime.min.time()),
        # the pickup window is given as times of day on the expiration date
        'pickup_start_time': datetime.combine(expiration_day, form.pickup_start_time.data),
        'pickup_end_time': datetime.combine(expiration_day, form.pickup_end_time.data),
        'pickup_address': address,
        'pickup_latitude': latitude,
        'pickup_longitude': longitude,
        'is_different_location': not form.use_registered_location.data,
        'is_perishable': bool(form.is_perishable.data),
        'storage_requirements': form.storage_requirements.data,
    }


def create_donation(donor, form):
    if not donor.is_donor:
        raise PermissionDeniedError('Only donors can list food.')

    donation = FoodDonation(donor_id=donor.id, status='available', **_donation_fields(form, donor))
    db.session.add(donation)
    commit_session('Create donation')
    logger.info(f"Donor {donor.id} listed donation {donation.id}")
    return donation


def update_donation(donation_id, donor, form):
    donation = get_donation(donation_id)
    if donation.donor_id != donor.id:
        raise PermissionDeniedError('You can only edit your own donations.')
    if donation.status in ('completed', 'expired'):
        raise InvalidTransitionError('This donation can no longer be edited.')

    for key, value in _donation_fields(form, donor).items():
        setattr(donation, key, value)
    commit_session('Update donation')
    return donation


def form_data(donation):
    """Initial DonationForm data for editing an existing donation."""
    return {
        'title': donation.title,
        'description': donation.description or '',
        'food_type': donation.food_type,
        'quantity': donation.quantity,
        'quantity_unit': donation.quantity_unit,
        'prepared_date': donation.prepared_date.date() if donation.prepared_date else None,
        'expiration_date': donation.expiration_date.date(),
        'pickup_start_time': donation.pickup_start_time.time(),
        'pickup_end_time': donation.pickup_end_time.time(),
        'is_perishable': donation.is_perishable,
        'storage_requirements': donation.storage_requirements or '',
        'use_registered_location': not donation.is_different_location,
        'pickup_address': donation.pickup_address or '',
        'pickup_latitude': donation.pickup_latitude,
        'pickup_longitude': donation.pickup_longitude,
    }


def expiry_warning(expiration_date, now=None):
    """CSS class hinting how close a donation is to expiring."""
    now = now or datetime.utcnow()
    hours_left = (expiration_date - now).total_seconds() / 3600
    if hours_left < 0:
        return 'text-danger fw-bold'
    if hours_left < 24:
        return 'text-warning fw-bold'
    if hours_left < 48:
        return 'text-warning'
    return ''
