"""
Onboarding gate.

A signed-in account may use the app only once its ``users`` row carries a
name, phone number, address and user type. A missing row, or a row without a
name, sends the account to the onboarding form, pre-filled with whatever is
already stored.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from .exceptions import ValidationError
from .models import User, UserPreferences, commit_session, db

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ('name', 'phone_number', 'address', 'user_type')
PROFILE_FIELDS = ('name', 'organization_name', 'phone_number', 'address', 'user_type',
                  'location_latitude', 'location_longitude')
SETTINGS_FIELDS = tuple(name for name in PROFILE_FIELDS if name != 'user_type')
DEFAULT_NOTIFICATIONS = {'email': True, 'sms': True, 'push': False}
DEFAULT_PICKUP_DISTANCE_KM = 10


@dataclass
class GateState:
    complete: bool
    profile: Optional[User] = None
    prefill: dict = field(default_factory=dict)

    @property
    def is_new(self):
        return self.profile is None


def _value(source, name):
    if isinstance(source, dict):
        return source.get(name)
    return getattr(source, name, None)


def missing_fields(source):
    return [name for name in REQUIRED_FIELDS if not _value(source, name)]


def is_complete(profile):
    return profile is not None and not missing_fields(profile)


def _prefill(profile, keep_name=True):
    data = {name: _value(profile, name) for name in PROFILE_FIELDS}
    data['user_type'] = data['user_type'] or 'recipient'
    if not keep_name:
        data['name'] = ''
    return data


def check_profile(account):
    profile = db.session.get(User, account.id)
    if profile is None:
        return GateState(complete=False)

    if not profile.name:
        logger.info(f"Profile {account.id} exists but name is missing")
        return GateState(complete=False, profile=profile, prefill=_prefill(profile, keep_name=False))

    return GateState(complete=is_complete(profile), profile=profile, prefill=_prefill(profile))


def _upsert_preferences(profile):
    preferences = db.session.get(UserPreferences, profile.id)
    if preferences is None:
        preferences = UserPreferences(user_id=profile.id)
        db.session.add(preferences)
    preferences.notification_settings = dict(DEFAULT_NOTIFICATIONS)
    if profile.user_type == 'recipient':
        preferences.preferred_pickup_distance = DEFAULT_PICKUP_DISTANCE_KM
    return preferences


def save_profile(account, data):
    """Create or update the profile from onboarding data and mark the gate complete."""
    missing = missing_fields(data)
    if missing:
        raise ValidationError(f"Please fill in all required fields: {', '.join(missing)}")

    profile = db.session.get(User, account.id)
    if profile is None:
        profile = User(id=account.id, email=account.email)
        db.session.add(profile)
        logger.info(f"Creating profile for account {account.id}")

    for name in PROFILE_FIELDS:
        value = data.get(name)
        setattr(profile, name, value if value != '' else None)
    profile.updated_at = datetime.utcnow()

    _upsert_preferences(profile)
    commit_session('Save profile')
    return GateState(complete=True, profile=profile, prefill=_prefill(profile))


def update_profile(profile, data):
    """Profile settings: contact details only. The role is fixed after onboarding."""
    missing = [name for name in missing_fields(data) if name != 'user_type']
    if missing:
        raise ValidationError(f"Please fill in all required fields: {', '.join(missing)}")

    for name in SETTINGS_FIELDS:
        value = data.get(name)
        setattr(profile, name, value if value != '' else None)
    commit_session('Update profile')
    return profile


def preferred_radius(profile, default):
    preferences = profile.preferences
    if preferences is not None and preferences.preferred_pickup_distance:
        return preferences.preferred_pickup_distance
    return default
