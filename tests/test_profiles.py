import pytest

from foodshare.exceptions import ValidationError
from foodshare.models import User, UserPreferences, db
from foodshare.profiles import (check_profile, is_complete, missing_fields, preferred_radius,
                                save_profile, update_profile)

ONBOARDING = {
    'user_type': 'recipient',
    'name': 'Siti Aminah',
    'organization_name': 'Rumah Kebajikan',
    'phone_number': '0123456789',
    'address': '12 Jalan Tun Razak',
    'location_latitude': 3.16,
    'location_longitude': 101.71,
}


class TestGate:

    def test_no_profile_row(self, ctx, make_account):
        gate = check_profile(make_account())
        assert not gate.complete
        assert gate.is_new
        assert gate.prefill == {}

    def test_empty_name_is_incomplete(self, ctx, make_account):
        account = make_account()
        db.session.add(User(id=account.id, email=account.email, name='', phone_number='012',
                            address='Somewhere', user_type='donor'))
        db.session.commit()

        gate = check_profile(account)
        assert not gate.complete
        assert gate.prefill['name'] == ''
        assert gate.prefill['phone_number'] == '012'
        assert gate.prefill['user_type'] == 'donor'

    def test_missing_phone_is_incomplete(self, ctx, make_account):
        account = make_account()
        db.session.add(User(id=account.id, email=account.email, name='Ali', address='Somewhere',
                            user_type='recipient'))
        db.session.commit()

        gate = check_profile(account)
        assert not gate.complete
        assert gate.prefill['name'] == 'Ali'

    def test_complete_profile(self, ctx, make_profile):
        profile = make_profile('donor')
        gate = check_profile(profile.account)
        assert gate.complete
        assert gate.profile is profile

    def test_missing_fields(self):
        assert missing_fields(ONBOARDING) == []
        assert missing_fields(dict(ONBOARDING, address='')) == ['address']
        assert not is_complete(None)


class TestSaveProfile:

    def test_creates_profile_and_preferences(self, ctx, make_account):
        account = make_account()
        gate = save_profile(account, ONBOARDING)

        assert gate.complete
        profile = db.session.get(User, account.id)
        assert profile.name == 'Siti Aminah'
        assert profile.email == account.email
        preferences = db.session.get(UserPreferences, account.id)
        assert preferences.notification_settings == {'email': True, 'sms': True, 'push': False}
        assert preferences.preferred_pickup_distance == 10
        assert check_profile(account).complete

    def test_donor_has_no_pickup_distance(self, ctx, make_account):
        account = make_account()
        save_profile(account, dict(ONBOARDING, user_type='donor'))
        assert db.session.get(UserPreferences, account.id).preferred_pickup_distance is None

    def test_updates_existing_row(self, ctx, make_account):
        account = make_account()
        db.session.add(User(id=account.id, email=account.email, name=''))
        db.session.commit()

        save_profile(account, ONBOARDING)
        assert User.query.count() == 1
        assert db.session.get(User, account.id).name == 'Siti Aminah'

    def test_blank_optional_fields_stored_as_null(self, ctx, make_account):
        account = make_account()
        save_profile(account, dict(ONBOARDING, organization_name=''))
        assert db.session.get(User, account.id).organization_name is None

    def test_required_fields(self, ctx, make_account):
        account = make_account()
        with pytest.raises(ValidationError) as excinfo:
            save_profile(account, dict(ONBOARDING, phone_number=''))
        assert 'phone_number' in excinfo.value.message
        assert db.session.get(User, account.id) is None


class TestProfileSettings:

    def test_update_profile(self, ctx, make_profile):
        profile = make_profile('recipient')
        update_profile(profile, dict(ONBOARDING, name='New Name'))
        assert profile.name == 'New Name'

    def test_update_profile_keeps_role(self, ctx, make_profile):
        profile = make_profile('donor')
        update_profile(profile, dict(ONBOARDING, user_type='recipient'))
        assert profile.user_type == 'donor'
        assert db.session.get(User, profile.id).user_type == 'donor'

    def test_update_profile_without_role_field(self, ctx, make_profile):
        profile = make_profile('recipient')
        data = {k: v for k, v in ONBOARDING.items() if k != 'user_type'}
        update_profile(profile, dict(data, phone_number='0199999999'))
        assert profile.phone_number == '0199999999'
        assert profile.user_type == 'recipient'

    def test_preferred_radius(self, ctx, make_account):
        account = make_account()
        save_profile(account, ONBOARDING)
        profile = db.session.get(User, account.id)
        assert preferred_radius(profile, 20) == 10

    def test_preferred_radius_default(self, ctx, make_profile):
        assert preferred_radius(make_profile('recipient'), 20) == 20
