from datetime import date, timedelta

import pytest

from foodshare.models import FoodDonation, Transaction, User, db


@pytest.fixture
def accounts(app, make_profile, make_donation):
    """A donor with one donation and a recipient, both onboarded."""
    with app.app_context():
        donor = make_profile('donor', name='Restoran Maju', email='donor@mail.com')
        recipient = make_profile('recipient', name='Food Bank KL', email='recipient@mail.com')
        donation = make_donation(donor, title='Curry puffs')
        return {'donor': donor.email, 'recipient': recipient.email, 'donation_id': donation.id}


class TestNavigation:

    def test_root_redirects_to_app(self, client):
        response = client.get('/')
        assert response.status_code == 302
        assert response.headers['Location'].endswith('/app')

    def test_app_requires_login(self, client):
        response = client.get('/app')
        assert response.status_code == 302
        assert '/login' in response.headers['Location']

    def test_unknown_path_redirects_to_root(self, client):
        response = client.get('/no/such/page')
        assert response.status_code == 302
        assert response.headers['Location'].endswith('/')

    def test_login_page(self, client):
        assert client.get('/login').status_code == 200
        assert client.get('/signup').status_code == 200
        assert client.get('/forgot-password').status_code == 200


class TestAuthAndOnboarding:

    def test_signup_login_onboarding(self, app, client, login):
        response = client.post('/signup', data={'email': 'new@mail.com', 'password': 'secret123',
                                                'confirm_password': 'secret123'})
        assert response.status_code == 302

        response = login('new@mail.com')
        assert response.headers['Location'].endswith('/app')

        response = client.get('/app')
        assert response.headers['Location'].endswith('/onboarding')
        assert client.get('/onboarding').status_code == 200

        response = client.post('/onboarding', data={
            'user_type': 'donor',
            'name': 'Warung Pak Ali',
            'phone_number': '0123456789',
            'address': '5 Jalan Bukit Bintang',
        })
        assert response.status_code == 302
        assert '/app' in response.headers['Location']
        assert client.get('/app').status_code == 200

        with app.app_context():
            profile = User.query.filter_by(email='new@mail.com').one()
            assert profile.user_type == 'donor'
            assert profile.preferences is not None

    def test_incomplete_onboarding_stays_on_form(self, client, login, app, make_account):
        with app.app_context():
            make_account('half@mail.com')
        login('half@mail.com')

        response = client.post('/onboarding', data={'user_type': 'recipient', 'name': 'Half'})
        assert response.status_code == 200
        assert client.get('/app').headers['Location'].endswith('/onboarding')

    def test_duplicate_signup(self, client, accounts):
        response = client.post('/signup', data={'email': accounts['donor'], 'password': 'secret123',
                                                'confirm_password': 'secret123'})
        assert response.status_code == 200
        assert b'Email already registered' in response.data

    def test_bad_password(self, client, login, accounts):
        response = login(accounts['donor'], 'wrong-password')
        assert response.status_code == 200
        assert b'Invalid email or password' in response.data

    def test_forgot_password_is_generic(self, client):
        response = client.post('/forgot-password', data={'email': 'nobody@mail.com'},
                               follow_redirects=True)
        assert b'If your email exists' in response.data

    def test_logout(self, client, login, accounts):
        login(accounts['donor'])
        client.get('/logout')
        assert '/login' in client.get('/app').headers['Location']


class TestTabs:

    @pytest.mark.parametrize('tab', ['dashboard', 'create', 'transactions', 'leaderboard', 'profile'])
    def test_donor_tabs(self, client, login, accounts, tab):
        login(accounts['donor'])
        response = client.get(f'/app?tab={tab}')
        assert response.status_code == 200

    def test_donor_dashboard_lists_own_donations(self, client, login, accounts):
        login(accounts['donor'])
        assert b'Curry puffs' in client.get('/app').data

    def test_recipient_dashboard_with_filters(self, client, login, accounts):
        login(accounts['recipient'])
        response = client.get('/app?tab=dashboard&radius=5&sort=distance_asc&category=5')
        assert response.status_code == 200
        assert b'Curry puffs' in response.data

    def test_unknown_tab_falls_back_to_dashboard(self, client, login, accounts):
        login(accounts['recipient'])
        assert client.get('/app?tab=admin').status_code == 200


class TestActions:

    def test_create_donation(self, app, client, login, accounts):
        login(accounts['donor'])
        tomorrow = date.today() + timedelta(days=1)
        response = client.post('/donations', data={
            'title': 'Bread loaves',
            'food_type': '2',
            'quantity': '12',
            'quantity_unit': 'items',
            'prepared_date': date.today().isoformat(),
            'expiration_date': tomorrow.isoformat(),
            'pickup_start_time': '09:00',
            'pickup_end_time': '12:00',
            'is_perishable': 'y',
            'use_registered_location': 'y',
        })
        assert response.status_code == 302

        with app.app_context():
            donation = FoodDonation.query.filter_by(title='Bread loaves').one()
            assert donation.status == 'available'
            assert donation.pickup_latitude == pytest.approx(3.139003)
            assert donation.pickup_end_time.hour == 12

    def test_create_donation_needs_pickup_location(self, app, client, login, accounts):
        login(accounts['donor'])
        tomorrow = date.today() + timedelta(days=1)
        response = client.post('/donations', data={
            'title': 'Soup',
            'quantity': '3',
            'quantity_unit': 'kg',
            'expiration_date': tomorrow.isoformat(),
            'pickup_start_time': '09:00',
            'pickup_end_time': '12:00',
        })
        assert response.status_code == 200
        assert b'Please provide a pickup location' in response.data

    def test_recipient_cannot_create(self, client, login, accounts):
        login(accounts['recipient'])
        response = client.post('/donations', data={'title': 'Nope'})
        assert response.status_code == 302

    def test_request_accept_complete_flow(self, app, client, login, accounts):
        donation_id = accounts['donation_id']

        login(accounts['recipient'])
        client.post(f'/donations/{donation_id}/request')
        response = client.post(f'/donations/{donation_id}/request', follow_redirects=True)
        assert b'already requested' in response.data

        with app.app_context():
            transaction_id = Transaction.query.one().id
        client.get('/logout')

        login(accounts['donor'])
        client.post(f'/transactions/{transaction_id}/accept')
        client.get('/logout')

        login(accounts['recipient'])
        client.post(f'/transactions/{transaction_id}/complete')
        response = client.get(f'/transactions/{transaction_id}/impact')
        assert response.status_code == 200
        assert b'Meals provided' in response.data

        client.post(f'/transactions/{transaction_id}/feedback', data={'rating': '5', 'feedback': 'Thanks!'})

        with app.app_context():
            transaction = db.session.get(Transaction, transaction_id)
            assert transaction.status == 'completed'
            assert transaction.donor_rating == 5
            assert transaction.donation.status == 'completed'

    def test_donor_cannot_accept_someone_elses_request(self, app, client, login, accounts,
                                                      make_profile, make_transaction):
        with app.app_context():
            other = make_profile('donor', email='other@mail.com')
            recipient = User.query.filter_by(email=accounts['recipient']).one()
            transaction_id = make_transaction(db.session.get(FoodDonation, accounts['donation_id']),
                                              recipient).id

        login('other@mail.com')
        response = client.post(f'/transactions/{transaction_id}/accept', follow_redirects=True)
        assert b'Unauthorized action.' in response.data

        with app.app_context():
            assert db.session.get(Transaction, transaction_id).status == 'requested'

    def test_delete_donation(self, app, client, login, accounts):
        login(accounts['donor'])
        client.post(f"/donations/{accounts['donation_id']}/delete")

        with app.app_context():
            donation = db.session.get(FoodDonation, accounts['donation_id'])
            assert donation.status == 'expired'
            assert donation.title.startswith('[DELETED] ')

    def test_edit_donation(self, app, client, login, accounts):
        login(accounts['donor'])
        url = f"/donations/{accounts['donation_id']}/edit"
        assert client.get(url).status_code == 200

        tomorrow = date.today() + timedelta(days=1)
        response = client.post(url, data={
            'title': 'Curry puffs (fresh)',
            'food_type': '5',
            'quantity': '3',
            'quantity_unit': 'kg',
            'expiration_date': tomorrow.isoformat(),
            'pickup_start_time': '10:00',
            'pickup_end_time': '11:00',
            'use_registered_location': 'y',
        })
        assert response.status_code == 302

        with app.app_context():
            assert db.session.get(FoodDonation, accounts['donation_id']).title == 'Curry puffs (fresh)'


class TestProfileSettings:

    def test_settings_tab_has_no_role_field(self, client, login, accounts):
        login(accounts['donor'])
        response = client.get('/app?tab=profile')
        assert response.status_code == 200
        assert b'name="user_type"' not in response.data

    def test_settings_cannot_change_role(self, app, client, login, accounts):
        login(accounts['donor'])
        response = client.post('/app/profile', data={
            'user_type': 'recipient',
            'name': 'Restoran Maju Baru',
            'phone_number': '0123456789',
            'address': '1 Jalan Ampang, Kuala Lumpur',
        })
        assert response.status_code == 302

        with app.app_context():
            profile = User.query.filter_by(email=accounts['donor']).one()
            assert profile.name == 'Restoran Maju Baru'
            assert profile.user_type == 'donor'

        client.post(f"/donations/{accounts['donation_id']}/request")
        with app.app_context():
            assert Transaction.query.count() == 0
