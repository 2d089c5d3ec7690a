"""Shared fixtures: an in-memory app plus small factories for profiles, donations and transactions."""
import itertools
from datetime import datetime, timedelta

import pytest
from werkzeug.security import generate_password_hash

from foodshare import create_app
from foodshare.config import TestingConfig
from foodshare.models import Account, FoodDonation, Transaction, User, db

PASSWORD = 'secret123'

# Kuala Lumpur city centre
KL = (3.139003, 101.686855)


@pytest.fixture
def app():
    app = create_app(TestingConfig)
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def ctx(app):
    """Push an app context for tests that call the services directly."""
    with app.app_context():
        yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_account():
    counter = itertools.count(1)

    def _make(email=None):
        account = Account(email=email or f'account{next(counter)}@mail.com',
                          password=generate_password_hash(PASSWORD))
        db.session.add(account)
        db.session.commit()
        return account

    return _make


@pytest.fixture
def make_profile(make_account):
    def _make(user_type='recipient', name='Test User', location=KL, **fields):
        account = make_account(fields.pop('email', None))
        profile = User(
            id=account.id,
            email=account.email,
            name=name,
            phone_number='0123456789',
            address='1 Jalan Ampang, Kuala Lumpur',
            user_type=user_type,
            location_latitude=location[0] if location else None,
            location_longitude=location[1] if location else None,
            **fields
        )
        db.session.add(profile)
        db.session.commit()
        return profile

    return _make


@pytest.fixture
def make_donation():
    def _make(donor, location=KL, **fields):
        now = datetime.utcnow()
        expires = now + timedelta(days=2)
        values = dict(
            donor_id=donor.id,
            title='Leftover nasi lemak',
            food_type=5,
            quantity=2,
            quantity_unit='kg',
            prepared_date=now,
            expiration_date=expires,
            pickup_start_time=expires.replace(hour=9, minute=0),
            pickup_end_time=expires.replace(hour=17, minute=0),
            pickup_address=donor.address,
            pickup_latitude=location[0] if location else None,
            pickup_longitude=location[1] if location else None,
            status='available',
        )
        values.update(fields)
        donation = FoodDonation(**values)
        db.session.add(donation)
        db.session.commit()
        return donation

    return _make


@pytest.fixture
def make_transaction():
    def _make(donation, recipient, status='requested', **fields):
        transaction = Transaction(donation_id=donation.id, recipient_id=recipient.id,
                                  status=status, scheduled_pickup_time=datetime.utcnow(), **fields)
        db.session.add(transaction)
        db.session.commit()
        return transaction

    return _make


@pytest.fixture
def login(client):
    def _login(email, password=PASSWORD):
        return client.post('/login', data={'email': email, 'password': password})

    return _login
