import logging
from flask_sqlalchemy import SQLAlchemy
from flask_login import UserMixin
from datetime import datetime
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)

db = SQLAlchemy()

DONATION_STATUSES = ('available', 'pending', 'claimed', 'completed', 'expired')
TRANSACTION_STATUSES = ('requested', 'confirmed', 'completed', 'rejected', 'canceled')
QUANTITY_UNITS = ('kg', 'items', 'servings', 'portions', 'packages', 'liters')
USER_TYPES = ('donor', 'recipient')

# Static reference data, ids are relied upon by the metrics tables
FOOD_CATEGORIES = (
    (1, 'Dairy'),
    (2, 'Bakery'),
    (3, 'Fruits'),
    (4, 'Vegetables'),
    (5, 'Prepared Meals'),
    (6, 'Canned Goods'),
    (7, 'Dry Goods'),
    (8, 'Meat & Poultry'),
    (9, 'Seafood'),
    (10, 'Frozen Foods'),
)


class Account(db.Model, UserMixin):
    """Sign-in identity. The profile lives in ``users`` and may not exist yet."""
    __tablename__ = 'accounts'

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(120), unique=True, nullable=False, index=True)
    password = db.Column(db.String(255), nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    profile = db.relationship('User', backref='account', uselist=False, lazy=True)

    def __repr__(self):
        return f'<Account {self.email}>'


class User(db.Model):
    __tablename__ = 'users'

    id = db.Column(db.Integer, db.ForeignKey('accounts.id'), primary_key=True)
    email = db.Column(db.String(120), nullable=False)
    name = db.Column(db.String(100))
    organization_name = db.Column(db.String(150))
    phone_number = db.Column(db.String(30))
    address = db.Column(db.Text)
    user_type = db.Column(db.String(20))  # donor, recipient
    location_latitude = db.Column(db.Float)
    location_longitude = db.Column(db.Float)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    donations = db.relationship('FoodDonation',
                                backref='donor',
                                lazy=True,
                                foreign_keys='FoodDonation.donor_id')

    requests_made = db.relationship('Transaction',
                                    backref='recipient',
                                    lazy=True,
                                    foreign_keys='Transaction.recipient_id')

    preferences = db.relationship('UserPreferences', backref='user', uselist=False, lazy=True)

    @property
    def display_name(self):
        return self.organization_name or self.name or 'Anonymous'

    @property
    def contact(self):
        return self.phone_number or self.email

    @property
    def is_donor(self):
        return self.user_type == 'donor'

    @property
    def is_recipient(self):
        return self.user_type == 'recipient'

    def __repr__(self):
        return f'<User {self.name}, {self.user_type}>'


class UserPreferences(db.Model):
    __tablename__ = 'user_preferences'

    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), primary_key=True)
    notification_settings = db.Column(db.JSON, nullable=False,
                                      default=lambda: {'email': True, 'sms': True, 'push': False})
    preferred_pickup_distance = db.Column(db.Integer, nullable=True)


class FoodCategory(db.Model):
    __tablename__ = 'food_categories'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(50), nullable=False)

    def __repr__(self):
        return f'<FoodCategory {self.id} {self.name}>'


class FoodDonation(db.Model):
    __tablename__ = 'food_donations'

    id = db.Column(db.Integer, primary_key=True)
    donor_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    title = db.Column(db.String(150), nullable=False)
    description = db.Column(db.Text)
    food_type = db.Column(db.Integer, db.ForeignKey('food_categories.id'), nullable=True)
    quantity = db.Column(db.Float, nullable=False)
    quantity_unit = db.Column(db.String(20), nullable=False, default='kg')
    prepared_date = db.Column(db.DateTime, nullable=True)
    expiration_date = db.Column(db.DateTime, nullable=False)
    pickup_start_time = db.Column(db.DateTime, nullable=False)
    pickup_end_time = db.Column(db.DateTime, nullable=False)
    pickup_address = db.Column(db.Text)
    pickup_latitude = db.Column(db.Float)
    pickup_longitude = db.Column(db.Float)
    is_different_location = db.Column(db.Boolean, default=False)
    is_perishable = db.Column(db.Boolean, default=True)
    storage_requirements = db.Column(db.Text)
    status = db.Column(db.String(20), nullable=False, default='available', index=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    category = db.relationship('FoodCategory', lazy=True)
    transactions = db.relationship('Transaction',
                                   backref='donation',
                                   lazy=True,
                                   order_by='Transaction.created_at')

    @property
    def amount(self):
        return f"{self.quantity:g} {self.quantity_unit}"

    @property
    def category_name(self):
        return self.category.name if self.category else None

    def __repr__(self):
        return f'<FoodDonation {self.title}, {self.status}>'


class Transaction(db.Model):
    __tablename__ = 'transactions'

    id = db.Column(db.Integer, primary_key=True)
    donation_id = db.Column(db.Integer, db.ForeignKey('food_donations.id'), nullable=False, index=True)
    recipient_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    status = db.Column(db.String(20), nullable=False, default='requested')
    scheduled_pickup_time = db.Column(db.DateTime)
    actual_pickup_time = db.Column(db.DateTime, nullable=True)
    donor_rating = db.Column(db.Integer, nullable=True)
    recipient_rating = db.Column(db.Integer, nullable=True)
    donor_feedback = db.Column(db.Text, nullable=True)
    recipient_feedback = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    impact_metrics = db.relationship('ImpactMetrics', backref='transaction', uselist=False, lazy=True)

    @property
    def donor(self):
        return self.donation.donor if self.donation else None

    def __repr__(self):
        return f'<Transaction {self.id}, status: {self.status}>'


class ImpactMetrics(db.Model):
    __tablename__ = 'impact_metrics'

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey('transactions.id'),
                               nullable=False, unique=True)
    food_weight = db.Column(db.Float, nullable=False)
    co2_saved = db.Column(db.Float, nullable=False)
    meals_provided = db.Column(db.Integer, nullable=False)
    estimated_value = db.Column(db.Float, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f'<ImpactMetrics transaction={self.transaction_id} co2={self.co2_saved}>'


def seed_categories():
    """Insert any missing food categories."""
    existing = {c.id for c in FoodCategory.query.all()}
    for category_id, name in FOOD_CATEGORIES:
        if category_id not in existing:
            db.session.add(FoodCategory(id=category_id, name=name))
    db.session.commit()


def commit_session(action):
    """Commit, or roll back and re-raise so the caller can report the failure."""
    try:
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"{action} failed: {str(e)}")
        raise
