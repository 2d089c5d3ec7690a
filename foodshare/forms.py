from flask_wtf import FlaskForm
from wtforms import (StringField, SelectField, TextAreaField, PasswordField,
                     DateField, TimeField, BooleanField, FloatField, IntegerField)
from wtforms.validators import (DataRequired, Email, Length, EqualTo, ValidationError,
                                Optional, NumberRange)
from datetime import date

from .models import QUANTITY_UNITS


def optional_int(value):
    if value in (None, ''):
        return None
    return int(value)


class LoginForm(FlaskForm):
    email = StringField('Email', validators=[DataRequired(), Email()])
    password = PasswordField('Password', validators=[DataRequired()])
    remember_me = BooleanField('Remember Me')

class SignupForm(FlaskForm):
    email = StringField('Email', validators=[DataRequired(), Email()])
    password = PasswordField('Password', validators=[
        DataRequired(),
        Length(min=6, message='Password must be at least 6 characters')
    ])
    confirm_password = PasswordField('Confirm Password', validators=[
        DataRequired(),
        EqualTo('password', message='Passwords must match')
    ])

class ForgotPasswordForm(FlaskForm):
    email = StringField('Email', validators=[DataRequired(), Email()])

class ProfileForm(FlaskForm):
    """Onboarding and profile settings share the same fields."""
    user_type = SelectField('I am a', choices=[
        ('donor', 'Food Donor - I have food to donate'),
        ('recipient', 'Food Recipient - I need food donations')
    ], default='recipient', validators=[DataRequired()])
    name = StringField('Your Name / Contact Person', validators=[DataRequired(), Length(max=100)])
    organization_name = StringField('Organization Name', validators=[Optional(), Length(max=150)])
    phone_number = StringField('Phone Number', validators=[DataRequired(), Length(max=30)])
    address = TextAreaField('Address', validators=[DataRequired()])
    location_latitude = FloatField('Latitude', validators=[Optional(), NumberRange(min=-90, max=90)])
    location_longitude = FloatField('Longitude', validators=[Optional(), NumberRange(min=-180, max=180)])

class ProfileSettingsForm(ProfileForm):
    user_type = None

class DonationForm(FlaskForm):
    title = StringField('Title', validators=[DataRequired(), Length(max=150)])
    description = TextAreaField('Description', validators=[Optional()])
    food_type = SelectField('Food Category', coerce=optional_int, validators=[Optional()])
    quantity = FloatField('Quantity', validators=[DataRequired()])
    quantity_unit = SelectField('Unit', choices=[
        ('kg', 'Kilograms (kg)'),
        ('items', 'Items'),
        ('servings', 'Servings'),
        ('portions', 'Portions'),
        ('packages', 'Packages'),
        ('liters', 'Liters')
    ], default='kg', validators=[DataRequired()])
    prepared_date = DateField('Prepared Date', default=date.today, validators=[Optional()])
    expiration_date = DateField('Expiration Date', validators=[DataRequired()])
    pickup_start_time = TimeField('Pickup Start Time', validators=[DataRequired()])
    pickup_end_time = TimeField('Pickup End Time', validators=[DataRequired()])
    is_perishable = BooleanField('Perishable', default=True)
    storage_requirements = TextAreaField('Storage Requirements', validators=[Optional()])
    use_registered_location = BooleanField('Use my registered address for pickup', default=True)
    pickup_address = TextAreaField('Pickup Address', validators=[Optional()])
    pickup_latitude = FloatField('Latitude', validators=[Optional(), NumberRange(min=-90, max=90)])
    pickup_longitude = FloatField('Longitude', validators=[Optional(), NumberRange(min=-180, max=180)])

    def validate_quantity(self, field):
        if field.data is not None and field.data <= 0:
            raise ValidationError('Quantity must be greater than zero')

    def validate_quantity_unit(self, field):
        if field.data not in QUANTITY_UNITS:
            raise ValidationError('Unknown unit')

    def validate_expiration_date(self, field):
        if field.data and self.prepared_date.data and field.data < self.prepared_date.data:
            raise ValidationError('Expiration date cannot be before the prepared date')

    def validate_pickup_end_time(self, field):
        start = self.pickup_start_time.data
        if field.data and start and field.data <= start:
            raise ValidationError('Pickup window must end after it starts')

    def validate(self, extra_validators=None):
        valid = super().validate(extra_validators=extra_validators)
        if not self.use_registered_location.data and (
                not self.pickup_address.data
                or self.pickup_latitude.data is None
                or self.pickup_longitude.data is None):
            self.pickup_address.errors.append('Please provide a pickup location')
            return False
        return valid

class FeedbackForm(FlaskForm):
    rating = IntegerField('Rating', validators=[
        DataRequired(message='Please enter a valid rating between 1 and 5.'),
        NumberRange(min=1, max=5, message='Please enter a valid rating between 1 and 5.')
    ])
    feedback = TextAreaField('Feedback', validators=[Optional(), Length(max=1000)])
