# ---------------- IMPORTS ----------------
# Forms validate every JSON body, multipart upload and list query the API accepts.
import math
from datetime import datetime, timezone

from flask_wtf import FlaskForm
from flask_wtf.file import FileAllowed, FileField
from wtforms import BooleanField, Field, StringField, TextAreaField
from wtforms.validators import AnyOf, DataRequired, Email, Length, NumberRange, Optional, StopValidation, URL

from booking_rules import BOOKING_STATUSES, FEE_FIELDS

SORT_CHOICES = ('price_asc', 'price_desc', 'name_asc', 'name_desc')
DOCUMENT_EXTENSIONS = ('png', 'jpg', 'jpeg', 'gif', 'webp', 'pdf')


# ---------------- CUSTOM FIELDS ----------------
class NumberField(Field):
    """Numeric field that accepts JSON numbers or numeric strings."""

    def __init__(self, label=None, validators=None, coerce=float, **kwargs):
        super().__init__(label, validators, **kwargs)
        self.coerce = coerce

    def _value(self):
        return '' if self.data is None else str(self.data)

    def process_formdata(self, valuelist):
        if not valuelist:
            return
        value = valuelist[0]
        if value is None or value == '':
            self.data = None
            return
        if isinstance(value, bool):
            self.data = None
            raise ValueError(self.gettext('Not a valid number.'))
        try:
            self.data = self.coerce(value)
        except (TypeError, ValueError, OverflowError):
            self.data = None
            raise ValueError(self.gettext('Not a valid number.'))
        # Infinity and NaN cannot be stored or serialized as JSON
        if not math.isfinite(self.data):
            self.data = None
            raise ValueError(self.gettext('Not a valid number.'))


class DateTimeISOField(Field):
    """ISO-8601 date or datetime; aware values are converted to naive UTC."""

    def _value(self):
        return self.data.isoformat() if self.data else ''

    def process_formdata(self, valuelist):
        if not valuelist or not valuelist[0]:
            self.data = None
            return
        value = valuelist[0]
        if not isinstance(value, str):
            self.data = None
            raise ValueError(self.gettext('Not a valid datetime value.'))
        try:
            parsed = datetime.fromisoformat(value.strip().replace('Z', '+00:00'))
        except ValueError:
            self.data = None
            raise ValueError(self.gettext('Not a valid datetime value.'))
        if parsed.tzinfo is not None:
            parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
        self.data = parsed


class StringListField(Field):
    """List of strings, sent as a JSON array or repeated form keys."""

    def process_formdata(self, valuelist):
        self.data = [str(item).strip() for item in valuelist if item is not None and str(item).strip()]


class FlagField(BooleanField):
    """Checkbox that also understands JSON ``false`` and ``null``."""
    false_values = (False, None, 'false', 'False', '0', '')


def required_value(form, field):
    """Like InputRequired, but a falsy value such as 0 still counts as present."""
    if not field.raw_data or field.raw_data[0] is None or field.raw_data[0] == '':
        raise StopValidation(field.gettext('This field is required.'))


def supplied(field):
    """True when the request carried a value for this field."""
    return bool(field.raw_data)


# ---------------- BASE FORM ----------------
# JSON API forms: the auth cookie is SameSite, so no CSRF token is exchanged
class ApiForm(FlaskForm):
    class Meta:
        csrf = False

    def error_details(self):
        return {field.name: field.errors for field in self if field.errors}


# ---------------- AUTH FORMS ----------------
class RegistrationForm(ApiForm):
    email = StringField('Email Address', validators=[DataRequired(), Email()])
    password = StringField('Password', validators=[DataRequired(), Length(min=8)])
    name = StringField('Full Name', validators=[Optional(), Length(max=100)])


class LoginForm(ApiForm):
    email = StringField('Email Address', validators=[DataRequired(), Email()])
    password = StringField('Password', validators=[DataRequired()])


# ---------------- CAR FORMS ----------------
# This form is for admin to add or edit cars
class CarForm(ApiForm):
    name = StringField('Car Name', validators=[DataRequired(), Length(max=100)])
    brand = StringField('Brand', validators=[DataRequired(), Length(max=100)])
    type = StringField('Type', validators=[DataRequired(), Length(max=50)])
    daily_price = NumberField('Daily Price', name='dailyPrice',
                              validators=[required_value, NumberRange(min=0.01)])
    price_with_driver = NumberField('Price With Driver', name='priceWithDriver',
                                    validators=[Optional(), NumberRange(min=0)])
    featured = FlagField('Featured')
    description = TextAreaField('Description', validators=[Optional()])
    image_url = StringField('Image URL', name='imageUrl', validators=[Optional(), Length(max=255)])
    transmission = StringField('Transmission', validators=[Optional(), Length(max=50)])
    fuel_type = StringField('Fuel Type', name='fuelType', validators=[Optional(), Length(max=50)])
    seats = NumberField('Seats', coerce=int, validators=[Optional(), NumberRange(min=1, max=60)])
    year = NumberField('Year', coerce=int, validators=[Optional(), NumberRange(min=1900, max=2100)])
    mileage = StringField('Mileage', validators=[Optional(), Length(max=50)])
    features = StringListField('Features')


class CarQueryForm(ApiForm):
    search = StringField('Search', validators=[Optional(), Length(max=100)])
    type = StringField('Type', validators=[Optional(), Length(max=50)])
    featured = StringField('Featured', validators=[Optional(), AnyOf(['true', 'false'])])
    sort_by = StringField('Sort By', name='sortBy', validators=[Optional(), AnyOf(SORT_CHOICES)])
    page = NumberField('Page', coerce=int, default=1, validators=[Optional(), NumberRange(min=1)])
    limit = NumberField('Limit', coerce=int, default=10, validators=[Optional(), NumberRange(min=1, max=100)])


# ---------------- BOOKING FORMS ----------------
# This form is for users to book cars
class BookingForm(ApiForm):
    car_id = NumberField('Car', name='carId', coerce=int, validators=[required_value])
    start_date = DateTimeISOField('Start Date', name='startDate', validators=[DataRequired()])
    end_date = DateTimeISOField('End Date', name='endDate', validators=[DataRequired()])
    with_driver = FlagField('With Driver', name='withDriver')
    customer_name = StringField('Full Name', name='customerName', validators=[DataRequired(), Length(max=100)])
    customer_email = StringField('Email Address', name='customerEmail', validators=[DataRequired(), Email()])
    customer_phone = StringField('Contact Number', name='customerPhone', validators=[DataRequired(), Length(max=30)])
    notes = TextAreaField('Notes/Comments', validators=[Optional()])


class BookingUpdateForm(ApiForm):
    customer_name = StringField('Full Name', name='customerName', validators=[Optional(), Length(min=1, max=100)])
    customer_email = StringField('Email Address', name='customerEmail', validators=[Optional(), Email()])
    customer_phone = StringField('Contact Number', name='customerPhone', validators=[Optional(), Length(min=1, max=30)])
    notes = TextAreaField('Notes/Comments')


class BookingQueryForm(ApiForm):
    status = StringField('Status', validators=[Optional(), AnyOf(BOOKING_STATUSES)])
    page = NumberField('Page', coerce=int, default=1, validators=[Optional(), NumberRange(min=1)])
    limit = NumberField('Limit', coerce=int, default=10, validators=[Optional(), NumberRange(min=1, max=100)])


class StatusUpdateForm(ApiForm):
    status = StringField('Status', validators=[DataRequired(), AnyOf(BOOKING_STATUSES)])
    notes = TextAreaField('Notes')


class ChargesForm(ApiForm):
    cleaning_fee = NumberField('Cleaning Fee', name='cleaningFee', validators=[Optional(), NumberRange(min=0)])
    damage_fee = NumberField('Damage Fee', name='damageFee', validators=[Optional(), NumberRange(min=0)])
    overtime_fee = NumberField('Overtime Fee', name='overtimeFee', validators=[Optional(), NumberRange(min=0)])
    fuel_fee = NumberField('Fuel Fee', name='fuelFee', validators=[Optional(), NumberRange(min=0)])
    other_fees = NumberField('Other Fees', name='otherFees', validators=[Optional(), NumberRange(min=0)])
    fees_notes = TextAreaField('Fees Notes', name='feesNotes')

    def fee_updates(self):
        """Fees present in the request, keyed by column name."""
        return {name: getattr(self, name).data for name in FEE_FIELDS if supplied(getattr(self, name))}


class PaymentForm(ApiForm):
    paid_amount = NumberField('Paid Amount', name='paidAmount', validators=[required_value, NumberRange(min=0)])
    payment_notes = TextAreaField('Payment Notes', name='paymentNotes')


# ---------------- USER FORMS ----------------
# This form is for admin to add users
class UserForm(ApiForm):
    email = StringField('Email Address', validators=[DataRequired(), Email()])
    name = StringField('Name', validators=[DataRequired(), Length(max=100)])
    password = StringField('Password', validators=[DataRequired(), Length(min=6)])
    is_admin = FlagField('Admin', name='isAdmin')


# This form is for admin to edit users; every field is optional
class UserUpdateForm(ApiForm):
    email = StringField('Email Address', validators=[Optional(), Email()])
    name = StringField('Name', validators=[Optional(), Length(min=1, max=100)])
    password = StringField('Password', validators=[Optional(), Length(min=6)])
    is_admin = FlagField('Admin', name='isAdmin')


class ProfileForm(ApiForm):
    name = StringField('Name', validators=[Optional(), Length(min=1, max=100)])
    phone = StringField('Phone', validators=[Optional(), Length(max=30)])
    address = TextAreaField('Address', validators=[Optional(), Length(max=500)])


class UserQueryForm(ApiForm):
    search = StringField('Search', validators=[Optional(), Length(max=100)])
    page = NumberField('Page', coerce=int, default=1, validators=[Optional(), NumberRange(min=1)])
    limit = NumberField('Limit', coerce=int, default=10, validators=[Optional(), NumberRange(min=1, max=100)])


class DocumentUploadForm(ApiForm):
    id_card = FileField('ID Card', name='idCard',
                        validators=[FileAllowed(DOCUMENT_EXTENSIONS, 'Images or PDF only.')])
    driver_license = FileField('Driver License', name='driverLicense',
                               validators=[FileAllowed(DOCUMENT_EXTENSIONS, 'Images or PDF only.')])


class VerificationForm(ApiForm):
    status = StringField('Status', validators=[DataRequired(), AnyOf(['pending', 'verified', 'rejected'])])
    note = TextAreaField('Note')

    def validate_note(self, field):
        if self.status.data == 'rejected' and not (field.data and field.data.strip()):
            raise StopValidation('A rejection reason is required.')


# ---------------- SETUP FORMS ----------------
class SetupForm(ApiForm):
    app_url = StringField('App URL', name='appUrl', validators=[DataRequired(), URL(require_tld=False)])
    server_port = NumberField('Server Port', name='serverPort', coerce=int,
                              validators=[required_value, NumberRange(min=1, max=65535)])
    client_port = NumberField('Client Port', name='clientPort', coerce=int,
                              validators=[required_value, NumberRange(min=1, max=65535)])
    db_mode = StringField('Database Mode', name='dbMode', validators=[DataRequired(), AnyOf(['local', 'external'])])
    db_host = StringField('Database Host', name='dbHost')
    db_port = NumberField('Database Port', name='dbPort', coerce=int, validators=[Optional(), NumberRange(min=1, max=65535)])
    db_name = StringField('Database Name', name='dbName')
    db_user = StringField('Database User', name='dbUser')
    db_password = StringField('Database Password', name='dbPassword')
    db_ssl_mode = StringField('SSL Mode', name='dbSslMode')
    admin_email = StringField('Admin Email', name='adminEmail', validators=[DataRequired(), Email()])
    admin_password = StringField('Admin Password', name='adminPassword', validators=[DataRequired(), Length(min=8)])
    admin_name = StringField('Admin Name', name='adminName', validators=[DataRequired(), Length(max=100)])


class TestDatabaseForm(ApiForm):
    db_host = StringField('Database Host', name='dbHost', validators=[DataRequired()])
    db_port = NumberField('Database Port', name='dbPort', coerce=int,
                          validators=[required_value, NumberRange(min=1, max=65535)])
    db_name = StringField('Database Name', name='dbName', validators=[DataRequired()])
    db_user = StringField('Database User', name='dbUser', validators=[DataRequired()])
    db_password = StringField('Database Password', name='dbPassword')
    db_ssl_mode = StringField('SSL Mode', name='dbSslMode')


# ---------------- SETTINGS FORM ----------------
# Admin settings stored as AppConfig rows; keys are the field names
class SettingsForm(ApiForm):
    # SMTP
    smtp_enabled = FlagField()
    smtp_host = StringField()
    smtp_port = StringField()
    smtp_secure = FlagField()
    smtp_user = StringField()
    smtp_password = StringField()
    smtp_from_email = StringField(validators=[Optional(), Email()])
    smtp_from_name = StringField()

    # General
    site_name = StringField()
    site_description = StringField()
    contact_email = StringField(validators=[Optional(), Email()])
    contact_phone = StringField()

    # Booking
    min_booking_days = StringField()
    max_booking_days = StringField()
    advance_booking_days = StringField()
    auto_approve_bookings = FlagField()

    # Notifications
    email_notifications = FlagField()
    sms_notifications = FlagField()
    booking_notifications = FlagField()
    payment_notifications = FlagField()

    # Security
    require_email_verification = FlagField()
    require_phone_verification = FlagField()
    enable_two_factor = FlagField()
    session_timeout = StringField()

    def supplied_values(self):
        """String values for the settings present in the request."""
        values = {}
        for field in self:
            if not supplied(field):
                continue
            if isinstance(field, FlagField):
                values[field.name] = 'true' if field.data else 'false'
            else:
                values[field.name] = '' if field.data is None else str(field.data)
        return values
