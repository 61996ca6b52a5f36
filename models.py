# ---------------- IMPORTS ----------------
# These tools help us define tables for our database and track time
from datetime import datetime, timezone

from flask_login import UserMixin
from flask_sqlalchemy import SQLAlchemy

import booking_rules

# Initialize the database object
db = SQLAlchemy()

# Verification states for a user's identity documents
UNVERIFIED = 'unverified'
VERIFICATION_PENDING = 'pending'
VERIFIED = 'verified'
REJECTED = 'rejected'
VERIFICATION_STATUSES = (UNVERIFIED, VERIFICATION_PENDING, VERIFIED, REJECTED)


def utcnow():
    """Naive UTC timestamp, the form every DateTime column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def iso(value):
    return value.isoformat() if value else None


# ---------------- CAR TABLE ----------------
# This table stores cars available for rental
class Car(db.Model):
    id = db.Column(db.Integer, primary_key=True)  # Unique ID for each car
    name = db.Column(db.String(100), nullable=False)  # Car model name
    brand = db.Column(db.String(100), nullable=False)  # Manufacturer
    type = db.Column(db.String(50), nullable=False, index=True)  # Sedan, SUV, Electric...
    daily_price = db.Column(db.Float, nullable=False)  # Price per rental day
    price_with_driver = db.Column(db.Float, nullable=False, default=0)  # Extra per day with a driver
    featured = db.Column(db.Boolean, nullable=False, default=False)  # Shown on the home page
    description = db.Column(db.Text)
    image_url = db.Column(db.String(255))
    transmission = db.Column(db.String(50), default='Automatic')  # Auto or Manual
    fuel_type = db.Column(db.String(50), default='Gasoline')
    seats = db.Column(db.Integer, default=5)
    year = db.Column(db.Integer)
    mileage = db.Column(db.String(50))  # Fuel efficiency
    features = db.Column(db.JSON, nullable=False, default=list)  # List of feature labels
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    # Removing a car removes its bookings
    bookings = db.relationship('Booking', back_populates='car', cascade='all, delete-orphan')

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'brand': self.brand,
            'type': self.type,
            'dailyPrice': self.daily_price,
            'priceWithDriver': self.price_with_driver or 0,
            'featured': bool(self.featured),
            'description': self.description,
            'imageUrl': self.image_url,
            'transmission': self.transmission,
            'fuelType': self.fuel_type,
            'seats': self.seats,
            'year': self.year,
            'mileage': self.mileage,
            'features': list(self.features or []),
            'createdAt': iso(self.created_at),
            'updatedAt': iso(self.updated_at),
        }


# ---------------- USER TABLE ----------------
# This table stores all users (regular and admins)
class User(UserMixin, db.Model):
    id = db.Column(db.Integer, primary_key=True)  # Unique user ID
    email = db.Column(db.String(255), unique=True, nullable=False)  # Email address (must be unique)
    password = db.Column(db.String(255), nullable=False)  # Hashed password
    name = db.Column(db.String(100))  # Display name
    phone = db.Column(db.String(30))
    address = db.Column(db.Text)
    is_admin = db.Column(db.Boolean, nullable=False, default=False)  # Is this user an admin?

    # Identity verification
    id_card_url = db.Column(db.String(255))
    driver_license_url = db.Column(db.String(255))
    verification_status = db.Column(db.String(20), nullable=False, default=UNVERIFIED, index=True)
    verification_notes = db.Column(db.Text)  # Reviewer note or rejection reason

    created_at = db.Column(db.DateTime, default=utcnow)  # Account creation date
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    bookings = db.relationship('Booking', back_populates='user', cascade='all, delete-orphan')

    def submit_documents(self, id_card_url=None, driver_license_url=None):
        """Store uploaded document URLs and queue the user for review."""
        if not id_card_url and not driver_license_url:
            raise ValueError('At least one document is required')
        if id_card_url:
            self.id_card_url = id_card_url
        if driver_license_url:
            self.driver_license_url = driver_license_url
        self.verification_status = VERIFICATION_PENDING

    def review_documents(self, status, note=None):
        """Apply an admin decision on the uploaded documents."""
        if status not in (VERIFICATION_PENDING, VERIFIED, REJECTED):
            raise ValueError(f'Invalid verification status: {status}')
        if status == REJECTED and not (note and note.strip()):
            raise ValueError('A rejection reason is required')
        self.verification_status = status
        self.verification_notes = note

    def to_dict(self, detailed=False):
        data = {
            'id': self.id,
            'email': self.email,
            'name': self.name,
            'isAdmin': bool(self.is_admin),
            'verificationStatus': self.verification_status,
            'createdAt': iso(self.created_at),
            'updatedAt': iso(self.updated_at),
        }
        if detailed:
            data.update({
                'phone': self.phone,
                'address': self.address,
                'idCardUrl': self.id_card_url,
                'driverLicenseUrl': self.driver_license_url,
                'verificationNotes': self.verification_notes,
            })
        return data


# ---------------- BOOKING TABLE ----------------
# This table stores car bookings and their price breakdown
class Booking(db.Model):
    id = db.Column(db.Integer, primary_key=True)  # Unique booking ID
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)  # Who made the booking
    car_id = db.Column(db.Integer, db.ForeignKey('car.id'), nullable=False, index=True)  # Which car was booked
    customer_name = db.Column(db.String(100), nullable=False)
    customer_email = db.Column(db.String(255), nullable=False)
    customer_phone = db.Column(db.String(30), nullable=False)
    start_date = db.Column(db.DateTime, nullable=False)
    end_date = db.Column(db.DateTime, nullable=False)
    with_driver = db.Column(db.Boolean, nullable=False, default=False)
    notes = db.Column(db.Text)  # Special requests

    # Price breakdown
    base_price = db.Column(db.Float, nullable=False)
    driver_price = db.Column(db.Float, nullable=False, default=0)
    cleaning_fee = db.Column(db.Float, nullable=False, default=0)
    damage_fee = db.Column(db.Float, nullable=False, default=0)
    overtime_fee = db.Column(db.Float, nullable=False, default=0)
    fuel_fee = db.Column(db.Float, nullable=False, default=0)
    other_fees = db.Column(db.Float, nullable=False, default=0)
    fees_notes = db.Column(db.Text)
    total_price = db.Column(db.Float, nullable=False)
    deposit_amount = db.Column(db.Float, nullable=False)  # Fixed at creation
    paid_amount = db.Column(db.Float, nullable=False, default=0)
    payment_notes = db.Column(db.Text)

    status = db.Column(db.String(20), nullable=False, default=booking_rules.PENDING, index=True)
    verified_at = db.Column(db.DateTime)
    confirmed_at = db.Column(db.DateTime)
    delivered_at = db.Column(db.DateTime)
    delivery_date = db.Column(db.DateTime)
    delivery_notes = db.Column(db.Text)
    completed_at = db.Column(db.DateTime)
    actual_return_date = db.Column(db.DateTime)
    return_notes = db.Column(db.Text)

    created_at = db.Column(db.DateTime, default=utcnow, index=True)  # When booking was made
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    # Relationships - connect to other tables
    car = db.relationship('Car', back_populates='bookings')
    user = db.relationship('User', back_populates='bookings')

    def fees(self):
        return {name: getattr(self, name) or 0.0 for name in booking_rules.FEE_FIELDS}

    def to_dict(self, include_car=False):
        data = {
            'id': self.id,
            'carId': self.car_id,
            'carName': self.car.name if self.car else None,
            'userId': self.user_id,
            'customerName': self.customer_name,
            'customerEmail': self.customer_email,
            'customerPhone': self.customer_phone,
            'startDate': iso(self.start_date),
            'endDate': iso(self.end_date),
            'withDriver': bool(self.with_driver),
            'notes': self.notes,
            'basePrice': self.base_price,
            'driverPrice': self.driver_price,
            'cleaningFee': self.cleaning_fee,
            'damageFee': self.damage_fee,
            'overtimeFee': self.overtime_fee,
            'fuelFee': self.fuel_fee,
            'otherFees': self.other_fees,
            'feesNotes': self.fees_notes,
            'totalPrice': self.total_price,
            'depositAmount': self.deposit_amount,
            'paidAmount': self.paid_amount,
            'paymentNotes': self.payment_notes,
            'paymentStatus': booking_rules.payment_status(
                self.paid_amount, self.deposit_amount, self.total_price),
            'status': self.status,
            'nextStatus': booking_rules.next_status(self.status),
            'verifiedAt': iso(self.verified_at),
            'confirmedAt': iso(self.confirmed_at),
            'deliveredAt': iso(self.delivered_at),
            'deliveryDate': iso(self.delivery_date),
            'deliveryNotes': self.delivery_notes,
            'completedAt': iso(self.completed_at),
            'actualReturnDate': iso(self.actual_return_date),
            'returnNotes': self.return_notes,
            'createdAt': iso(self.created_at),
            'updatedAt': iso(self.updated_at),
        }
        if self.user is not None:
            data['user'] = {'id': self.user.id, 'name': self.user.name, 'email': self.user.email}
        if include_car and self.car is not None:
            data['car'] = self.car.to_dict()
        return data


# ---------------- APP CONFIG TABLE ----------------
# Key/value store for the setup flag and every admin setting
class AppConfig(db.Model):
    __tablename__ = 'app_config'

    key = db.Column(db.String(100), primary_key=True)
    value = db.Column(db.Text, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    @classmethod
    def get_value(cls, key, default=None):
        row = db.session.get(cls, key)
        return row.value if row is not None else default

    @classmethod
    def set_value(cls, key, value):
        """Insert or update a key. The caller commits."""
        row = db.session.get(cls, key)
        if row is None:
            row = cls(key=key, value=value)
            db.session.add(row)
        else:
            row.value = value
        return row

    @classmethod
    def is_configured(cls):
        return cls.get_value('configured') == 'true'

    @classmethod
    def as_dict(cls):
        return {row.key: row.value for row in db.session.scalars(db.select(cls))}
