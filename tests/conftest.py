"""
Shared pytest fixtures: an in-memory database and Flask test clients per role.
"""
import os
import tempfile

# Must be set before the application module reads its configuration
os.environ['DATABASE_URL'] = 'sqlite://'
os.environ['SECRET_KEY'] = 'test-secret-key'
os.environ['UPLOAD_FOLDER'] = tempfile.mkdtemp(prefix='car-rental-uploads-')

import pytest
from werkzeug.security import generate_password_hash

from app import app as flask_app
from models import AppConfig, Car, User, db

ADMIN_EMAIL = 'admin@example.com'
USER_EMAIL = 'driver@example.com'
OTHER_EMAIL = 'other@example.com'
PASSWORD = 'password123'


def _create_user(email, is_admin=False, name='Test User'):
    # Low iteration count keeps the suite fast; verification reads it from the hash
    user = User(
        email=email,
        name=name,
        password=generate_password_hash(PASSWORD, method='pbkdf2:sha256:1000'),
        is_admin=is_admin,
    )
    db.session.add(user)
    db.session.commit()
    return user.id


def _login(app, email):
    client = app.test_client()
    response = client.post('/api/auth/login', json={'email': email, 'password': PASSWORD})
    assert response.status_code == 200, response.get_json()
    return client


@pytest.fixture
def app(tmp_path):
    """Application with fresh tables for every test"""
    flask_app.config.update(
        TESTING=True,
        UPLOAD_FOLDER=str(tmp_path / 'uploads'),
        STRICT_STATUS_TRANSITIONS=False,
    )
    with flask_app.app_context():
        db.create_all()
    yield flask_app
    with flask_app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def configured(app):
    """Marks first-run setup as done"""
    with app.app_context():
        AppConfig.set_value('configured', 'true')
        db.session.commit()


@pytest.fixture
def admin_id(app):
    with app.app_context():
        return _create_user(ADMIN_EMAIL, is_admin=True, name='Admin')


@pytest.fixture
def user_id(app):
    with app.app_context():
        return _create_user(USER_EMAIL, name='Driver')


@pytest.fixture
def other_user_id(app):
    with app.app_context():
        return _create_user(OTHER_EMAIL, name='Other Driver')


@pytest.fixture
def admin_client(app, configured, admin_id):
    return _login(app, ADMIN_EMAIL)


@pytest.fixture
def user_client(app, configured, user_id):
    return _login(app, USER_EMAIL)


@pytest.fixture
def other_client(app, configured, other_user_id):
    return _login(app, OTHER_EMAIL)


@pytest.fixture
def car_id(app):
    """Car priced at 500000 per day, 200000 extra per day with a driver"""
    with app.app_context():
        car = Car(
            name='Toyota Fortuner',
            brand='Toyota',
            type='SUV',
            daily_price=500000,
            price_with_driver=200000,
            featured=True,
        )
        db.session.add(car)
        db.session.commit()
        return car.id


@pytest.fixture
def booking_payload(car_id):
    """Three-day booking with a driver"""
    return {
        'carId': car_id,
        'startDate': '2025-03-01T08:00:00.000Z',
        'endDate': '2025-03-04T08:00:00.000Z',
        'withDriver': True,
        'customerName': 'Nguyen Van A',
        'customerEmail': 'customer@example.com',
        'customerPhone': '0901234567',
        'notes': 'Airport pickup',
    }


@pytest.fixture
def booking_id(user_client, booking_payload):
    response = user_client.post('/api/bookings', json=booking_payload)
    assert response.status_code == 201, response.get_json()
    return response.get_json()['booking']['id']
