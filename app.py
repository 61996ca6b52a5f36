import logging
import os
import uuid

from flask import Flask, abort, jsonify, request, send_from_directory
from flask_cors import CORS
from flask_login import current_user, login_required
from sqlalchemy import create_engine, func, or_, text
from sqlalchemy.engine import URL
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException
from werkzeug.security import check_password_hash, generate_password_hash
from werkzeug.utils import secure_filename

import booking_rules
from auth import Role, admin_required, clear_token_cookie, login_manager, set_token_cookie
from commands import register_commands
from config import Config
from forms import (
    BookingForm, BookingQueryForm, BookingUpdateForm, CarForm, CarQueryForm, ChargesForm,
    DocumentUploadForm, LoginForm, PaymentForm, ProfileForm, RegistrationForm, SettingsForm,
    SetupForm, StatusUpdateForm, TestDatabaseForm, UserForm, UserQueryForm, UserUpdateForm,
    VerificationForm, supplied,
)
from models import AppConfig, Booking, Car, User, db, utcnow
from models import VERIFICATION_PENDING, VERIFIED

app = Flask(__name__)
app.config.from_object(Config)

logging.basicConfig(
    level=getattr(logging, app.config['LOG_LEVEL'], logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

CORS(app, resources={r'/api/*': {'origins': [app.config['APP_URL']]}}, supports_credentials=True)

db.init_app(app)
login_manager.init_app(app)
register_commands(app)

# Business routes answer 503 until first-run setup has completed
GUARDED_PREFIXES = ('/api/auth', '/api/bookings', '/api/users', '/api/settings')

CAR_ORDERING = {
    'price_asc': Car.daily_price.asc(),
    'price_desc': Car.daily_price.desc(),
    'name_asc': Car.name.asc(),
    'name_desc': Car.name.desc(),
}

PASSWORD_METHOD = 'pbkdf2:sha256'


# Helper Functions
def hash_password(password):
    return generate_password_hash(password, method=PASSWORD_METHOD)


def normalize_email(email):
    return (email or '').strip().lower()


def validation_failed(form):
    """400 response carrying the per-field form errors."""
    return jsonify({'error': 'Validation failed', 'details': form.error_details()}), 400


def paginated(pagination, key, items):
    return jsonify({
        key: items,
        'pagination': {
            'page': pagination.page,
            'limit': pagination.per_page,
            'total': pagination.total,
            'totalPages': pagination.pages,
        },
    })


def save_upload(file_storage, kind, user_id):
    """Store an uploaded document under a unique name and return its public URL."""
    filename = secure_filename(file_storage.filename or '')
    extension = filename.rsplit('.', 1)[1].lower() if '.' in filename else 'bin'
    stored_name = f"{kind}-{user_id}-{uuid.uuid4().hex}.{extension}"
    folder = app.config['UPLOAD_FOLDER']
    os.makedirs(folder, exist_ok=True)
    file_storage.save(os.path.join(folder, stored_name))
    return f"/uploads/{stored_name}"


def months_back(now, count):
    """First day of the month ``count`` months before ``now``'s month."""
    year, month = now.year, now.month - count
    while month <= 0:
        month += 12
        year -= 1
    return now.replace(year=year, month=month, day=1, hour=0, minute=0, second=0, microsecond=0)


# Error Handlers
@app.errorhandler(HTTPException)
def handle_http_error(error):
    return jsonify({'error': error.description}), error.code


@app.errorhandler(Exception)
def handle_unexpected_error(error):
    db.session.rollback()
    logger.exception(f"Unhandled error on {request.method} {request.path}: {error}")
    return jsonify({'error': 'Internal server error'}), 500


# Setup Guard
@app.before_request
def setup_guard():
    """Block business routes until the persisted configured flag is set."""
    if request.method == 'OPTIONS':
        return None
    path = request.path
    if not any(path == prefix or path.startswith(prefix + '/') for prefix in GUARDED_PREFIXES):
        return None
    try:
        configured = AppConfig.is_configured()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Setup check failed: {e}")
        return jsonify({'error': 'Setup check failed'}), 500
    if not configured:
        return jsonify({
            'error': 'Application not configured',
            'message': 'Please complete setup first',
        }), 503
    return None


# Health Routes
@app.route('/api/health')
def health():
    """Report database connectivity and whether setup has completed."""
    timestamp = utcnow().isoformat()
    try:
        db.session.execute(text('SELECT 1'))
        configured = AppConfig.is_configured()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Health check failed: {e}")
        return jsonify({
            'status': 'error',
            'timestamp': timestamp,
            'database': 'disconnected',
            'error': str(e),
        }), 503

    return jsonify({
        'status': 'ok' if configured else 'needs_setup',
        'timestamp': timestamp,
        'database': 'connected',
        'configured': configured,
    })


# Setup Routes
@app.route('/api/setup', methods=['GET'])
def setup_status():
    config = AppConfig.as_dict()
    return jsonify({
        'configured': config.get('configured') == 'true',
        'config': {
            'appUrl': config.get('app_url'),
            'serverPort': int(config['server_port']) if config.get('server_port') else None,
            'clientPort': int(config['client_port']) if config.get('client_port') else None,
            'dbMode': config.get('db_mode'),
        },
    })


@app.route('/api/setup', methods=['POST'])
def run_setup():
    """Persist first-run configuration, create the admin and flip the configured flag."""
    if AppConfig.is_configured():
        logger.warning("Setup requested on an already configured application")
        abort(403, description='Application already configured')

    form = SetupForm()
    if not form.validate_on_submit():
        return validation_failed(form)

    values = {
        'app_url': form.app_url.data,
        'server_port': str(form.server_port.data),
        'client_port': str(form.client_port.data),
        'db_mode': form.db_mode.data,
    }
    if form.db_mode.data == 'external':
        values.update({
            'db_host': form.db_host.data or '',
            'db_port': str(form.db_port.data) if form.db_port.data else '',
            'db_name': form.db_name.data or '',
            'db_user': form.db_user.data or '',
            'db_sslmode': form.db_ssl_mode.data or 'prefer',
        })
    for key, value in values.items():
        AppConfig.set_value(key, value)

    email = normalize_email(form.admin_email.data)
    admin = db.session.execute(db.select(User).filter_by(email=email)).scalar_one_or_none()
    if admin is None:
        admin = User(email=email)
    admin.name = form.admin_name.data
    admin.password = hash_password(form.admin_password.data)
    admin.is_admin = True
    db.session.add(admin)

    AppConfig.set_value('configured', 'true')
    db.session.commit()
    logger.info(f"Setup completed, admin account {email}")
    return jsonify({'success': True, 'message': 'Setup completed successfully'})


@app.route('/api/setup/test-db', methods=['POST'])
def test_database():
    """Try a round trip against the PostgreSQL server described in the request."""
    form = TestDatabaseForm()
    if not form.validate_on_submit():
        return validation_failed(form)

    url = URL.create(
        'postgresql',
        username=form.db_user.data,
        password=form.db_password.data or None,
        host=form.db_host.data,
        port=form.db_port.data,
        database=form.db_name.data,
        query={'sslmode': form.db_ssl_mode.data or 'prefer'},
    )
    engine = None
    try:
        engine = create_engine(url)
        with engine.connect() as connection:
            connection.execute(text('SELECT 1'))
    except (SQLAlchemyError, ImportError) as e:
        logger.warning(f"Database connection test failed for {form.db_host.data}: {e}")
        return jsonify({'success': False, 'error': str(e) or 'Database connection failed'}), 400
    finally:
        if engine is not None:
            engine.dispose()
    return jsonify({'success': True, 'message': 'Database connection successful'})


# Authentication Routes
@app.route('/api/auth/register', methods=['POST'])
def register():
    """Create a regular user account."""
    form = RegistrationForm()
    if not form.validate_on_submit():
        return validation_failed(form)

    email = normalize_email(form.email.data)
    if db.session.execute(db.select(User).filter_by(email=email)).scalar_one_or_none():
        abort(400, description='Email already registered')

    user = User(email=email, name=form.name.data or None, password=hash_password(form.password.data))
    db.session.add(user)
    db.session.commit()
    logger.info(f"Registered user {user.id} ({email})")
    return jsonify({'user': user.to_dict()}), 201


@app.route('/api/auth/login', methods=['POST'])
def login():
    """Check credentials and hand out the auth cookie."""
    form = LoginForm()
    if not form.validate_on_submit():
        return validation_failed(form)

    email = normalize_email(form.email.data)
    user = db.session.execute(db.select(User).filter_by(email=email)).scalar_one_or_none()
    if user is None or not check_password_hash(user.password, form.password.data):
        logger.warning(f"Failed login for {email}")
        abort(401, description='Invalid credentials')

    response = jsonify({'user': user.to_dict()})
    return set_token_cookie(response, user)


@app.route('/api/auth/logout', methods=['POST'])
def logout():
    return clear_token_cookie(jsonify({'message': 'Logged out successfully'}))


@app.route('/api/auth/me')
@login_required
def me():
    return jsonify({'user': current_user.to_dict()})


# Car Routes
@app.route('/api/cars', methods=['GET'])
def list_cars():
    """Public catalog with search, type filter, sorting and pagination."""
    form = CarQueryForm(formdata=request.args)
    if not form.validate():
        return validation_failed(form)

    query = db.select(Car)
    if form.search.data:
        pattern = f"%{form.search.data}%"
        query = query.where(or_(Car.name.ilike(pattern), Car.brand.ilike(pattern)))
    if form.type.data:
        query = query.where(Car.type == form.type.data)
    if form.featured.data:
        query = query.where(Car.featured.is_(form.featured.data == 'true'))

    if form.sort_by.data in CAR_ORDERING:
        query = query.order_by(CAR_ORDERING[form.sort_by.data], Car.id)
    else:
        query = query.order_by(Car.created_at.desc(), Car.id.desc())

    pagination = db.paginate(query, page=form.page.data or 1, per_page=form.limit.data or 10, error_out=False)
    return paginated(pagination, 'cars', [car.to_dict() for car in pagination.items])


@app.route('/api/cars/<int:car_id>', methods=['GET'])
def get_car(car_id):
    car = db.get_or_404(Car, car_id, description='Car not found')
    return jsonify({'car': car.to_dict()})


def apply_car_form(car, form):
    car.name = form.name.data
    car.brand = form.brand.data
    car.type = form.type.data
    car.daily_price = form.daily_price.data
    car.price_with_driver = form.price_with_driver.data or 0
    car.featured = form.featured.data
    car.description = form.description.data or None
    car.image_url = form.image_url.data or None
    car.transmission = form.transmission.data or 'Automatic'
    car.fuel_type = form.fuel_type.data or 'Gasoline'
    car.seats = form.seats.data or 5
    car.year = form.year.data
    car.mileage = form.mileage.data or None
    car.features = form.features.data or []


@app.route('/api/cars', methods=['POST'])
@admin_required
def create_car():
    form = CarForm()
    if not form.validate_on_submit():
        return validation_failed(form)

    car = Car()
    apply_car_form(car, form)
    db.session.add(car)
    db.session.commit()
    logger.info(f"Car created: {car.brand} {car.name} (ID: {car.id})")
    return jsonify({'car': car.to_dict()}), 201


@app.route('/api/cars/<int:car_id>', methods=['PUT'])
@admin_required
def update_car(car_id):
    car = db.get_or_404(Car, car_id, description='Car not found')
    form = CarForm()
    if not form.validate_on_submit():
        return validation_failed(form)

    apply_car_form(car, form)
    db.session.commit()
    logger.info(f"Car {car_id} updated")
    return jsonify({'car': car.to_dict()})


@app.route('/api/cars/<int:car_id>', methods=['DELETE'])
@admin_required
def delete_car(car_id):
    """Delete a car together with its bookings."""
    car = db.get_or_404(Car, car_id, description='Car not found')
    db.session.delete(car)
    db.session.commit()
    logger.info(f"Car {car_id} deleted")
    return jsonify({'message': 'Car deleted successfully'})


# Booking Routes
@app.route('/api/bookings', methods=['GET'])
@login_required
def list_bookings():
    """Admins page through every booking; other users see their own."""
    form = BookingQueryForm(formdata=request.args)
    if not form.validate():
        return validation_failed(form)

    query = db.select(Booking)
    if Role.of(current_user) is not Role.ADMIN:
        query = query.where(Booking.user_id == current_user.id)
    if form.status.data:
        query = query.where(Booking.status == form.status.data)
    query = query.order_by(Booking.created_at.desc(), Booking.id.desc())

    pagination = db.paginate(query, page=form.page.data or 1, per_page=form.limit.data or 10, error_out=False)
    return paginated(pagination, 'bookings', [booking.to_dict() for booking in pagination.items])


@app.route('/api/bookings/stats')
@admin_required
def booking_stats():
    """Counts per status, revenue totals and revenue for the last six months."""
    counts = dict(db.session.execute(
        db.select(Booking.status, func.count(Booking.id)).group_by(Booking.status)
    ).all())
    revenue_filter = Booking.status.in_(booking_rules.REVENUE_STATUSES)
    total_revenue = db.session.scalar(
        db.select(func.coalesce(func.sum(Booking.total_price), 0)).where(revenue_filter))
    total_paid = db.session.scalar(db.select(func.coalesce(func.sum(Booking.paid_amount), 0)))

    since = months_back(utcnow(), 5)
    revenue_by_month = {}
    rows = db.session.execute(
        db.select(Booking.created_at, Booking.total_price)
        .where(revenue_filter, Booking.created_at >= since)
    )
    for created_at, total_price in rows:
        month = created_at.strftime('%Y-%m')
        revenue_by_month[month] = revenue_by_month.get(month, 0) + (total_price or 0)

    return jsonify({
        'totalBookings': sum(counts.values()),
        'byStatus': {status: counts.get(status, 0) for status in booking_rules.BOOKING_STATUSES},
        'pendingBookings': counts.get(booking_rules.PENDING, 0),
        'confirmedBookings': counts.get(booking_rules.CONFIRMED, 0),
        'completedBookings': counts.get(booking_rules.COMPLETED, 0),
        'cancelledBookings': counts.get(booking_rules.CANCELLED, 0),
        'totalRevenue': total_revenue,
        'totalPaid': total_paid,
        'revenueByMonth': dict(sorted(revenue_by_month.items())),
    })


@app.route('/api/bookings/<int:booking_id>', methods=['GET'])
@login_required
def get_booking(booking_id):
    booking = db.get_or_404(Booking, booking_id, description='Booking not found')
    if Role.of(current_user) is not Role.ADMIN and booking.user_id != current_user.id:
        abort(403, description='Forbidden')
    return jsonify({'booking': booking.to_dict(include_car=True)})


@app.route('/api/bookings', methods=['POST'])
@login_required
def create_booking():
    """Price and store a booking for the signed-in user."""
    form = BookingForm()
    if not form.validate_on_submit():
        return validation_failed(form)

    car = db.session.get(Car, form.car_id.data)
    if car is None:
        abort(404, description='Car not found')

    try:
        price = booking_rules.quote(
            car.daily_price, car.price_with_driver,
            form.start_date.data, form.end_date.data, form.with_driver.data,
        )
    except booking_rules.PricingError as e:
        abort(400, description=str(e))

    booking = Booking(
        user_id=current_user.id,
        car_id=car.id,
        customer_name=form.customer_name.data,
        customer_email=form.customer_email.data,
        customer_phone=form.customer_phone.data,
        start_date=form.start_date.data,
        end_date=form.end_date.data,
        with_driver=form.with_driver.data,
        notes=form.notes.data or None,
        base_price=price.base_price,
        driver_price=price.driver_price,
        total_price=price.total_price,
        deposit_amount=price.deposit_amount,
        paid_amount=0,
        status=booking_rules.PENDING,
    )
    db.session.add(booking)
    db.session.commit()
    logger.info(f"Booking {booking.id} created by user {current_user.id} for car {car.id}: "
                f"{price.days} days, total {price.total_price}")
    return jsonify({'booking': booking.to_dict(include_car=True)}), 201


@app.route('/api/bookings/<int:booking_id>', methods=['PATCH'])
@admin_required
def update_booking(booking_id):
    """Edit customer contact details and notes."""
    booking = db.get_or_404(Booking, booking_id, description='Booking not found')
    form = BookingUpdateForm()
    if not form.validate_on_submit():
        return validation_failed(form)

    for field_name in ('customer_name', 'customer_email', 'customer_phone'):
        field = getattr(form, field_name)
        if supplied(field) and field.data:
            setattr(booking, field_name, field.data)
    if supplied(form.notes):
        booking.notes = form.notes.data or None

    db.session.commit()
    logger.info(f"Booking {booking_id} details updated")
    return jsonify({'booking': booking.to_dict(include_car=True)})


@app.route('/api/bookings/<int:booking_id>/status', methods=['PATCH'])
@admin_required
def update_booking_status(booking_id):
    """Move a booking to the status chosen by the admin and stamp the matching dates."""
    booking = db.get_or_404(Booking, booking_id, description='Booking not found')
    form = StatusUpdateForm()
    if not form.validate_on_submit():
        return validation_failed(form)

    new_status = form.status.data
    try:
        booking_rules.check_transition(
            booking.status, new_status, strict=app.config['STRICT_STATUS_TRANSITIONS'])
    except booking_rules.TransitionError as e:
        logger.warning(f"Booking {booking_id}: {e}")
        abort(400, description=str(e))

    previous = booking.status
    for column, value in booking_rules.status_changes(new_status, utcnow(), form.notes.data).items():
        setattr(booking, column, value)
    db.session.commit()
    logger.info(f"Booking {booking_id} status {previous} -> {new_status}")
    return jsonify({'booking': booking.to_dict(include_car=True)})


@app.route('/api/bookings/<int:booking_id>/charges', methods=['PATCH'])
@admin_required
def update_booking_charges(booking_id):
    """Merge post-rental fees into the booking and recompute its total."""
    form = ChargesForm()
    if not form.validate_on_submit():
        return validation_failed(form)

    # Lock the row so the total is computed from the fees that get written
    booking = db.session.execute(
        db.select(Booking).filter_by(id=booking_id).with_for_update()
    ).scalar_one_or_none()
    if booking is None:
        abort(404, description='Booking not found')

    fees = booking_rules.merge_fees(booking.fees(), form.fee_updates())
    for column, value in fees.items():
        setattr(booking, column, value)
    if supplied(form.fees_notes):
        booking.fees_notes = form.fees_notes.data or None
    booking.total_price = booking_rules.total_with_fees(booking.base_price, booking.driver_price, fees)
    db.session.commit()
    logger.info(f"Booking {booking_id} charges updated, total {booking.total_price}")
    return jsonify({'booking': booking.to_dict(include_car=True)})


@app.route('/api/bookings/<int:booking_id>/payment', methods=['PATCH'])
@admin_required
def update_booking_payment(booking_id):
    """Overwrite the amount paid so far."""
    booking = db.get_or_404(Booking, booking_id, description='Booking not found')
    form = PaymentForm()
    if not form.validate_on_submit():
        return validation_failed(form)

    booking.paid_amount = form.paid_amount.data
    if form.payment_notes.data:
        booking.payment_notes = form.payment_notes.data
    db.session.commit()
    logger.info(f"Booking {booking_id} paid amount set to {booking.paid_amount}")
    return jsonify({'booking': booking.to_dict(include_car=True)})


@app.route('/api/bookings/<int:booking_id>', methods=['DELETE'])
@admin_required
def delete_booking(booking_id):
    booking = db.get_or_404(Booking, booking_id, description='Booking not found')
    db.session.delete(booking)
    db.session.commit()
    logger.info(f"Booking {booking_id} deleted")
    return jsonify({'message': 'Booking deleted successfully'})


# User Routes
@app.route('/api/users', methods=['GET'])
@admin_required
def list_users():
    form = UserQueryForm(formdata=request.args)
    if not form.validate():
        return validation_failed(form)

    query = db.select(User)
    if form.search.data:
        pattern = f"%{form.search.data}%"
        query = query.where(or_(User.email.ilike(pattern), User.name.ilike(pattern)))
    query = query.order_by(User.created_at.desc(), User.id.desc())

    pagination = db.paginate(query, page=form.page.data or 1, per_page=form.limit.data or 10, error_out=False)
    return paginated(pagination, 'users', [user.to_dict() for user in pagination.items])


@app.route('/api/users/stats')
@admin_required
def user_stats():
    def count(*criteria):
        return db.session.scalar(db.select(func.count(User.id)).where(*criteria))

    return jsonify({
        'totalUsers': count(),
        'adminUsers': count(User.is_admin.is_(True)),
        'regularUsers': count(User.is_admin.is_(False)),
        'verifiedUsers': count(User.verification_status == VERIFIED),
        'pendingUsers': count(User.verification_status == VERIFICATION_PENDING),
    })


@app.route('/api/users/pending-verification')
@admin_required
def pending_verification():
    users = db.session.scalars(
        db.select(User)
        .filter_by(verification_status=VERIFICATION_PENDING)
        .order_by(User.updated_at.desc(), User.id.desc())
    ).all()
    return jsonify({'users': [user.to_dict(detailed=True) for user in users]})


@app.route('/api/users/profile/me', methods=['GET'])
@login_required
def get_profile():
    return jsonify({'user': current_user.to_dict(detailed=True)})


@app.route('/api/users/profile/me', methods=['PUT'])
@login_required
def update_profile():
    form = ProfileForm()
    if not form.validate_on_submit():
        return validation_failed(form)

    user = current_user
    if supplied(form.name) and form.name.data:
        user.name = form.name.data
    if supplied(form.phone):
        user.phone = form.phone.data or None
    if supplied(form.address):
        user.address = form.address.data or None
    db.session.commit()
    return jsonify({'user': user.to_dict(detailed=True)})


@app.route('/api/users/profile/documents', methods=['POST'])
@login_required
def upload_documents():
    """Accept ID card and/or driver's license files and queue the user for review."""
    form = DocumentUploadForm()
    if not form.validate_on_submit():
        return validation_failed(form)
    if not form.id_card.data and not form.driver_license.data:
        abort(400, description='At least one document (idCard or driverLicense) is required')

    user = current_user
    id_card_url = save_upload(form.id_card.data, 'id-card', user.id) if form.id_card.data else None
    license_url = save_upload(form.driver_license.data, 'license', user.id) if form.driver_license.data else None
    user.submit_documents(id_card_url=id_card_url, driver_license_url=license_url)
    db.session.commit()
    logger.info(f"User {user.id} uploaded verification documents")
    return jsonify({'user': user.to_dict(detailed=True), 'message': 'Documents uploaded successfully'})


@app.route('/api/users/<int:user_id>/verification', methods=['PATCH'])
@admin_required
def update_verification(user_id):
    """Record the admin's decision on a user's documents."""
    user = db.get_or_404(User, user_id, description='User not found')
    form = VerificationForm()
    if not form.validate_on_submit():
        return validation_failed(form)

    try:
        user.review_documents(form.status.data, form.note.data or None)
    except ValueError as e:
        abort(400, description=str(e))
    db.session.commit()
    logger.info(f"User {user_id} verification set to {user.verification_status} by {current_user.id}")
    return jsonify({'user': user.to_dict(detailed=True)})


@app.route('/api/users/<int:user_id>', methods=['GET'])
@admin_required
def get_user(user_id):
    user = db.get_or_404(User, user_id, description='User not found')
    return jsonify({'user': user.to_dict(detailed=True)})


@app.route('/api/users', methods=['POST'])
@admin_required
def create_user():
    """Admin adds a user account."""
    form = UserForm()
    if not form.validate_on_submit():
        return validation_failed(form)

    email = normalize_email(form.email.data)
    if db.session.execute(db.select(User).filter_by(email=email)).scalar_one_or_none():
        abort(400, description='User with this email already exists')

    user = User(
        email=email,
        name=form.name.data,
        password=hash_password(form.password.data),
        is_admin=form.is_admin.data,
    )
    db.session.add(user)
    db.session.commit()
    logger.info(f"User {user.id} created by admin {current_user.id}")
    return jsonify({'user': user.to_dict()}), 201


@app.route('/api/users/<int:user_id>', methods=['PUT'])
@admin_required
def update_user(user_id):
    """Admin edits a user; only the supplied fields change."""
    user = db.get_or_404(User, user_id, description='User not found')
    form = UserUpdateForm()
    if not form.validate_on_submit():
        return validation_failed(form)

    if supplied(form.email) and form.email.data:
        email = normalize_email(form.email.data)
        clash = db.session.execute(
            db.select(User).where(User.email == email, User.id != user.id)
        ).scalar_one_or_none()
        if clash is not None:
            abort(400, description='User with this email already exists')
        user.email = email
    if supplied(form.name) and form.name.data:
        user.name = form.name.data
    if supplied(form.password) and form.password.data:
        user.password = hash_password(form.password.data)
    if supplied(form.is_admin):
        user.is_admin = form.is_admin.data

    db.session.commit()
    logger.info(f"User {user_id} updated by admin {current_user.id}")
    return jsonify({'user': user.to_dict()})


@app.route('/api/users/<int:user_id>', methods=['DELETE'])
@admin_required
def delete_user(user_id):
    """Admin deletes a user."""
    # Prevent deleting yourself
    if user_id == current_user.id:
        abort(400, description='Cannot delete your own account')

    user = db.get_or_404(User, user_id, description='User not found')
    db.session.delete(user)
    db.session.commit()
    logger.info(f"User {user_id} deleted by admin {current_user.id}")
    return jsonify({'message': 'User deleted successfully'})


# Settings Routes
@app.route('/api/settings', methods=['GET'])
@admin_required
def get_settings():
    return jsonify({'settings': AppConfig.as_dict()})


@app.route('/api/settings', methods=['PUT'])
@admin_required
def update_settings():
    form = SettingsForm()
    if not form.validate_on_submit():
        return validation_failed(form)

    values = form.supplied_values()
    for key, value in values.items():
        AppConfig.set_value(key, value)
    db.session.commit()
    logger.info(f"Settings updated: {sorted(values)}")
    return jsonify({'message': 'Settings updated successfully'})


@app.route('/api/settings/<key>', methods=['GET'])
@admin_required
def get_setting(key):
    setting = db.get_or_404(AppConfig, key, description='Setting not found')
    return jsonify({'key': setting.key, 'value': setting.value})


# File Serving Route
@app.route('/uploads/<path:filename>')
def uploaded_file(filename):
    """Serve uploaded files (ID and license documents)."""
    return send_from_directory(app.config['UPLOAD_FOLDER'], filename)


# Database Initialization
if __name__ == '__main__':
    with app.app_context():
        db.create_all()
        if AppConfig.get_value('configured') is None:
            AppConfig.set_value('configured', 'false')
            db.session.commit()

    app.run(debug=True, port=app.config['SERVER_PORT'])
