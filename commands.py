"""Management commands, run through the Flask CLI (``flask --app app <command>``)."""
import logging

import click
from werkzeug.security import generate_password_hash

from models import AppConfig, Car, User, db

logger = logging.getLogger(__name__)

SAMPLE_CARS = [
    {'name': 'Tesla Model 3', 'brand': 'Tesla', 'type': 'Electric', 'daily_price': 89.99, 'featured': True},
    {'name': 'Tesla Model Y', 'brand': 'Tesla', 'type': 'Electric SUV', 'daily_price': 109.99, 'featured': True},
    {'name': 'Nissan Leaf', 'brand': 'Nissan', 'type': 'Electric', 'daily_price': 59.99, 'featured': False},
    {'name': 'Toyota Camry', 'brand': 'Toyota', 'type': 'Sedan', 'daily_price': 49.99, 'featured': True},
    {'name': 'Honda CR-V', 'brand': 'Honda', 'type': 'SUV', 'daily_price': 69.99, 'featured': False},
    {'name': 'Ford Mustang', 'brand': 'Ford', 'type': 'Sports Car', 'daily_price': 129.99, 'featured': True},
]


def seed_cars():
    """Add the sample cars that are not in the catalog yet. Returns how many were added."""
    existing = set(db.session.scalars(db.select(Car.name)))
    added = 0
    for data in SAMPLE_CARS:
        if data['name'] in existing:
            continue
        db.session.add(Car(**data))
        added += 1
    db.session.commit()
    return added


def ensure_setup_flag():
    """Create the configured flag as 'false' if it is missing. Returns its value."""
    value = AppConfig.get_value('configured')
    if value is None:
        AppConfig.set_value('configured', 'false')
        db.session.commit()
        value = 'false'
    return value


def provision_admin(email, password, name, configure=True):
    """Create or refresh an admin account, optionally marking the app configured."""
    email = email.strip().lower()
    user = db.session.execute(db.select(User).filter_by(email=email)).scalar_one_or_none()
    if user is None:
        user = User(email=email)
    user.name = name
    user.password = generate_password_hash(password, method='pbkdf2:sha256')
    user.is_admin = True
    db.session.add(user)
    if configure:
        AppConfig.set_value('configured', 'true')
    db.session.commit()
    return user


def register_commands(app):
    @app.cli.command('init-db')
    def init_db_command():
        """Create all database tables."""
        db.create_all()
        click.echo('Database tables created.')

    @app.cli.command('seed-cars')
    def seed_cars_command():
        """Insert the sample car catalog."""
        added = seed_cars()
        click.echo(f'Seeded {added} cars.')

    @app.cli.command('ensure-setup-flag')
    def ensure_setup_flag_command():
        """Initialize the configured flag if missing."""
        click.echo(f'Setup flag: {ensure_setup_flag()}')

    @app.cli.command('create-admin')
    @click.option('--email', default=lambda: app.config['INIT_ADMIN_EMAIL'], help='Admin email address.')
    @click.option('--password', default=lambda: app.config['INIT_ADMIN_PASSWORD'], help='Admin password.')
    @click.option('--name', default=lambda: app.config['INIT_ADMIN_NAME'], help='Display name.')
    @click.option('--configure/--no-configure', default=True, help='Also mark the application configured.')
    def create_admin_command(email, password, name, configure):
        """Create or update an admin account."""
        if not email or not password:
            raise click.UsageError('An email and a password are required (or INIT_ADMIN_EMAIL/INIT_ADMIN_PASSWORD).')
        if len(password) < 8:
            raise click.UsageError('The password must be at least 8 characters.')
        user = provision_admin(email, password, name, configure=configure)
        logger.info(f"Admin account ready: {user.email}")
        click.echo(f'Admin account ready: {user.email}')

    @app.cli.command('reset-config')
    @click.confirmation_option(prompt='This removes all configuration and users. Continue?')
    def reset_config_command():
        """Delete every setting and user so the setup flow runs again."""
        for user in db.session.scalars(db.select(User)).all():
            db.session.delete(user)
        db.session.execute(db.delete(AppConfig))
        db.session.commit()
        click.echo('Reset complete: the application is back in setup mode.')
