"""Cookie authentication and role checks.

Login issues a signed, timestamped token stored in an httpOnly cookie. Flask-Login
resolves that cookie to a ``User`` on every request through a request loader,
so ``current_user`` and ``login_required`` work as usual.
"""
import enum
import logging
from functools import wraps

from flask import current_app, jsonify, request
from flask_login import LoginManager, current_user
from itsdangerous import BadSignature, URLSafeTimedSerializer

from models import User, db

logger = logging.getLogger(__name__)

TOKEN_SALT = 'auth-token'

login_manager = LoginManager()
# Identity comes from the token cookie only; the Flask session is not used
login_manager.session_protection = None


class Role(enum.Enum):
    ANONYMOUS = 'anonymous'
    USER = 'user'
    ADMIN = 'admin'

    @classmethod
    def of(cls, user):
        if user is None or not user.is_authenticated:
            return cls.ANONYMOUS
        return cls.ADMIN if user.is_admin else cls.USER


def _serializer():
    return URLSafeTimedSerializer(current_app.config['SECRET_KEY'], salt=TOKEN_SALT)


def issue_token(user):
    return _serializer().dumps({'userId': user.id, 'isAdmin': bool(user.is_admin)})


def read_token(token):
    """Payload of a valid token, or None when it is forged or expired."""
    try:
        return _serializer().loads(token, max_age=current_app.config['TOKEN_MAX_AGE'])
    except BadSignature:
        return None


def set_token_cookie(response, user):
    config = current_app.config
    response.set_cookie(
        config['TOKEN_COOKIE_NAME'],
        issue_token(user),
        max_age=config['TOKEN_MAX_AGE'],
        httponly=True,
        secure=config['COOKIE_SECURE'],
        samesite='Lax',
    )
    return response


def clear_token_cookie(response):
    response.delete_cookie(current_app.config['TOKEN_COOKIE_NAME'], samesite='Lax')
    return response


@login_manager.request_loader
def load_user_from_cookie(req):
    token = req.cookies.get(current_app.config['TOKEN_COOKIE_NAME'])
    if not token:
        return None
    payload = read_token(token)
    if not payload or 'userId' not in payload:
        logger.info("Rejected invalid or expired auth token")
        return None
    return db.session.get(User, payload['userId'])


@login_manager.unauthorized_handler
def unauthorized():
    if request.cookies.get(current_app.config['TOKEN_COOKIE_NAME']):
        return jsonify({'error': 'Invalid or expired token'}), 401
    return jsonify({'error': 'Authentication required'}), 401


def admin_required(f):
    """Decorator to check if user is admin."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        role = Role.of(current_user)
        if role is Role.ANONYMOUS:
            return login_manager.unauthorized()
        if role is not Role.ADMIN:
            logger.warning(f"User {current_user.id} denied admin access to {request.path}")
            return jsonify({'error': 'Admin access required'}), 403
        return f(*args, **kwargs)
    return decorated_function
