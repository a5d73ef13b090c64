"""Session authentication and role gates.

Users log in with a username and password; the signed Flask session cookie
then carries their id and role.  Write endpoints are wrapped with
:func:`admin_required`.
"""

from functools import wraps

from flask import Blueprint, current_app, request, session
from werkzeug.security import check_password_hash, generate_password_hash

from .datastore import (
    create_user as ds_create_user,
    get_user_by_email as ds_get_user_by_email,
    get_user_by_username as ds_get_user_by_username,
)


bp = Blueprint('auth', __name__, url_prefix='/api/auth')


def hash_password(password: str) -> str:
    return generate_password_hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return check_password_hash(password_hash, password)


def public_user(user: dict) -> dict:
    """Return the user record without its password hash."""
    return {k: v for k, v in user.items() if k != 'password_hash'}


def _start_session(user: dict) -> None:
    session.clear()
    session.permanent = True
    session['user_id'] = user.get('id')
    session['username'] = user.get('username') or ''
    session['email'] = user.get('email')
    session['first_name'] = user.get('first_name')
    session['last_name'] = user.get('last_name')
    session['role'] = user.get('role') or 'user'


def current_user() -> dict | None:
    if not session.get('user_id'):
        return None
    return {
        'id': session.get('user_id'),
        'username': session.get('username'),
        'email': session.get('email'),
        'first_name': session.get('first_name'),
        'last_name': session.get('last_name'),
        'role': session.get('role'),
    }


def login_required(f):
    """Reject anonymous callers with 401."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not session.get('user_id'):
            return {'message': 'Unauthorized'}, 401
        return f(*args, **kwargs)
    return decorated_function


def admin_required(f):
    """Reject anonymous callers with 401 and non-admins with 403."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not session.get('user_id'):
            return {'message': 'Unauthorized'}, 401
        if session.get('role') != 'admin':
            return {'message': 'Admin access required'}, 403
        return f(*args, **kwargs)
    return decorated_function


def _credentials():
    """Username and password from the JSON body; non-string values count as missing."""
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        return None, None
    username = payload.get('username')
    password = payload.get('password')
    if not isinstance(username, str) or not isinstance(password, str):
        return None, None
    return username, password


@bp.route('/login', methods=['POST'])
def login():
    username, password = _credentials()
    if not username or not password:
        return {'message': 'Username and password required'}, 400
    try:
        user = ds_get_user_by_username(username)
    except Exception:
        current_app.logger.exception("Login lookup failed for %s", username)
        return {'message': 'Server error'}, 500
    if not user or not user.get('password_hash'):
        return {'message': 'Invalid credentials'}, 401
    if not verify_password(password, user['password_hash']):
        current_app.logger.info("Rejected login for %s", username)
        return {'message': 'Invalid credentials'}, 401
    _start_session(user)
    return public_user(user)


@bp.route('/register', methods=['POST'])
def register():
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        payload = {}
    username, password = _credentials()
    if not username or not password:
        return {'message': 'Username and password required'}, 400
    profile = {k: payload.get(k) or None for k in ('email', 'first_name', 'last_name')}
    if any(v is not None and not isinstance(v, str) for v in profile.values()):
        return {'message': 'Email and names must be strings'}, 400
    email = profile['email']
    try:
        if ds_get_user_by_username(username):
            return {'message': 'Username already exists'}, 409
        if email and ds_get_user_by_email(email):
            return {'message': 'Email already exists'}, 409
        user = ds_create_user(
            {
                'username': username,
                'email': email,
                'password_hash': hash_password(password),
                'first_name': profile['first_name'],
                'last_name': profile['last_name'],
                'role': 'user',
            }
        )
    except Exception:
        current_app.logger.exception("Registration failed for %s", username)
        return {'message': 'Server error'}, 500
    current_app.logger.info("Registered user %s", username)
    _start_session(user)
    return public_user(user)


@bp.route('/logout', methods=['POST'])
def logout():
    session.clear()
    return {'message': 'Logged out successfully'}


@bp.route('/user')
@login_required
def user():
    return current_user()
