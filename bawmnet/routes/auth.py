import logging
import re
from datetime import timedelta

import requests as http_requests
from flask import Blueprint, jsonify, session, current_app, abort
from flask_wtf.csrf import generate_csrf
from firebase_admin import exceptions as firebase_exceptions

from bawmnet.decorators import auth_required, get_current_user, current_profile
from bawmnet.firebase_init import get_auth
from bawmnet import firestore_dao as dao
from bawmnet.firestore_models import UserProfile
from bawmnet.forms import RegistrationForm, LoginForm, ForgotPasswordForm, validate_or_400

logger = logging.getLogger(__name__)

bp = Blueprint('auth', __name__, url_prefix='/auth')

FIREBASE_AUTH_URL = 'https://identitytoolkit.googleapis.com/v1/accounts'


def _firebase_sign_in(email, password):
    """Verify email/password via Firebase Auth REST API.

    Returns the ID token on success, or None on failure.
    """
    api_key = current_app.config.get('FIREBASE_WEB_API_KEY')
    if not api_key:
        logger.warning('FIREBASE_WEB_API_KEY is not set; password login is disabled')
        return None

    resp = http_requests.post(
        f'{FIREBASE_AUTH_URL}:signInWithPassword?key={api_key}',
        json={
            'email': email,
            'password': password,
            'returnSecureToken': True,
        },
        timeout=10,
    )
    if resp.status_code == 200:
        return resp.json().get('idToken')
    return None


def _send_password_reset(email):
    api_key = current_app.config.get('FIREBASE_WEB_API_KEY')
    if not api_key:
        logger.warning('FIREBASE_WEB_API_KEY is not set; password reset is disabled')
        return False
    resp = http_requests.post(
        f'{FIREBASE_AUTH_URL}:sendOobCode?key={api_key}',
        json={'requestType': 'PASSWORD_RESET', 'email': email},
        timeout=10,
    )
    if resp.status_code != 200:
        logger.info('Password reset for %s refused: %s', email, resp.status_code)
    return resp.status_code == 200


def _available_username(email):
    """E-mail local part, cleaned to 3-20 characters, with a counter when taken."""
    base = re.sub(r'[^A-Za-z0-9_.]', '', email.split('@')[0])[:16]
    if len(base) < 3:
        base = f'{base}user'
    username = base
    counter = 1
    while dao.get_user_by_username(username):
        username = f'{base}{counter}'
        counter += 1
    return username


@bp.route('/register', methods=['POST'])
def register():
    form = validate_or_400(RegistrationForm())

    if form.username.data:
        username = form.username.data
        if dao.get_user_by_username(username):
            abort(409, description='Username is already taken')
    else:
        username = _available_username(form.email.data)

    auth = get_auth()
    try:
        firebase_user = auth.create_user(
            email=form.email.data,
            password=form.password.data,
        )
    except auth.EmailAlreadyExistsError:
        abort(409, description='An account with this email already exists')
    except (ValueError, firebase_exceptions.FirebaseError) as e:
        logger.exception('Registration failed for %s', form.email.data)
        abort(400, description=f'Registration failed: {e}')

    profile = UserProfile(
        uid=firebase_user.uid,
        username=username,
        email=form.email.data,
        first_name=form.first_name.data or None,
        last_name=form.last_name.data or None,
    )
    profile.display_name = profile.name
    dao.create_user(profile.uid, profile.to_dict())
    logger.info('Registered %s as %s', profile.uid, username)
    return jsonify({'user': profile.to_api()}), 201


@bp.route('/login', methods=['POST'])
def login():
    form = validate_or_400(LoginForm())

    id_token = _firebase_sign_in(form.email.data, form.password.data)
    if not id_token:
        abort(401, description='Invalid email or password')

    auth = get_auth()
    try:
        session_cookie = auth.create_session_cookie(
            id_token, expires_in=timedelta(days=current_app.config.get('SESSION_COOKIE_DAYS', 5))
        )
    except (ValueError, firebase_exceptions.FirebaseError):
        logger.exception('Could not create a session cookie')
        abort(401, description='Login failed')
    session['firebase_session'] = session_cookie
    session.permanent = True

    user = dao.get_user_by_email(form.email.data)
    if not user:
        abort(404, description='No profile for this account')
    return jsonify({'user': UserProfile.from_dict(user, user['id']).to_api()})


@bp.route('/logout', methods=['POST'])
def logout():
    session.pop('firebase_session', None)
    return jsonify({'success': True})


@bp.route('/csrf-token')
def csrf_token():
    return jsonify({'csrf_token': generate_csrf()})


@bp.route('/forgot-password', methods=['POST'])
def forgot_password():
    form = validate_or_400(ForgotPasswordForm())
    if dao.get_user_by_email(form.email.data):
        _send_password_reset(form.email.data)
    return jsonify({'message': 'If the address is registered, a reset link is on its way'})


@bp.route('/me')
@auth_required
def me():
    user = current_profile()
    return jsonify({
        'user': user.to_api(),
        'unread_notifications': dao.count_unread_notifications(user.uid),
        'is_authenticated': get_current_user().is_authenticated,
    })
