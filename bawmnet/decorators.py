import logging
from functools import wraps

from flask import request, g, session, abort
from firebase_admin import exceptions as firebase_exceptions

from bawmnet.firebase_init import get_auth
from bawmnet import firestore_dao as dao
from bawmnet.firestore_models import UserProfile

logger = logging.getLogger(__name__)


def bearer_token():
    """ID token from an 'Authorization: Bearer <token>' header, or None."""
    header = request.headers.get('Authorization', '')
    if header.startswith('Bearer '):
        return header[len('Bearer '):].strip() or None
    return None


def _verify_request():
    """Resolve the caller's uid from a bearer ID token or the session cookie."""
    auth = get_auth()
    token = bearer_token()
    try:
        if token:
            return auth.verify_id_token(token, check_revoked=True)['uid']
        session_cookie = session.get('firebase_session')
        if session_cookie:
            return auth.verify_session_cookie(session_cookie, check_revoked=True)['uid']
    except (ValueError, firebase_exceptions.FirebaseError) as exc:
        logger.info('Rejected credentials: %s', exc)
    return None


def _load_user_data():
    uid = _verify_request()
    if not uid:
        return None
    user_data = dao.get_user(uid)
    if not user_data:
        return None
    user_data['uid'] = uid
    user_data['is_authenticated'] = True
    return user_data


class CurrentUser:
    """Proxy object providing attribute access to the current user dict."""

    def __init__(self, data=None):
        self._data = data or {}
        self._profile = None

    def __getattr__(self, name):
        if name.startswith('_'):
            raise AttributeError(name)
        return self._data.get(name)

    @property
    def is_authenticated(self):
        return bool(self._data)

    @property
    def uid(self):
        return self._data.get('uid', '')

    @property
    def user_type(self):
        return self._data.get('user_type') or 'active'

    @property
    def profile(self):
        """The user as a ``UserProfile``; None when anonymous."""
        if not self._data:
            return None
        if self._profile is None:
            self._profile = UserProfile.from_dict(self._data, self.uid)
        return self._profile

    def is_site_admin(self):
        return self.user_type == 'admin'


def load_current_user():
    """Load current user into g before each request."""
    if hasattr(g, '_current_user'):
        return
    g._current_user = CurrentUser(_load_user_data())


def get_current_user():
    if not hasattr(g, '_current_user'):
        load_current_user()
    return g._current_user


def auth_required(f):
    @wraps(f)
    def decorated(*args, **kwargs):
        user = get_current_user()
        if not user.is_authenticated:
            abort(401, description='Login required')
        g.current_user = user
        return f(*args, **kwargs)
    return decorated


def user_type_required(*user_types):
    def decorator(f):
        @wraps(f)
        def decorated(*args, **kwargs):
            user = get_current_user()
            if not user.is_authenticated:
                abort(401, description='Login required')
            if user.user_type not in user_types:
                abort(403, description='Insufficient permissions')
            g.current_user = user
            return f(*args, **kwargs)
        return decorated
    return decorator


def current_profile():
    """The signed-in user as a ``UserProfile`` (None when anonymous)."""
    return get_current_user().profile
