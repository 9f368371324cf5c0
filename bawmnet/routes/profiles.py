import logging

from flask import Blueprint, jsonify, request, abort
from bawmnet.decorators import auth_required, current_profile
from bawmnet import firestore_dao as dao
from bawmnet import permissions as perm
from bawmnet.firestore_models import UserProfile, ASSIGNABLE_USER_TYPES
from bawmnet.forms import ProfileForm, UserTypeForm, validate_or_400, uploaded_file
from bawmnet.services import connections, posting, storage

logger = logging.getLogger(__name__)

bp = Blueprint('profiles', __name__, url_prefix='/users')

PROFILE_FIELDS = ('display_name', 'first_name', 'last_name', 'bio', 'hometown', 'live_in',
                  'current_study', 'institute_name', 'dob', 'relationship_status', 'gender')

CONNECTION_ACTIONS = {
    'request': connections.send_request,
    'cancel': connections.cancel,
    'accept': connections.accept,
    'decline': connections.decline,
    'disconnect': connections.disconnect,
}


def _profile_by_username(username):
    doc = dao.get_user_by_username(username)
    if not doc:
        abort(404, description='User not found')
    return UserProfile.from_dict(doc, doc['id'])


@bp.route('/<username>')
@auth_required
def profile(username):
    viewer = current_profile()
    user = _profile_by_username(username)
    data = user.to_api()
    data.pop('email', None)
    data['connection_status'] = connections.status(viewer.uid, user.uid)
    data['friend_count'] = len(dao.get_friend_ids(user.uid))
    return jsonify({'user': data})


@bp.route('/<username>/posts')
@auth_required
def profile_posts(username):
    user = _profile_by_username(username)
    if user.is_blocked():
        return jsonify({'posts': []})
    posts = posting.context_posts(current_profile(), 'user', user.uid)
    return jsonify({'posts': [p.to_api() for p in posts]})


@bp.route('/me', methods=['PATCH', 'POST'])
@auth_required
def update_profile():
    """Update the fields present in the request; absent fields are kept."""
    user = current_profile()
    form = validate_or_400(ProfileForm())
    updates = {}
    for name in PROFILE_FIELDS:
        field = getattr(form, name)
        if field.raw_data:
            updates[name] = (field.data or '').strip() or None
    if not updates:
        abort(400, description='Nothing to update')
    dao.update_user(user.uid, updates)
    return jsonify({'user': UserProfile.from_dict(dao.get_user(user.uid), user.uid).to_api()})


@bp.route('/me/<slot>', methods=['POST'])
@auth_required
def upload_image(slot):
    """Replace the avatar ('profile') or the cover image."""
    if slot not in ('profile', 'cover'):
        abort(404)
    user = current_profile()
    max_bytes = storage.MAX_AVATAR_BYTES if slot == 'profile' else None
    data, ext = uploaded_file('file', 'image', max_bytes=max_bytes)
    _, url = storage.upload_profile_image(user.uid, data, ext, slot=slot)
    field = 'profile_picture_url' if slot == 'profile' else 'cover_image_url'
    dao.update_user(user.uid, {field: url})
    return jsonify({field: url})


# ---------------------------------------------------------------------------
# Connections
# ---------------------------------------------------------------------------

@bp.route('/me/connections')
@auth_required
def my_connections():
    status = request.args.get('status', 'connected')
    if status not in ('connected', 'pending_sent', 'pending_received'):
        abort(400, description='Unknown connection status')
    items = connections.list_connections(current_profile().uid, status_filter=status)
    return jsonify({'connections': [c.to_api() for c in items]})


@bp.route('/<uid>/connection')
@auth_required
def connection_status(uid):
    return jsonify({'status': connections.status(current_profile().uid, uid)})


@bp.route('/<uid>/connection/<action>', methods=['POST'])
@auth_required
def connection_action(uid, action):
    handler = CONNECTION_ACTIONS.get(action)
    if handler is None:
        abort(404)
    return jsonify({'status': handler(current_profile(), uid)})


# ---------------------------------------------------------------------------
# User management
# ---------------------------------------------------------------------------

@bp.route('/<uid>/type', methods=['PUT'])
@auth_required
def change_user_type(uid):
    actor = current_profile()
    perms = perm.load_user_management_permissions()
    if not perm.can_manage_user(actor, uid, perms.can_update_user_type):
        abort(403, description='You cannot change this user type')
    form = validate_or_400(UserTypeForm())
    if form.user_type.data not in ASSIGNABLE_USER_TYPES:
        abort(400, description=f'{form.user_type.data} cannot be assigned')
    if not dao.get_user(uid):
        abort(404, description='User not found')
    dao.update_user(uid, {'user_type': form.user_type.data})
    logger.info('%s set user type of %s to %s', actor.uid, uid, form.user_type.data)
    return jsonify({'uid': uid, 'user_type': form.user_type.data})


@bp.route('/<uid>', methods=['DELETE'])
@auth_required
def delete_user(uid):
    actor = current_profile()
    perms = perm.load_user_management_permissions()
    if not perm.can_manage_user(actor, uid, perms.can_delete_users):
        abort(403, description='You cannot delete this user')
    if not dao.move_user_to_deleted(uid, actor.uid):
        abort(404, description='User not found')
    logger.info('%s deleted user %s', actor.uid, uid)
    return jsonify({'success': True})
