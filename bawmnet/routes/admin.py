import logging

from flask import Blueprint, jsonify, request, abort
from bawmnet.decorators import user_type_required, current_profile
from bawmnet import firestore_dao as dao
from bawmnet import permissions as perm
from bawmnet.firestore_models import UserProfile, USER_TYPES, serialize
from bawmnet.forms import json_body

logger = logging.getLogger(__name__)

bp = Blueprint('admin', __name__, url_prefix='/admin')


@bp.route('/settings')
@user_type_required('admin')
def settings():
    return jsonify({
        'post_permissions': perm.load_post_permissions().to_dict(),
        'user_management_permissions': perm.load_user_management_permissions().to_dict(),
        'message_permissions': perm.load_message_permissions(),
        'allow_lists': {kind: perm.creation_allow_list(kind) for kind in perm.CREATION_KINDS},
    })


@bp.route('/settings/post-permissions', methods=['PUT'])
@user_type_required('admin')
def set_post_permissions():
    try:
        cleaned = perm.clean_post_permissions(json_body())
    except ValueError as exc:
        abort(400, description=str(exc))
    dao.set_app_setting('post_permissions', cleaned)
    logger.info('%s updated site post permissions: %s', current_profile().uid, sorted(cleaned))
    return jsonify({'post_permissions': perm.load_post_permissions().to_dict()})


@bp.route('/settings/user-management', methods=['PUT'])
@user_type_required('admin')
def set_user_management_permissions():
    body = json_body()
    cleaned = {}
    for key in ('can_update_user_type', 'can_delete_users'):
        if key not in body:
            continue
        value = body[key]
        if not isinstance(value, list) or any(t not in USER_TYPES for t in value):
            abort(400, description=f'{key} must be a list of user types')
        cleaned[key] = value
    if not cleaned:
        abort(400, description='Nothing to update')
    dao.set_app_setting('user_management_permissions', cleaned)
    return jsonify({'user_management_permissions': perm.load_user_management_permissions().to_dict()})


@bp.route('/settings/message-permissions', methods=['PUT'])
@user_type_required('admin')
def set_message_permissions():
    try:
        cleaned = perm.clean_message_permissions(json_body())
    except ValueError as exc:
        abort(400, description=str(exc))
    dao.set_app_setting('message_permissions', cleaned)
    return jsonify({'message_permissions': perm.load_message_permissions()})


@bp.route('/allow-lists/<kind>')
@user_type_required('admin')
def allow_list(kind):
    if kind not in perm.CREATION_KINDS:
        abort(404, description=f'Unknown allow-list: {kind}')
    uids = perm.creation_allow_list(kind)
    users = dao.get_users_by_ids(uids)
    cards = [UserProfile.from_dict(users[u], u).summary() for u in uids if u in users]
    return jsonify({'kind': kind, 'users': serialize(cards)})


@bp.route('/allow-lists/<kind>/<uid>', methods=['POST', 'DELETE'])
@user_type_required('admin')
def set_allow_list(kind, uid):
    """POST grants creation rights for ``kind``, DELETE revokes them."""
    if kind not in perm.CREATION_KINDS:
        abort(404, description=f'Unknown allow-list: {kind}')
    allowed = request.method == 'POST'
    if allowed and not dao.get_user(uid):
        abort(404, description='User not found')
    dao.update_allow_list(perm.CREATION_KINDS[kind], uid, allowed)
    logger.info('%s %s %s on %s allow-list', current_profile().uid,
                'added' if allowed else 'removed', uid, kind)
    return jsonify({'kind': kind, 'allowed_user_ids': perm.creation_allow_list(kind)})
