import logging

from flask import Blueprint, jsonify, request, abort
from bawmnet.decorators import auth_required, current_profile
from bawmnet import firestore_dao as dao
from bawmnet import permissions as perm
from bawmnet.firestore_models import PageInfo, serialize
from bawmnet.forms import PageForm, EntityUpdateForm, validate_or_400, uploaded_file, json_body
from bawmnet.services import storage

logger = logging.getLogger(__name__)

bp = Blueprint('pages', __name__, url_prefix='/pages')

# url segment -> (page array, user array)
RELATIONS = {
    'follow': ('followers', 'followed_pages'),
    'like': ('likes', 'liked_pages'),
}


def _load_page(page_id):
    doc = dao.get_entity('pages', page_id)
    if not doc:
        abort(404, description='Page not found')
    return PageInfo.from_dict(doc, doc['id'])


def _require_page_admin(user, page):
    if not (page.is_admin(user.uid) or user.is_site_admin()):
        abort(403, description='Only page admins can do this')


def _page_api(page, viewer):
    data = page.to_api()
    data['is_following'] = viewer.uid in page.followers
    data['is_liked'] = viewer.uid in page.likes
    data['is_admin'] = page.is_admin(viewer.uid)
    data['follower_count'] = len(page.followers)
    data['like_count'] = len(page.likes)
    return data


@bp.route('')
@auth_required
def list_pages():
    viewer = current_profile()
    pages = [PageInfo.from_dict(d, d['id']) for d in dao.list_entities('pages')]
    return jsonify({'pages': [_page_api(p, viewer) for p in pages]})


@bp.route('', methods=['POST'])
@auth_required
def create_page():
    user = current_profile()
    if not perm.can_create(user, 'page'):
        abort(403, description='You are not allowed to create pages')
    form = validate_or_400(PageForm())
    page_id = form.page_id.data
    if dao.get_entity('pages', page_id):
        abort(409, description='This page address is taken')
    page = PageInfo(id=page_id, name=form.name.data, category=form.category.data,
                    description=form.description.data or None, owner_id=user.uid)
    dao.create_entity('pages', page_id, page.to_dict())
    logger.info('Page %s created by %s', page_id, user.uid)
    return jsonify({'page': _page_api(page, user)}), 201


@bp.route('/<page_id>')
@auth_required
def get_page(page_id):
    return jsonify({'page': _page_api(_load_page(page_id), current_profile())})


@bp.route('/<page_id>', methods=['PATCH'])
@auth_required
def update_page(page_id):
    user = current_profile()
    _require_page_admin(user, _load_page(page_id))
    form = validate_or_400(EntityUpdateForm())
    updates = {name: getattr(form, name).data for name in ('name', 'category', 'description')
               if getattr(form, name).raw_data}
    if not updates:
        abort(400, description='Nothing to update')
    dao.update_entity('pages', page_id, updates)
    return jsonify({'page': _page_api(_load_page(page_id), user)})


@bp.route('/<page_id>/image/<slot>', methods=['POST'])
@auth_required
def upload_page_image(page_id, slot):
    if slot not in ('profile', 'cover'):
        abort(404)
    _require_page_admin(current_profile(), _load_page(page_id))
    data, ext = uploaded_file('file', 'image')
    _, url = storage.upload_entity_image('pages', page_id, data, ext, slot=slot)
    field = 'profile_picture_url' if slot == 'profile' else 'cover_image_url'
    dao.update_entity('pages', page_id, {field: url})
    return jsonify({field: url})


@bp.route('/<page_id>/<relation>', methods=['POST', 'DELETE'])
@auth_required
def set_relation(page_id, relation):
    """POST follows/likes the page, DELETE undoes it."""
    if relation not in RELATIONS:
        abort(404)
    user = current_profile()
    page = _load_page(page_id)
    page_field, user_field = RELATIONS[relation]
    present = request.method == 'POST'
    if present and user.uid in page.banned_users:
        abort(403, description='You are banned from this page')
    dao.set_page_relation(page_id, user.uid, page_field, user_field, present)
    members = set(getattr(page, page_field))
    if present:
        members.add(user.uid)
    else:
        members.discard(user.uid)
    return jsonify({relation: present, 'count': len(members)})


@bp.route('/<page_id>/posters', methods=['PUT'])
@auth_required
def set_posters(page_id):
    """'admins', 'followers' or an explicit list of user ids."""
    _require_page_admin(current_profile(), _load_page(page_id))
    posters = json_body().get('posters')
    if isinstance(posters, list):
        posters = [str(p) for p in posters]
    elif posters not in ('admins', 'followers'):
        abort(400, description="posters must be 'admins', 'followers' or a list of user ids")
    dao.update_entity('pages', page_id, {'posters': posters})
    return jsonify({'posters': posters})


@bp.route('/<page_id>/admins/<uid>', methods=['POST', 'DELETE'])
@auth_required
def set_admin(page_id, uid):
    user = current_profile()
    page = _load_page(page_id)
    if not (page.owner_id == user.uid or user.is_site_admin()):
        abort(403, description='Only the owner can change admins')
    if uid == page.owner_id:
        abort(400, description='The owner is always an admin')
    dao.set_array_member('pages', page_id, 'admins', uid, request.method == 'POST')
    return jsonify({'success': True})


@bp.route('/<page_id>/banned/<uid>', methods=['POST', 'DELETE'])
@auth_required
def set_banned(page_id, uid):
    """Banned users cannot post to or follow the page."""
    user = current_profile()
    page = _load_page(page_id)
    _require_page_admin(user, page)
    banned = request.method == 'POST'
    if banned and page.is_admin(uid):
        abort(400, description='Page admins cannot be banned')
    dao.set_array_member('pages', page_id, 'banned_users', uid, banned)
    if banned and uid in page.followers:
        dao.set_page_relation(page_id, uid, 'followers', 'followed_pages', False)
    return jsonify({'banned': banned})


@bp.route('/<page_id>/post-permissions')
@auth_required
def get_post_permissions(page_id):
    _require_page_admin(current_profile(), _load_page(page_id))
    return jsonify({
        'overrides': serialize(dao.get_entity_post_permissions('pages', page_id) or {}),
        'effective': perm.load_post_permissions('pages', page_id).to_dict(),
    })


@bp.route('/<page_id>/post-permissions', methods=['PUT'])
@auth_required
def set_post_permissions(page_id):
    _require_page_admin(current_profile(), _load_page(page_id))
    try:
        cleaned = perm.clean_post_permissions(json_body())
    except ValueError as exc:
        abort(400, description=str(exc))
    dao.set_entity_post_permissions('pages', page_id, cleaned)
    return jsonify({'effective': perm.load_post_permissions('pages', page_id).to_dict()})
