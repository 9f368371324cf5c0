"""
Groups, events and quizzes share one set of routes, registered once per
kind under /groups, /events and /quizzes.
"""

import logging

from flask import Blueprint, jsonify, request, abort
from bawmnet.decorators import auth_required, current_profile
from bawmnet import firestore_dao as dao
from bawmnet import permissions as perm
from bawmnet.firestore_models import MEMBERSHIP_KINDS, serialize
from bawmnet.forms import (EntityForm, EventForm, QuizForm, EntityUpdateForm,
                           validate_or_400, uploaded_file, json_body)
from bawmnet.services import memberships, posting, storage

logger = logging.getLogger(__name__)

CREATE_FORMS = {'group': EntityForm, 'event': EventForm, 'quiz': QuizForm}

COMMON_FIELDS = ('name', 'category', 'description', 'visibility')
KIND_FIELDS = {
    'group': (),
    'event': ('location', 'start_date', 'end_date', 'participant_post_limit'),
    'quiz': ('start_date', 'end_date', 'attempt_limit', 'time_limit_minutes'),
}

# Lists only shown to people who can see a private entity
PRIVATE_KEYS = ('admins', 'members', 'participants', 'pending', 'posters')


def entity_api(entity, viewer):
    data = memberships.to_api(entity, viewer)
    data.pop('declined', None)
    if not perm.can_view_entity(viewer, entity):
        for key in PRIVATE_KEYS:
            data.pop(key, None)
    elif not (entity.is_admin(viewer.uid) or viewer.is_site_admin()):
        data.pop('pending', None)
    return data


def _build(kind):
    cls = MEMBERSHIP_KINDS[kind]
    bp = Blueprint(cls.COLLECTION, __name__, url_prefix=f'/{cls.COLLECTION}')

    @bp.route('')
    @auth_required
    def list_entities():
        viewer = current_profile()
        entities = [cls.from_dict(d, d['id']) for d in dao.list_entities(cls.COLLECTION)]
        return jsonify({cls.COLLECTION: [entity_api(e, viewer) for e in entities]})

    @bp.route('', methods=['POST'])
    @auth_required
    def create_entity():
        user = current_profile()
        if not perm.can_create(user, kind):
            abort(403, description=f'You are not allowed to create {cls.COLLECTION}')
        form = validate_or_400(CREATE_FORMS[kind]())
        entity_id = form.slug.data
        if dao.get_entity(cls.COLLECTION, entity_id):
            abort(409, description=f'This {kind} address is taken')

        values = {name: getattr(form, name).data for name in COMMON_FIELDS + KIND_FIELDS[kind]}
        values['description'] = values['description'] or None
        for name in ('participant_post_limit', 'attempt_limit', 'time_limit_minutes'):
            if name in values and values[name] is None:
                values.pop(name)
        entity = cls(id=entity_id, owner_id=user.uid, **values)
        dao.create_entity(cls.COLLECTION, entity_id, entity.to_dict())
        # the owner takes part like any member
        dao.add_member(cls, entity_id, user.uid)
        entity.members.append(user.uid)
        logger.info('%s %s created by %s', kind.capitalize(), entity_id, user.uid)
        return jsonify({kind: entity_api(entity, user)}), 201

    @bp.route('/<entity_id>')
    @auth_required
    def get_entity(entity_id):
        entity = memberships.load_entity(kind, entity_id)
        return jsonify({kind: entity_api(entity, current_profile())})

    @bp.route('/<entity_id>', methods=['PATCH'])
    @auth_required
    def update_entity(entity_id):
        user = current_profile()
        entity = memberships.load_entity(kind, entity_id)
        memberships.require_manager(user, entity)
        form = validate_or_400(EntityUpdateForm())
        updates = {}
        for name in COMMON_FIELDS + KIND_FIELDS[kind]:
            field = getattr(form, name)
            if field.raw_data:
                updates[name] = field.data
        if not updates:
            abort(400, description='Nothing to update')
        start = updates.get('start_date', getattr(entity, 'start_date', None))
        end = updates.get('end_date', getattr(entity, 'end_date', None))
        if start and end and end <= start:
            abort(400, description='End must be after start')
        dao.update_entity(cls.COLLECTION, entity_id, updates)
        return jsonify({kind: entity_api(memberships.load_entity(kind, entity_id), user)})

    @bp.route('/<entity_id>/image/<slot>', methods=['POST'])
    @auth_required
    def upload_image(entity_id, slot):
        if slot not in ('profile', 'cover'):
            abort(404)
        memberships.require_manager(current_profile(), memberships.load_entity(kind, entity_id))
        data, ext = uploaded_file('file', 'image')
        _, url = storage.upload_entity_image(cls.COLLECTION, entity_id, data, ext, slot=slot)
        field = 'profile_picture_url' if slot == 'profile' else 'cover_image_url'
        dao.update_entity(cls.COLLECTION, entity_id, {field: url})
        return jsonify({field: url})

    # -- membership ---------------------------------------------------------

    @bp.route('/<entity_id>/join', methods=['POST'])
    @auth_required
    def join(entity_id):
        return jsonify({'status': memberships.join(current_profile(), kind, entity_id)})

    @bp.route('/<entity_id>/join', methods=['DELETE'])
    @auth_required
    def cancel_request(entity_id):
        memberships.cancel_request(current_profile(), kind, entity_id)
        return jsonify({'status': 'none'})

    @bp.route('/<entity_id>/leave', methods=['POST'])
    @auth_required
    def leave(entity_id):
        memberships.leave(current_profile(), kind, entity_id)
        return jsonify({'status': 'none'})

    @bp.route('/<entity_id>/members')
    @auth_required
    def members(entity_id):
        viewer = current_profile()
        entity = memberships.load_entity(kind, entity_id)
        if not perm.can_view_entity(viewer, entity):
            abort(403, description=f'This {kind} is private')
        cards = memberships.members(entity)
        if not (entity.is_admin(viewer.uid) or viewer.is_site_admin()):
            cards.pop('pending')
        return jsonify(cards)

    @bp.route('/<entity_id>/requests/<uid>/<action>', methods=['POST'])
    @auth_required
    def answer_request(entity_id, uid, action):
        if action not in ('accept', 'decline'):
            abort(404)
        handler = memberships.accept if action == 'accept' else memberships.decline
        handler(current_profile(), kind, entity_id, uid)
        return jsonify({'success': True})

    @bp.route('/<entity_id>/members/<uid>', methods=['DELETE'])
    @auth_required
    def remove_member(entity_id, uid):
        memberships.remove_member(current_profile(), kind, entity_id, uid)
        return jsonify({'success': True})

    # -- settings -----------------------------------------------------------

    @bp.route('/<entity_id>/posters', methods=['PUT'])
    @auth_required
    def set_posters(entity_id):
        posters = memberships.set_posters(current_profile(), kind, entity_id, json_body().get('posters'))
        return jsonify({'posters': posters})

    @bp.route('/<entity_id>/special-posters/<uid>', methods=['POST', 'DELETE'])
    @auth_required
    def special_poster(entity_id, uid):
        posters = memberships.set_special_poster(current_profile(), kind, entity_id, uid,
                                                 request.method == 'POST')
        return jsonify({'posters': posters})

    @bp.route('/<entity_id>/admins/<uid>', methods=['POST', 'DELETE'])
    @auth_required
    def set_admin(entity_id, uid):
        memberships.set_entity_admin(current_profile(), kind, entity_id, uid, request.method == 'POST')
        return jsonify({'success': True})

    @bp.route('/<entity_id>/post-permissions')
    @auth_required
    def get_post_permissions(entity_id):
        memberships.require_manager(current_profile(), memberships.load_entity(kind, entity_id))
        return jsonify({
            'overrides': serialize(dao.get_entity_post_permissions(cls.COLLECTION, entity_id) or {}),
            'effective': perm.load_post_permissions(cls.COLLECTION, entity_id).to_dict(),
        })

    @bp.route('/<entity_id>/post-permissions', methods=['PUT'])
    @auth_required
    def set_post_permissions(entity_id):
        memberships.require_manager(current_profile(), memberships.load_entity(kind, entity_id))
        try:
            cleaned = perm.clean_post_permissions(json_body())
        except ValueError as exc:
            abort(400, description=str(exc))
        dao.set_entity_post_permissions(cls.COLLECTION, entity_id, cleaned)
        return jsonify({'effective': perm.load_post_permissions(cls.COLLECTION, entity_id).to_dict()})

    # -- posts --------------------------------------------------------------

    def _visible_posts(entity_id, post_type):
        viewer = current_profile()
        entity = memberships.load_entity(kind, entity_id)
        if not perm.can_view_entity(viewer, entity):
            abort(403, description=f'This {kind} is private')
        posts = posting.context_posts(viewer, post_type, entity_id)
        return jsonify({'posts': [p.to_api() for p in posts]})

    @bp.route('/<entity_id>/posts')
    @auth_required
    def posts(entity_id):
        return _visible_posts(entity_id, kind)

    if kind in ('event', 'quiz'):
        @bp.route('/<entity_id>/announcements')
        @auth_required
        def announcements(entity_id):
            return _visible_posts(entity_id, f'{kind}_announcement')

    return bp


blueprints = [_build(kind) for kind in ('group', 'event', 'quiz')]
