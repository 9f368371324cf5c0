"""
Membership of groups, events and quizzes.

Public entities are joined immediately.  Private ones collect a pending
request and notify the owner; the owner or an entity admin accepts or
declines.  A declined user may ask again once DECLINE_COOLDOWN has passed.
"""

import logging
from datetime import datetime, timedelta, timezone

from flask import abort

from bawmnet import firestore_dao as dao
from bawmnet.firestore_models import MEMBERSHIP_KINDS, Notification, UserProfile, serialize
from bawmnet.services import realtime

logger = logging.getLogger(__name__)

DECLINE_COOLDOWN = timedelta(hours=24)

POSTER_MODES = {
    'group': ('admins', 'members'),
    'event': ('admins', 'participants'),
    'quiz': ('admins', 'participants'),
}


def entity_class(kind):
    cls = MEMBERSHIP_KINDS.get(kind)
    if cls is None:
        abort(404, description=f'Unknown entity kind: {kind}')
    return cls


def load_entity(kind, entity_id):
    cls = entity_class(kind)
    doc = dao.get_entity(cls.COLLECTION, entity_id)
    if not doc:
        abort(404, description=f'{kind.capitalize()} not found')
    return cls.from_dict(doc, doc['id'])


def require_manager(user: UserProfile, entity):
    if not (entity.is_admin(user.uid) or user.is_site_admin()):
        abort(403, description='Only the owner or an admin can do this')


def membership_status(user, entity, now=None):
    """owner / admin / member / pending / declined / none"""
    if user is None:
        return 'none'
    if entity.owner_id == user.uid:
        return 'owner'
    if user.uid in entity.admins:
        return 'admin'
    if entity.is_member(user.uid):
        return 'member'
    if user.uid in entity.pending:
        return 'pending'
    declined_at = entity.declined_at(user.uid)
    if declined_at and (now or datetime.now(timezone.utc)) - declined_at < DECLINE_COOLDOWN:
        return 'declined'
    return 'none'


def join(user: UserProfile, kind, entity_id, now=None):
    """Join a public entity or request to join a private one.

    Returns 'joined', 'requested', 'member' or 'pending'.
    """
    now = now or datetime.now(timezone.utc)
    entity = load_entity(kind, entity_id)
    if user.is_blocked():
        abort(403, description='Your account cannot join')

    status = membership_status(user, entity, now)
    if status in ('owner', 'admin', 'member'):
        return 'member'
    if status == 'pending':
        return 'pending'

    cls = type(entity)
    if entity.visibility != 'private':
        dao.add_member(cls, entity_id, user.uid)
        logger.info('%s joined %s %s', user.uid, kind, entity_id)
        return 'joined'

    if status == 'declined':
        retry_at = entity.declined_at(user.uid) + DECLINE_COOLDOWN
        abort(429, description=f'Request declined; you can ask again after {retry_at.isoformat()}')

    notification = Notification(
        recipient_id=entity.owner_id,
        sender_id=user.uid,
        type=f'{kind}_join_request',
        entity_id=entity_id,
        entity_type=kind,
        created_at=now,
    )
    notification.id = dao.add_join_request(cls, entity_id, user.uid, notification.to_dict())
    notification.sender = user.summary()
    realtime.push_notification(entity.owner_id, notification.to_api())
    return 'requested'


def _clear_request_notifications(kind, entity, uid):
    dao.delete_notifications_matching(entity.owner_id, uid, f'{kind}_join_request', entity.id)


def accept(actor: UserProfile, kind, entity_id, uid):
    entity = load_entity(kind, entity_id)
    require_manager(actor, entity)
    if uid not in entity.pending:
        abort(404, description='No pending request from this user')
    dao.add_member(type(entity), entity_id, uid)
    _clear_request_notifications(kind, entity, uid)
    logger.info('%s accepted %s into %s %s', actor.uid, uid, kind, entity_id)


def decline(actor: UserProfile, kind, entity_id, uid):
    entity = load_entity(kind, entity_id)
    require_manager(actor, entity)
    if uid not in entity.pending:
        abort(404, description='No pending request from this user')
    dao.decline_member(type(entity), entity_id, uid)
    _clear_request_notifications(kind, entity, uid)


def cancel_request(user: UserProfile, kind, entity_id):
    entity = load_entity(kind, entity_id)
    if user.uid not in entity.pending:
        abort(404, description='No pending request')
    dao.cancel_join_request(type(entity), entity_id, user.uid)
    _clear_request_notifications(kind, entity, user.uid)


def leave(user: UserProfile, kind, entity_id):
    entity = load_entity(kind, entity_id)
    if entity.owner_id == user.uid:
        abort(400, description='The owner cannot leave')
    if not entity.is_member(user.uid):
        abort(404, description='Not a member')
    dao.remove_member(type(entity), entity_id, user.uid)


def remove_member(actor: UserProfile, kind, entity_id, uid):
    entity = load_entity(kind, entity_id)
    require_manager(actor, entity)
    if uid == entity.owner_id:
        abort(400, description='The owner cannot be removed')
    if not entity.is_member(uid):
        abort(404, description='Not a member')
    dao.remove_member(type(entity), entity_id, uid)


def members(entity):
    """Member, admin and pending user cards of an entity."""
    ids = list(dict.fromkeys([entity.owner_id] + entity.admins + entity.members + entity.pending))
    users = dao.get_users_by_ids(ids)

    def cards(uids):
        return [UserProfile.from_dict(users[u], u).summary() for u in uids if u in users]

    return {
        'owner': cards([entity.owner_id]),
        'admins': cards(entity.admins),
        entity.MEMBERS_FIELD: cards(entity.members),
        'pending': cards(entity.pending),
    }


# ---------------------------------------------------------------------------
# Entity settings
# ---------------------------------------------------------------------------

def set_posters(actor: UserProfile, kind, entity_id, posters):
    """Posting mode: 'admins', the member mode of the kind, or a uid list."""
    entity = load_entity(kind, entity_id)
    require_manager(actor, entity)
    if isinstance(posters, str):
        if posters not in POSTER_MODES[kind]:
            abort(400, description=f'posters must be one of {", ".join(POSTER_MODES[kind])} or a list')
    elif isinstance(posters, list):
        posters = [str(p) for p in posters]
    else:
        abort(400, description='posters must be a string or a list of user ids')
    dao.update_entity(entity.COLLECTION, entity_id, {'posters': posters})
    return posters


def set_special_poster(actor: UserProfile, kind, entity_id, uid, allowed):
    """Add or remove one uid on the explicit posters list."""
    entity = load_entity(kind, entity_id)
    require_manager(actor, entity)
    current = list(entity.posters) if isinstance(entity.posters, list) else []
    if allowed and uid not in current:
        current.append(uid)
    elif not allowed and uid in current:
        current.remove(uid)
    dao.update_entity(entity.COLLECTION, entity_id, {'posters': current})
    return current


def set_entity_admin(actor: UserProfile, kind, entity_id, uid, allowed):
    entity = load_entity(kind, entity_id)
    if not (entity.owner_id == actor.uid or actor.is_site_admin()):
        abort(403, description='Only the owner can change admins')
    if allowed and not entity.is_member(uid):
        abort(400, description='Admins must be members first')
    dao.set_array_member(entity.COLLECTION, entity_id, 'admins', uid, allowed)


def to_api(entity, viewer=None):
    data = entity.to_api()
    data['membership'] = membership_status(viewer, entity)
    data['member_count'] = len(entity.members)
    return serialize(data)
