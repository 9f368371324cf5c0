import logging

from flask import abort

from bawmnet import firestore_dao as dao
from bawmnet.firestore_models import Notification, UserProfile
from bawmnet.services import connections, memberships

logger = logging.getLogger(__name__)

ENTITY_COLLECTIONS = {'group': 'groups', 'event': 'events', 'quiz': 'quizzes'}


def list_notifications(user: UserProfile, limit=50):
    """Newest first, with sender cards and entity names attached."""
    items = [Notification.from_dict(d, d['id']) for d in dao.get_notifications(user.uid, limit=limit)]
    senders = dao.get_users_by_ids([n.sender_id for n in items])
    entities = {}
    for kind, collection in ENTITY_COLLECTIONS.items():
        ids = [n.entity_id for n in items if n.entity_type == kind]
        if ids:
            for entity_id, doc in dao.get_docs_by_ids(collection, ids).items():
                entities[(kind, entity_id)] = doc

    for n in items:
        sender = senders.get(n.sender_id)
        if sender:
            n.sender = UserProfile.from_dict(sender, sender['id']).summary()
        entity = entities.get((n.entity_type, n.entity_id))
        if entity:
            n.entity = {'id': entity['id'], 'type': n.entity_type, 'name': entity.get('name', '')}
    return items


def load_own(user: UserProfile, notification_id) -> Notification:
    doc = dao.get_notification(notification_id)
    if not doc:
        abort(404, description='Notification not found')
    n = Notification.from_dict(doc, doc['id'])
    if n.recipient_id != user.uid:
        abort(403, description='Not your notification')
    return n


def respond(user: UserProfile, notification_id, action):
    """Accept or decline the request behind a notification, then drop it."""
    if action not in ('accept', 'decline'):
        abort(400, description="action must be 'accept' or 'decline'")
    n = load_own(user, notification_id)
    if n.type == 'connection_request':
        handler = connections.accept if action == 'accept' else connections.decline
        handler(user, n.sender_id)
    elif n.type.endswith('_join_request'):
        kind = n.type[:-len('_join_request')]
        handler = memberships.accept if action == 'accept' else memberships.decline
        handler(user, kind, n.entity_id, n.sender_id)
    else:
        abort(400, description=f'Notification type {n.type} has no response')
    dao.delete_notification(notification_id)
    logger.info('%s answered %s from %s: %s', user.uid, n.type, n.sender_id, action)
