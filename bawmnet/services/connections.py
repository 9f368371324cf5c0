"""
Friend connections, stored on both sides:

  users/{a}/connections/{b}  status pending_sent      (a asked b)
  users/{b}/connections/{a}  status pending_received
  ...both become 'connected' on accept; decline and disconnect delete both.
"""

import logging

from flask import abort

from bawmnet import firestore_dao as dao
from bawmnet.firestore_models import Connection, Notification, UserProfile
from bawmnet.services import realtime

logger = logging.getLogger(__name__)


def status(uid, other_uid):
    """Connection status of ``uid`` towards ``other_uid``, or 'none'."""
    if uid == other_uid:
        return 'self'
    doc = dao.get_connection(uid, other_uid)
    return doc.get('status', 'none') if doc else 'none'


def _require_other(user: UserProfile, other_uid):
    if other_uid == user.uid:
        abort(400, description='You cannot connect with yourself')
    if not dao.get_user(other_uid):
        abort(404, description='User not found')


def send_request(user: UserProfile, other_uid):
    """Send a connection request; notifies the other user."""
    _require_other(user, other_uid)
    current = status(user.uid, other_uid)
    if current == 'connected':
        abort(409, description='Already connected')
    if current == 'pending_sent':
        abort(409, description='Request already sent')
    if current == 'pending_received':
        return accept(user, other_uid)

    notification = Notification(recipient_id=other_uid, sender_id=user.uid,
                                type='connection_request', entity_id=user.uid,
                                entity_type='user')
    notification.id = dao.save_connection_pair(user.uid, other_uid, 'pending_sent',
                                               'pending_received', notification.to_dict())
    notification.sender = user.summary()
    realtime.push_notification(other_uid, notification.to_api())
    logger.info('Connection request %s -> %s', user.uid, other_uid)
    return 'pending_sent'


def cancel(user: UserProfile, other_uid):
    """Withdraw a sent request and the notification it created."""
    if status(user.uid, other_uid) != 'pending_sent':
        abort(404, description='No pending request to cancel')
    dao.delete_connection_pair(user.uid, other_uid)
    dao.delete_notifications_matching(other_uid, user.uid, 'connection_request', user.uid)
    return 'none'


def accept(user: UserProfile, other_uid):
    if status(user.uid, other_uid) != 'pending_received':
        abort(404, description='No pending request from this user')
    dao.save_connection_pair(user.uid, other_uid, 'connected', 'connected')
    dao.delete_notifications_matching(user.uid, other_uid, 'connection_request', other_uid)
    return 'connected'


def decline(user: UserProfile, other_uid):
    if status(user.uid, other_uid) != 'pending_received':
        abort(404, description='No pending request from this user')
    dao.delete_connection_pair(user.uid, other_uid)
    dao.delete_notifications_matching(user.uid, other_uid, 'connection_request', other_uid)
    return 'none'


def disconnect(user: UserProfile, other_uid):
    if status(user.uid, other_uid) != 'connected':
        abort(404, description='Not connected')
    dao.delete_connection_pair(user.uid, other_uid)
    return 'none'


def list_connections(uid, status_filter='connected'):
    """Connections of a user with the other user's card attached."""
    docs = dao.get_connections(uid, status=status_filter)
    users = dao.get_users_by_ids([d['id'] for d in docs])
    result = []
    for d in docs:
        conn = Connection.from_dict(d, d['id'])
        other = users.get(conn.id)
        if not other:
            continue
        conn.user = UserProfile.from_dict(other, other['id']).summary()
        result.append(conn)
    return result
