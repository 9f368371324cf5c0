"""Server-side pushes to Socket.IO rooms.

Rooms:
  user_<uid>, page_<id>, group_<id>, event_<id>, quiz_<id>
      feed sources; carry 'feed_post'
  conversation_<id>
      carries 'new_message'
  inbox_<uid>
      per user; carries 'notification' and 'conversation_updated'
"""

import logging

from bawmnet import socketio

logger = logging.getLogger(__name__)


def feed_room(post):
    if post.post_type == 'user':
        return f'user_{post.author_id}'
    if post.post_type in ('page', 'group', 'event', 'quiz'):
        return f'{post.post_type}_{post.context_id}'
    return None


def push_post(post):
    """Announce a new post to everyone whose feed draws from its source."""
    room = feed_room(post)
    if room and post.scheduled_at is None:
        socketio.emit('feed_post', post.to_api(), room=room)


def push_message(conv_id, message, recipient_id):
    socketio.emit('new_message', message, room=f'conversation_{conv_id}')
    socketio.emit('conversation_updated', {'conversation_id': conv_id, 'last_message': message},
                  room=f'inbox_{recipient_id}')


def push_notification(recipient_id, notification):
    logger.debug('Notification %s -> %s', notification.get('type'), recipient_id)
    socketio.emit('notification', notification, room=f'inbox_{recipient_id}')
