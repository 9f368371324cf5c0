from flask_socketio import emit, join_room, leave_room
from bawmnet import socketio
from bawmnet.decorators import get_current_user
from bawmnet import firestore_dao as dao
from bawmnet.services.feed import feed_rooms


def _get_socket_user():
    """Get current user from the session cookie or bearer token of the handshake."""
    user = get_current_user()
    if user and user.is_authenticated:
        return user
    return None


def _conversation_for(user, data):
    conversation_id = (data or {}).get('conversation_id')
    if not conversation_id:
        return None
    conversation = dao.get_conversation(conversation_id)
    if not conversation or user.uid not in conversation.get('participants', []):
        return None
    return conversation


@socketio.on('connect')
def handle_connect():
    user = _get_socket_user()
    if not user:
        return False
    join_room(f'inbox_{user.uid}')
    emit('connected', {'user_id': user.uid, 'username': user.username})


@socketio.on('subscribe_feed')
def handle_subscribe_feed():
    user = _get_socket_user()
    if not user:
        return
    rooms = feed_rooms(user.profile)
    for room in rooms:
        join_room(room)
    emit('feed_subscribed', {'rooms': len(rooms)})


@socketio.on('join_conversation')
def handle_join_conversation(data):
    user = _get_socket_user()
    if not user:
        return
    conversation = _conversation_for(user, data)
    if not conversation:
        emit('error', {'message': 'Access denied to this conversation'})
        return
    room = f"conversation_{conversation['id']}"
    join_room(room)
    emit('joined_conversation', {'conversation_id': conversation['id']})


@socketio.on('leave_conversation')
def handle_leave_conversation(data):
    user = _get_socket_user()
    if not user:
        return
    conversation_id = (data or {}).get('conversation_id')
    if conversation_id:
        leave_room(f'conversation_{conversation_id}')
