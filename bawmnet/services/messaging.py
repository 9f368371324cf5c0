"""One-to-one conversations between connected users."""

import logging
from datetime import datetime, timezone

from flask import abort

from bawmnet import firestore_dao as dao
from bawmnet import permissions as perm
from bawmnet.firestore_models import Conversation, Message, UserProfile
from bawmnet.services import storage, realtime
from bawmnet.services.connections import status as connection_status

logger = logging.getLogger(__name__)


def start_conversation(user: UserProfile, other_uid) -> Conversation:
    """Return the conversation with a friend, creating it on first use."""
    if other_uid == user.uid:
        abort(400, description='You cannot message yourself')
    if connection_status(user.uid, other_uid) != 'connected':
        abort(403, description='You can only message your connections')
    conv_id = dao.conversation_id(user.uid, other_uid)
    doc = dao.get_conversation(conv_id) or dao.create_conversation(conv_id, [user.uid, other_uid])
    return Conversation.from_dict(doc, conv_id)


def load_conversation(user: UserProfile, conv_id) -> Conversation:
    doc = dao.get_conversation(conv_id)
    if not doc:
        abort(404, description='Conversation not found')
    conv = Conversation.from_dict(doc, doc['id'])
    if user.uid not in conv.participants:
        abort(403, description='Not a participant of this conversation')
    return conv


def send_message(user: UserProfile, conv_id, text='', file=None, now=None) -> Message:
    """Send text and/or one image or video; the recipient's unread count goes up."""
    conv = load_conversation(user, conv_id)
    recipient = conv.other_participant(user.uid)
    if connection_status(user.uid, recipient) != 'connected':
        abort(403, description='You can only message your connections')
    text = (text or '').strip()
    has_file = file is not None and bool(file.filename)
    if not text and not has_file:
        abort(400, description='Message is empty')

    message = Message(id=dao.new_message_id(conv_id), sender_id=user.uid, text=text,
                      status='sent', created_at=now or datetime.now(timezone.utc))
    if has_file:
        kind = storage.media_type_for(file.filename)
        if kind not in ('image', 'video'):
            abort(400, description='Only images and videos can be sent')
        if not perm.can_send_message_media(user, kind, perm.load_message_permissions()):
            abort(403, description=f'You are not allowed to send {kind}s')
        try:
            data, ext = storage.validate_upload(file, kind)
        except storage.UploadError as exc:
            abort(400, description=str(exc))
        _, url = storage.upload_message_media(conv_id, message.id, data, ext, kind)
        if kind == 'image':
            message.image_url = url
        else:
            message.video_url = url

    dao.add_message(conv_id, message.id, message.to_dict(), recipient)
    realtime.push_message(conv_id, message.to_api(), recipient)
    return message


def mark_read(user: UserProfile, conv_id):
    load_conversation(user, conv_id)
    dao.mark_conversation_read(conv_id, user.uid)


def list_conversations(user: UserProfile):
    """Conversations newest first, with the other participant and own unread count."""
    convs = [Conversation.from_dict(d, d['id']) for d in dao.get_conversations(user.uid)]
    others = dao.get_users_by_ids([c.other_participant(user.uid) for c in convs])
    result = []
    for conv in convs:
        data = conv.to_api()
        other = others.get(conv.other_participant(user.uid))
        data['other_user'] = UserProfile.from_dict(other, other['id']).summary() if other else None
        data['unread'] = conv.unread_count.get(user.uid, 0)
        result.append(data)
    return result


def list_messages(user: UserProfile, conv_id):
    load_conversation(user, conv_id)
    return [Message.from_dict(d, d['id']) for d in dao.get_messages(conv_id)]
