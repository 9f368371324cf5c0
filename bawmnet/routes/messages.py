from flask import Blueprint, jsonify, request, abort
from bawmnet.decorators import auth_required, current_profile
from bawmnet.forms import MessageForm, validate_or_400, request_value
from bawmnet.services import messaging

bp = Blueprint('messages', __name__, url_prefix='/conversations')


@bp.route('')
@auth_required
def list_conversations():
    return jsonify({'conversations': messaging.list_conversations(current_profile())})


@bp.route('', methods=['POST'])
@auth_required
def start_conversation():
    """Open (or reuse) the conversation with a connected user: {"user_id": ...}."""
    other_uid = request_value('user_id')
    if not other_uid:
        abort(400, description='user_id is required')
    conversation = messaging.start_conversation(current_profile(), other_uid)
    return jsonify({'conversation': conversation.to_api()}), 201


@bp.route('/<conversation_id>/messages')
@auth_required
def list_messages(conversation_id):
    messages = messaging.list_messages(current_profile(), conversation_id)
    return jsonify({'messages': [m.to_api() for m in messages]})


@bp.route('/<conversation_id>/messages', methods=['POST'])
@auth_required
def send_message(conversation_id):
    form = validate_or_400(MessageForm())
    message = messaging.send_message(current_profile(), conversation_id, text=form.text.data,
                                     file=request.files.get('file'))
    return jsonify({'message': message.to_api()}), 201


@bp.route('/<conversation_id>/read', methods=['POST'])
@auth_required
def mark_read(conversation_id):
    messaging.mark_read(current_profile(), conversation_id)
    return jsonify({'success': True})
