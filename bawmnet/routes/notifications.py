from flask import Blueprint, jsonify, request
from bawmnet.decorators import auth_required, current_profile
from bawmnet import firestore_dao as dao
from bawmnet.forms import request_value
from bawmnet.services import notifications

bp = Blueprint('notifications', __name__, url_prefix='/notifications')


@bp.route('')
@auth_required
def list_notifications():
    items = notifications.list_notifications(current_profile(),
                                             limit=min(request.args.get('limit', 50, type=int), 200))
    return jsonify({'notifications': [n.to_api() for n in items]})


@bp.route('/unread-count')
@auth_required
def unread_count():
    return jsonify({'count': dao.count_unread_notifications(current_profile().uid)})


@bp.route('/<notification_id>/read', methods=['POST'])
@auth_required
def mark_read(notification_id):
    notifications.load_own(current_profile(), notification_id)
    dao.mark_notification_read(notification_id)
    return jsonify({'success': True})


@bp.route('/read-all', methods=['POST'])
@auth_required
def mark_all_read():
    return jsonify({'updated': dao.mark_all_notifications_read(current_profile().uid)})


@bp.route('/<notification_id>/respond', methods=['POST'])
@auth_required
def respond(notification_id):
    """Accept or decline the request behind a notification: {"action": "accept"}."""
    notifications.respond(current_profile(), notification_id, request_value('action'))
    return jsonify({'success': True})


@bp.route('/<notification_id>', methods=['DELETE'])
@auth_required
def delete(notification_id):
    notifications.load_own(current_profile(), notification_id)
    dao.delete_notification(notification_id)
    return jsonify({'success': True})
