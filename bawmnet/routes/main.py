from flask import Blueprint, jsonify, request
from bawmnet.decorators import auth_required
from bawmnet import firestore_dao as dao
from bawmnet.firestore_models import UserProfile

bp = Blueprint('main', __name__)


@bp.route('/health')
def health():
    return jsonify({'status': 'ok'}), 200


@bp.route('/')
def index():
    return jsonify({'name': 'BawmNet', 'status': 'ok'}), 200


def _cards(docs):
    users = [UserProfile.from_dict(d, d['id']) for d in docs]
    return [u.summary() for u in users if not u.is_blocked()]


@bp.route('/community')
@auth_required
def community():
    """Member directory, newest members first."""
    limit = min(request.args.get('limit', 100, type=int), 200)
    return jsonify({'users': _cards(dao.list_users(limit=limit))})


@bp.route('/community/search')
@auth_required
def community_search():
    term = (request.args.get('q') or '').strip()
    if not term:
        return jsonify({'users': []})
    return jsonify({'users': _cards(dao.search_users(term))})
