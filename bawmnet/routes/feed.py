from flask import Blueprint, jsonify, request, current_app
from bawmnet.decorators import auth_required, current_profile
from bawmnet.services.feed import build_feed

bp = Blueprint('feed', __name__)


@bp.route('/feed')
@auth_required
def home_feed():
    """Posts from friends, followed pages, joined groups, events and quizzes."""
    page_size = current_app.config.get('FEED_PAGE_SIZE', 50)
    limit = min(request.args.get('limit', page_size, type=int), page_size)
    posts = build_feed(current_profile(), limit=limit)
    return jsonify({'posts': [p.to_api() for p in posts]})
